# khorders/services/order_export.py
from __future__ import annotations

import csv
from datetime import date, datetime
from io import StringIO
from typing import Any, Iterable, List, Optional

from khorders.models.order import Order
from khorders.services.order_render import line_rows

CSV_HEADER = [
    "created_at",
    "short_id",
    "customer_name",
    "email",
    "phone",
    "ship",
    "address",
    "items",
    "notes",
    "status",
    "fulfillment_date",
    "order_total",
    "id",
]


def _haystack(order: Order) -> str:
    parts: List[Any] = [
        order.customer_name,
        order.email,
        order.phone,
        order.city,
        order.state,
        order.postal_code,
        order.kh_short_id,
    ]
    parts += [r.name for r in line_rows(order.items)]
    return " ".join(str(p) for p in parts if p).lower()


def matches(order: Order, q: Optional[str]) -> bool:
    """管理端搜索：大小写不敏感的子串匹配；q 为空时全部命中。"""
    needle = (q or "").strip().lower()
    if not needle:
        return True
    return needle in _haystack(order)


def filter_orders(orders: Iterable[Order], q: Optional[str]) -> List[Order]:
    return [o for o in orders if matches(o, q)]


def _iso(v: Any) -> str:
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return "" if v is None else str(v)


def _flat(v: Optional[str]) -> str:
    return " ".join((v or "").split())


def order_csv_row(order: Order) -> List[str]:
    address = ", ".join(
        p
        for p in [
            order.address_line1,
            order.address_line2,
            order.city,
            order.state,
            order.postal_code,
            order.country,
        ]
        if p
    )
    items = "; ".join(f"{r.name} x {r.quantity}" for r in line_rows(order.items))
    return [
        _iso(order.created_at),
        order.kh_short_id or "",
        order.customer_name or "",
        order.email or "",
        order.phone or "",
        "ship" if order.ship else "pickup",
        address,
        items,
        _flat(order.notes),
        order.status or "",
        _iso(order.fulfillment_date),
        _iso(order.order_total),
        order.id,
    ]


def build_orders_csv(orders: Iterable[Order]) -> tuple[StringIO, str]:
    buf = StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADER)
    for o in orders:
        writer.writerow(order_csv_row(o))
    buf.seek(0)
    return buf, "orders.csv"
