# khorders/services/order_render.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from html import escape
from typing import Any, List, Mapping, Optional

from khorders.models.order import Order
from khorders.services.order_types import money

_CELL = "padding:6px 8px;border-bottom:1px solid #eee"
_HEAD = "padding:6px 8px;border-bottom:2px solid #000"


@dataclass(frozen=True)
class EmailBranding:
    site_name: str = "Kanarra Heights Homestead"
    pickup_location: str = "Kanarra Heights Homestead farm stand"
    payment_instructions: str = ""


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class LineRow:
    name: str
    quantity: int
    unit_price: Optional[Decimal]
    line_total: Optional[Decimal]


def _dec(v: Any) -> Optional[Decimal]:
    if v is None or v == "":
        return None
    try:
        return money(Decimal(str(v)))
    except (InvalidOperation, ValueError):
        return None


def line_rows(items: List[Mapping[str, Any]]) -> List[LineRow]:
    """orders.items（JSON）→ 展示行；兼容历史数据里的 qty / price 字段名。"""
    rows: List[LineRow] = []
    for it in items or []:
        if not isinstance(it, Mapping):
            continue
        name = str(it.get("name") or it.get("item") or "Item")
        if it.get("variant"):
            name = f"{name} ({it['variant']})"
        try:
            qty = int(it.get("quantity", it.get("qty", 1)) or 0)
        except (TypeError, ValueError):
            qty = 0
        price = _dec(it.get("unit_price", it.get("price")))
        rows.append(LineRow(name, qty, price, money(price * qty) if price is not None else None))
    return rows


def fmt_money(v: Optional[Decimal]) -> str:
    return f"${v:,.2f}" if v is not None else "-"


def fmt_date(d: Optional[date]) -> str:
    return d.strftime("%A, %B %d, %Y").replace(" 0", " ") if d else "TBD"


def payment_note(short_id: Optional[str], branding: EmailBranding) -> str:
    return f"{short_id or '(pending)'} — {branding.site_name}"


def address_lines(order: Order) -> List[str]:
    city_line = " ".join(p for p in [f"{order.city}," if order.city else None, order.state, order.postal_code] if p)
    return [p for p in [order.address_line1, order.address_line2, city_line, order.country] if p]


def _fulfillment_text(order: Order, branding: EmailBranding) -> List[str]:
    if order.ship:
        out = [f"Ships: {fmt_date(order.ship_date)}"]
        out += [f"  {ln}" for ln in address_lines(order)]
        return out
    return [f"Pickup: {fmt_date(order.pickup_date)} at {branding.pickup_location}"]


def _fulfillment_html(order: Order, branding: EmailBranding) -> str:
    if order.ship:
        addr = "<br>".join(escape(ln) for ln in address_lines(order))
        return (
            f'<p style="margin:0 0 12px"><strong>Ships:</strong> {escape(fmt_date(order.ship_date))}</p>'
            f'<p style="margin:0 0 12px"><strong>Ship to:</strong><br>{addr}</p>'
        )
    return (
        f'<p style="margin:0 0 12px"><strong>Pickup:</strong> {escape(fmt_date(order.pickup_date))}'
        f" at {escape(branding.pickup_location)}</p>"
    )


def _items_html(rows: List[LineRow]) -> str:
    body = "".join(
        "<tr>"
        f'<td style="{_CELL}">{escape(r.name)}</td>'
        f'<td style="{_CELL};text-align:center">{r.quantity}</td>'
        f'<td style="{_CELL};text-align:right">{fmt_money(r.unit_price)}</td>'
        f'<td style="{_CELL};text-align:right">{fmt_money(r.line_total)}</td>'
        "</tr>"
        for r in rows
    )
    if not body:
        body = '<tr><td colspan="4" style="padding:8px 0">No items listed</td></tr>'
    return (
        '<table width="100%" cellpadding="0" cellspacing="0" style="border-collapse:collapse;margin:12px 0 4px">'
        "<thead><tr>"
        f'<th align="left" style="{_HEAD};text-align:left">Item</th>'
        f'<th align="center" style="{_HEAD};text-align:center">Qty</th>'
        f'<th align="right" style="{_HEAD};text-align:right">Price</th>'
        f'<th align="right" style="{_HEAD};text-align:right">Line total</th>'
        f"</tr></thead><tbody>{body}</tbody></table>"
    )


def _items_text(rows: List[LineRow]) -> List[str]:
    return [f"- {r.quantity} x {r.name} @ {fmt_money(r.unit_price)} = {fmt_money(r.line_total)}" for r in rows]


def _wrap(inner: str) -> str:
    return (
        '<div style="font-family:system-ui,-apple-system,Segoe UI,Roboto,Helvetica,Arial,sans-serif;'
        f'line-height:1.45;color:#222">{inner}</div>'
    )


def render_customer_email(order: Order, branding: EmailBranding) -> RenderedEmail:
    short = order.kh_short_id or ""
    rows = line_rows(order.items)
    note = payment_note(order.kh_short_id, branding)
    total = fmt_money(money(Decimal(order.order_total or 0)))

    html = _wrap(
        f'<h1 style="margin:0 0 8px">Thanks for your order, {escape(order.customer_name)}!</h1>'
        f'<p style="margin:0 0 12px">Order #{escape(short)}</p>'
        + _fulfillment_html(order, branding)
        + (f'<p style="margin:0 0 12px"><strong>Notes:</strong> {escape(order.notes)}</p>' if order.notes else "")
        + _items_html(rows)
        + f'<p style="margin:8px 0;font-weight:700">Total: {total}</p>'
        + (f'<p style="margin:16px 0 4px">{escape(branding.payment_instructions)}</p>' if branding.payment_instructions else "")
        + f'<p style="margin:0 0 12px">Payment note: <strong>{escape(note)}</strong></p>'
        + '<p style="margin:16px 0 0">If anything looks off, just reply to this email and we will fix it.</p>'
        + f'<p style="margin:6px 0 0">— {escape(branding.site_name)}</p>'
    )

    text = "\n".join(
        [
            f"Thanks for your order, {order.customer_name}!",
            f"Order #{short}",
            *_fulfillment_text(order, branding),
            *([f"Notes: {order.notes}"] if order.notes else []),
            "",
            *_items_text(rows),
            f"Total: {total}",
            "",
            *([branding.payment_instructions] if branding.payment_instructions else []),
            f"Payment note: {note}",
            "",
            "If anything looks off, just reply to this email and we will fix it.",
            f"— {branding.site_name}",
        ]
    )
    return RenderedEmail(subject=f"Your order is confirmed — #{short}", html=html, text=text)


def render_admin_email(order: Order, branding: EmailBranding) -> RenderedEmail:
    short = order.kh_short_id or ""
    rows = line_rows(order.items)
    method = "Shipping" if order.ship else "Pickup"
    total = fmt_money(money(Decimal(order.order_total or 0)))
    contact = [
        ("Name", order.customer_name),
        ("Email", order.email),
        ("Phone", order.phone or "-"),
    ]

    contact_html = "".join(
        f'<tr><td style="padding:2px 8px 2px 0"><strong>{k}</strong></td><td>{escape(v)}</td></tr>' for k, v in contact
    )
    html = _wrap(
        f'<h1 style="margin:0 0 8px">New order #{escape(short)} ({method})</h1>'
        f'<table cellpadding="0" cellspacing="0" style="margin:0 0 12px">{contact_html}</table>'
        + _fulfillment_html(order, branding)
        + (f'<p style="margin:0 0 12px"><strong>Notes:</strong> {escape(order.notes)}</p>' if order.notes else "")
        + _items_html(rows)
        + f'<p style="margin:8px 0;font-weight:700">Total: {total}</p>'
        + f'<p style="margin:0">Expected payment note: {escape(payment_note(order.kh_short_id, branding))}</p>'
        + f'<p style="margin:6px 0 0;color:#888">Order id {escape(order.id or "")}</p>'
    )

    text = "\n".join(
        [
            f"New order #{short} ({method})",
            *[f"{k}: {v}" for k, v in contact],
            *_fulfillment_text(order, branding),
            *([f"Notes: {order.notes}"] if order.notes else []),
            "",
            *_items_text(rows),
            f"Total: {total}",
            f"Expected payment note: {payment_note(order.kh_short_id, branding)}",
            f"Order id {order.id or ''}",
        ]
    )
    return RenderedEmail(subject=f"NEW ORDER — #{short}", html=html, text=text)
