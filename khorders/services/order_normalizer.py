# khorders/services/order_normalizer.py
from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from khorders.models.enums import FulfillmentMethod
from khorders.services import order_field_aliases as A
from khorders.services.order_errors import (
    EMPTY_ITEMS,
    INVALID_ITEM,
    MISSING_ADDRESS,
    MISSING_EMAIL,
    OrderValidationError,
)
from khorders.services.order_types import OrderDraft, OrderLine, money

_NAME_SPLIT = re.compile(r"[._\-]+")

# 单行数量 / 单价上限；订单总额受 orders.order_total Numeric(10, 2) 限制
MAX_QTY = 1000
MAX_UNIT_PRICE = Decimal("10000.00")
MAX_ORDER_TOTAL = Decimal("99999999.99")

# 邮寄必须具备的地址字段
SHIPPING_REQUIRED = ("address_line1", "city", "state", "postal_code")


def _text(v: Any) -> Optional[str]:
    """字符串 / 数字 → 去空白字符串；空串 / bool / 非有限浮点 / 其它类型 → None。"""
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, float):
        if not math.isfinite(v):
            return None
        # 84719.0 → "84719"
        v = str(int(v)) if v.is_integer() else repr(v)
    if isinstance(v, (int, Decimal)):
        v = str(v)
    if not isinstance(v, str):
        return None
    s = v.strip()
    return s or None


def _dig(raw: Mapping[str, Any], path: Sequence[str]) -> Any:
    cur: Any = raw
    for key in path:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def first_text(raw: Mapping[str, Any], paths: Iterable[Sequence[str]]) -> Optional[str]:
    """按别名表顺序取第一个非空字符串。"""
    for p in paths:
        s = _text(_dig(raw, p))
        if s is not None:
            return s
    return None


def _first_key(d: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for k in keys:
        v = d.get(k)
        if v is not None and v != "":
            return v
    return None


def name_from_email(email: str) -> str:
    """john.doe@example.com → John Doe；拆不出来时退回 Customer。"""
    local = (email or "").split("@", 1)[0]
    tokens = [t for t in _NAME_SPLIT.split(local) if t]
    if not tokens:
        return A.DEFAULT_CUSTOMER_NAME
    return " ".join(t[:1].upper() + t[1:].lower() for t in tokens)


def resolve_fulfillment(raw: Mapping[str, Any]) -> FulfillmentMethod:
    """显式 fulfillment 优先，其次布尔 ship 旗标，默认 pickup。"""
    explicit = first_text(raw, A.FULFILLMENT)
    if explicit is not None:
        word = explicit.lower()
        if word in A.SHIPPING_WORDS:
            return FulfillmentMethod.SHIPPING
        if word in A.PICKUP_WORDS:
            return FulfillmentMethod.PICKUP

    for p in A.SHIP_FLAG:
        flag = _dig(raw, p)
        if isinstance(flag, bool):
            return FulfillmentMethod.SHIPPING if flag else FulfillmentMethod.PICKUP
        if isinstance(flag, str) and flag.strip().lower() in {"true", "1", "yes", "on"}:
            return FulfillmentMethod.SHIPPING

    return FulfillmentMethod.PICKUP


def parse_date(v: Any) -> Optional[date]:
    """接受 date / datetime / ISO 字符串（YYYY-MM-DD 或带时间）；解析失败 → None。"""
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    s = _text(v)
    if s is None:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None


def _parse_qty(v: Any, idx: int) -> int:
    if v is None or v == "":
        return 1
    if isinstance(v, bool):
        raise OrderValidationError("Invalid item quantity", code=INVALID_ITEM, context={"line": idx})
    try:
        d = Decimal(str(v).strip())
    except (InvalidOperation, ValueError):
        raise OrderValidationError("Invalid item quantity", code=INVALID_ITEM, context={"line": idx})
    if not d.is_finite() or d != d.to_integral_value() or d < 0 or d > MAX_QTY:
        raise OrderValidationError("Invalid item quantity", code=INVALID_ITEM, context={"line": idx})
    return int(d)


def _parse_price(v: Any, idx: int) -> Optional[Decimal]:
    if v is None or v == "" or isinstance(v, bool):
        return None
    try:
        d = Decimal(str(v).strip().lstrip("$"))
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    if d < 0 or d > MAX_UNIT_PRICE:
        raise OrderValidationError("Invalid item price", code=INVALID_ITEM, context={"line": idx})
    try:
        return money(d)
    except InvalidOperation:
        raise OrderValidationError("Invalid item price", code=INVALID_ITEM, context={"line": idx})


def normalize_items(raw_items: Any) -> List[OrderLine]:
    """
    只接受真正的列表；对象 / 字符串 / 缺失 → 空列表。
    - 非对象元素忽略
    - 无名称 → INVALID_ITEM
    - 数量缺失 → 1；数量为 0 的行丢弃；负数 / 非整数 → INVALID_ITEM
    """
    if not isinstance(raw_items, list):
        return []

    lines: List[OrderLine] = []
    for idx, it in enumerate(raw_items):
        if not isinstance(it, Mapping):
            continue
        name = _text(_first_key(it, A.ITEM_NAME))
        if name is None:
            raise OrderValidationError("Item is missing a name", code=INVALID_ITEM, context={"line": idx})
        qty = _parse_qty(_first_key(it, A.ITEM_QTY), idx)
        if qty == 0:
            continue
        lines.append(
            OrderLine(
                name=name,
                quantity=qty,
                unit_price=_parse_price(_first_key(it, A.ITEM_PRICE), idx),
                sku=_text(_first_key(it, A.ITEM_SKU)),
                variant=_text(_first_key(it, A.ITEM_VARIANT)),
            )
        )
    return lines


def normalize(raw: Mapping[str, Any]) -> OrderDraft:
    """
    任意形状的下单 payload → OrderDraft（纯函数，无副作用）。

    失败：
    - 无任何非空邮箱 → MISSING_EMAIL
    - 归一化后商品为空 → EMPTY_ITEMS
    - 邮寄但地址不全 → MISSING_ADDRESS
    """
    email = first_text(raw, A.CUSTOMER_EMAIL)
    if not email:
        raise OrderValidationError("Missing email", code=MISSING_EMAIL)

    name = first_text(raw, A.CUSTOMER_NAME) or name_from_email(email)
    method = resolve_fulfillment(raw)

    address = {f: first_text(raw, paths) for f, paths in A.ADDRESS_FIELDS.items()}
    address["country"] = address["country"] or A.DEFAULT_COUNTRY

    items = normalize_items(_dig(raw, ("items",)))
    if not items:
        raise OrderValidationError("No items in order", code=EMPTY_ITEMS)

    total = sum((ln.line_total for ln in items if ln.line_total is not None), Decimal("0"))
    if total > MAX_ORDER_TOTAL:
        raise OrderValidationError("Order total is too large", code=INVALID_ITEM, context={"order_total": str(total)})

    if method == FulfillmentMethod.SHIPPING:
        missing = [f for f in SHIPPING_REQUIRED if not address.get(f)]
        if missing:
            raise OrderValidationError(
                "Shipping address is incomplete",
                code=MISSING_ADDRESS,
                context={"missing": missing},
            )

    requested = None
    for p in A.REQUESTED_DATE:
        requested = parse_date(_dig(raw, p))
        if requested is not None:
            break

    return OrderDraft(
        customer_name=name,
        customer_email=email,
        items=tuple(items),
        fulfillment_method=method,
        phone=first_text(raw, A.PHONE),
        requested_date=requested,
        notes=first_text(raw, A.NOTES),
        **address,
    )
