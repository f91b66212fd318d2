# khorders/services/order_types.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Tuple

from khorders.models.enums import FulfillmentMethod

CENTS = Decimal("0.01")


def money(v: Decimal) -> Decimal:
    return v.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderLine:
    name: str
    quantity: int
    unit_price: Optional[Decimal] = None
    sku: Optional[str] = None
    variant: Optional[str] = None

    @property
    def line_total(self) -> Optional[Decimal]:
        if self.unit_price is None:
            return None
        return money(self.unit_price * self.quantity)

    def to_json(self) -> Dict[str, Any]:
        # 落库 JSON：价格以字符串保存，避免 float 误差
        out: Dict[str, Any] = {"name": self.name, "quantity": self.quantity}
        out["unit_price"] = str(money(self.unit_price)) if self.unit_price is not None else None
        if self.sku:
            out["sku"] = self.sku
        if self.variant:
            out["variant"] = self.variant
        return out


@dataclass(frozen=True)
class OrderDraft:
    """归一化后的订单草稿（只存活于单次请求内）。"""

    customer_name: str
    customer_email: str
    items: Tuple[OrderLine, ...]
    fulfillment_method: FulfillmentMethod = FulfillmentMethod.PICKUP
    phone: Optional[str] = None
    requested_date: Optional[date] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "USA"
    notes: Optional[str] = None

    @property
    def ships(self) -> bool:
        return self.fulfillment_method == FulfillmentMethod.SHIPPING

    @property
    def order_total(self) -> Decimal:
        total = sum((ln.line_total for ln in self.items if ln.line_total is not None), Decimal("0"))
        return money(total)

    def to_payload(self) -> Dict[str, Any]:
        """输出与 normalize() 可识别字段一致的 dict（草稿 → 草稿不漂移）。"""
        return {
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "phone": self.phone,
            "fulfillment_method": self.fulfillment_method.value,
            "requested_date": self.requested_date.isoformat() if self.requested_date else None,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "items": [ln.to_json() for ln in self.items],
            "notes": self.notes,
        }


@dataclass(frozen=True)
class ShortId:
    period_key: str
    seq: int
    value: str


@dataclass(frozen=True)
class NotifyResult:
    customer_sent: bool
    admin_sent: bool
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def warning(self) -> Optional[str]:
        return "; ".join(self.warnings) if self.warnings else None
