# khorders/schemas/orders.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


# ===== 通用基类：允许 ORM、忽略多余字段 =====
class _Base(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


# ===== 下单 出参 =====
class OrderSubmitOut(BaseModel):
    """
    下单成功：
    - shortId / paymentNote：客户付款备注需要
    - warning：通知（邮件）未全部成功时的提示，订单本身已保存
    """

    ok: bool = True
    shortId: Optional[str] = None
    orderId: str
    paymentNote: str
    warning: Optional[str] = None


# ===== 管理端列表 =====
class OrderOut(_Base):
    id: str
    created_at: datetime
    kh_short_id: Optional[str] = None
    period_key: Optional[str] = None
    status: str

    customer_name: str
    email: str
    phone: Optional[str] = None

    ship: bool
    fulfillment: str
    requested_date: Optional[date] = None
    pickup_date: Optional[date] = None
    ship_date: Optional[date] = None
    fulfillment_date: Optional[date] = None

    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None

    items: List[Dict[str, Any]] = Field(default_factory=list)
    notes: Optional[str] = None
    order_total: Decimal

    @field_serializer("order_total")
    def _ser_order_total(self, v: Decimal) -> float:
        # JSON 里按数字输出（已按分取整）
        return float(v)


# ===== 管理端会话 =====
class LoginIn(BaseModel):
    model_config = ConfigDict(extra="ignore")
    password: Optional[str] = None


class OkOut(BaseModel):
    ok: bool = True


class SessionOut(BaseModel):
    ok: bool = True
    authorized: bool


class EmailHealthOut(BaseModel):
    ok: bool = True
    messageId: str
