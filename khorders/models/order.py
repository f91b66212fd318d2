# khorders/models/order.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Date, DateTime, Index, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from khorders.db.base import Base
from khorders.models.enums import FulfillmentMethod, OrderStatus


def _uuid_str() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    """
    订单主档（一次提交 = 一行）：
    - 列名沿用托管库的 snake_case 口径（customer_name / email / ship / kh_short_id ...）
    - items 以 JSON 列整体存储（PG 下为 JSONB）
    - 写入后只允许 status 变化与 kh_short_id 回填
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_created_at", "created_at"),
        Index("ix_orders_period_key", "period_key"),
        UniqueConstraint("period_key", "kh_short_id", name="uq_orders_period_short_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    ship: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    fulfillment: Mapped[str] = mapped_column(String(16), nullable=False, default=FulfillmentMethod.PICKUP.value)

    address_line1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    items: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=list,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=OrderStatus.OPEN.value)

    # 短单号（KH007），在 period_key 内唯一；历史数据可能为空，由回填脚本补齐
    kh_short_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    period_key: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    requested_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    pickup_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    ship_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    order_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))

    @property
    def fulfillment_date(self) -> Optional[date]:
        return self.ship_date if self.ship else self.pickup_date

    def __repr__(self) -> str:
        return f"<Order id={self.id} short={self.kh_short_id!r} fulfillment={self.fulfillment} status={self.status}>"
