# khorders/models/order_sequence.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from khorders.db.base import Base


class OrderSequence(Base):
    """
    短单号计数器：period_key（批次周起始日）→ 已发出的最后一个序号。

    只通过原子 upsert 自增，从不回退。
    """

    __tablename__ = "order_sequences"

    period_key: Mapped[str] = mapped_column(String(16), primary_key=True)
    last_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<OrderSequence period={self.period_key!r} last_seq={self.last_seq}>"
