# khorders/services/short_id_allocator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from khorders.core.config import AppSettings
from khorders.services.order_errors import AllocationError
from khorders.services.order_types import ShortId

log = logging.getLogger("khorders.orders")

# 单语句原子自增：PG / SQLite(>=3.35) 均支持 ON CONFLICT ... RETURNING
_SQL_NEXT_SEQ = text(
    """
    INSERT INTO order_sequences (period_key, last_seq, updated_at)
    VALUES (:k, 1, CURRENT_TIMESTAMP)
    ON CONFLICT (period_key) DO UPDATE
       SET last_seq = order_sequences.last_seq + 1,
           updated_at = CURRENT_TIMESTAMP
    RETURNING last_seq
    """
)


def period_key_for(fulfillment_date: date) -> str:
    """批次周 = 履约日所在周的周一（ISO 日期串）。"""
    return (fulfillment_date - timedelta(days=fulfillment_date.weekday())).isoformat()


@dataclass(frozen=True)
class ShortIdFormat:
    prefix: str = "KH"
    width: int = 3

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ShortIdFormat":
        return cls(prefix=settings.SHORT_ID_PREFIX, width=int(settings.SHORT_ID_WIDTH))

    def render(self, seq: int) -> str:
        # 超出宽度时自然变长（KH1000），不截断
        return f"{self.prefix}{seq:0{self.width}d}"


class SequenceCounter(Protocol):
    async def increment(self, period_key: str) -> int: ...


class SqlSequenceCounter:
    """order_sequences 表上的原子 increment-and-fetch（每次调用独立短事务）。"""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def increment(self, period_key: str) -> int:
        async with self._sessions() as session:
            async with session.begin():
                seq = (await session.execute(_SQL_NEXT_SEQ, {"k": period_key})).scalar_one()
        return int(seq)


class ShortIdAllocator:
    def __init__(self, counter: SequenceCounter, fmt: ShortIdFormat | None = None):
        self._counter = counter
        self._fmt = fmt or ShortIdFormat()

    async def allocate(self, period_key: str) -> ShortId:
        try:
            seq = await self._counter.increment(period_key)
        except (SQLAlchemyError, OSError) as exc:
            log.error("short id allocation failed: period=%s err=%s", period_key, exc)
            raise AllocationError(
                "Could not allocate an order number, please try again",
                context={"period_key": period_key},
            ) from exc
        return ShortId(period_key=period_key, seq=seq, value=self._fmt.render(seq))

    async def next_short_id(self, period_key: str) -> str:
        return (await self.allocate(period_key)).value
