# khorders/services/order_store.py
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import or_, select, text, update
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, ProgrammingError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from khorders.models.enums import OrderStatus
from khorders.models.order import Order
from khorders.services.order_errors import StoreError
from khorders.services.order_types import OrderDraft, ShortId

log = logging.getLogger("khorders.db")

DEFAULT_LIST_LIMIT = 200


def build_order(draft: OrderDraft, *, fulfillment_date: date, short_id: Optional[ShortId]) -> Order:
    """草稿 + 履约日 + 短单号 → 待写入的 Order 行。"""
    return Order(
        customer_name=draft.customer_name,
        email=draft.customer_email,
        phone=draft.phone,
        ship=draft.ships,
        fulfillment=draft.fulfillment_method.value,
        address_line1=draft.address_line1,
        address_line2=draft.address_line2,
        city=draft.city,
        state=draft.state,
        postal_code=draft.postal_code,
        country=draft.country,
        items=[ln.to_json() for ln in draft.items],
        notes=draft.notes,
        status=OrderStatus.OPEN.value,
        kh_short_id=short_id.value if short_id else None,
        period_key=short_id.period_key if short_id else None,
        requested_date=draft.requested_date,
        pickup_date=None if draft.ships else fulfillment_date,
        ship_date=fulfillment_date if draft.ships else None,
        order_total=draft.order_total,
    )


def classify_store_error(exc: BaseException) -> str:
    """约束 / 数据类错误 → constraint；连接 / 超时 / 锁等 → transient。"""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreError.TRANSIENT
    if isinstance(exc, (IntegrityError, DataError, ProgrammingError)):
        return StoreError.CONSTRAINT
    return StoreError.TRANSIENT


class OrderStore:
    """
    orders 表适配层：
    - insert：单行原子写入（独立事务），失败抛带 kind 的 StoreError
    - list_recent：按 created_at 倒序，最多 limit 行
    - attach_short_id：幂等回填短单号，失败只记日志
    """

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        self._sessions = sessions

    async def insert(self, order: Order) -> Order:
        try:
            async with self._sessions() as session:
                async with session.begin():
                    session.add(order)
                    await session.flush()
                await session.refresh(order)
        except (SQLAlchemyError, OSError) as exc:
            kind = classify_store_error(exc)
            log.error("order insert failed: kind=%s short_id=%s err=%s", kind, order.kh_short_id, exc)
            raise StoreError(
                "Could not save the order" if kind == StoreError.CONSTRAINT else "Order storage is unavailable",
                kind=kind,
                context={"short_id": order.kh_short_id},
            ) from exc
        return order

    async def list_recent(self, limit: int = DEFAULT_LIST_LIMIT) -> List[Order]:
        limit = max(1, min(int(limit), DEFAULT_LIST_LIMIT))
        async with self._sessions() as session:
            rows = await session.execute(
                select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)
            )
            return list(rows.scalars().all())

    async def list_missing_short_id(self, limit: int = DEFAULT_LIST_LIMIT) -> List[Order]:
        """回填脚本用：无短单号的历史订单，最早的在前。"""
        async with self._sessions() as session:
            rows = await session.execute(
                select(Order)
                .where(Order.kh_short_id.is_(None))
                .order_by(Order.created_at.asc(), Order.id.asc())
                .limit(limit)
            )
            return list(rows.scalars().all())

    async def attach_short_id(self, order_id: str, short_id: ShortId) -> bool:
        """
        只在原值为空或已等于同一值时写入（重复调用无害）。
        返回该订单当前是否持有此短单号；任何失败都只记日志并返回 False。
        """
        try:
            async with self._sessions() as session:
                async with session.begin():
                    await session.execute(
                        update(Order)
                        .where(Order.id == order_id)
                        .where(or_(Order.kh_short_id.is_(None), Order.kh_short_id == short_id.value))
                        .values(kh_short_id=short_id.value, period_key=short_id.period_key)
                    )
                    current = (
                        await session.execute(
                            text("SELECT kh_short_id FROM orders WHERE id = :id"),
                            {"id": order_id},
                        )
                    ).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as exc:
            log.warning("short id backfill failed: order=%s short_id=%s err=%s", order_id, short_id.value, exc)
            return False

        if current != short_id.value:
            log.warning(
                "short id backfill skipped: order=%s already has %s (wanted %s)",
                order_id,
                current,
                short_id.value,
            )
            return False
        return True
