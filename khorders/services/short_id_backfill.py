# khorders/services/short_id_backfill.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from khorders.models.order import Order
from khorders.services.order_errors import AllocationError
from khorders.services.order_store import OrderStore
from khorders.services.short_id_allocator import ShortIdAllocator, period_key_for

log = logging.getLogger("khorders.backfill")


@dataclass
class BackfillReport:
    scanned: int = 0
    attached: int = 0
    skipped: int = 0


def _period_date(order: Order) -> Optional[date]:
    # 履约日优先；更早的历史行只能退回下单日
    if order.fulfillment_date is not None:
        return order.fulfillment_date
    return order.created_at.date() if order.created_at else None


async def backfill_short_ids(store: OrderStore, allocator: ShortIdAllocator, *, limit: int = 200) -> BackfillReport:
    """
    为没有短单号的历史订单补号（最早的在前）：
    - 按订单自身履约日所在批次周分配
    - attach_short_id 幂等；单行失败只记日志并跳过
    """
    report = BackfillReport()
    for order in await store.list_missing_short_id(limit):
        report.scanned += 1
        d = _period_date(order)
        if d is None:
            log.warning("backfill skip: order=%s has no usable date", order.id)
            report.skipped += 1
            continue

        try:
            short = await allocator.allocate(period_key_for(d))
        except AllocationError as exc:
            log.warning("backfill skip: order=%s allocation failed: %s", order.id, exc.message)
            report.skipped += 1
            continue

        if await store.attach_short_id(order.id, short):
            log.info("backfill ok: order=%s short_id=%s period=%s", order.id, short.value, short.period_key)
            report.attached += 1
        else:
            report.skipped += 1

    return report
