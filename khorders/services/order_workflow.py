# khorders/services/order_workflow.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Set
from zoneinfo import ZoneInfo

from khorders.core.trace import TraceContext, ensure_trace
from khorders.metrics import ORDER_ERRS, ORDERS, SUBMIT_LAT
from khorders.models.order import Order
from khorders.services.fulfillment_dates import FulfillmentRules, resolve_date
from khorders.services.notification_dispatcher import NotificationDispatcher
from khorders.services.order_errors import OrderError
from khorders.services.order_normalizer import normalize
from khorders.services.order_store import OrderStore, build_order
from khorders.services.order_types import NotifyResult
from khorders.services.short_id_allocator import ShortIdAllocator, period_key_for

log = logging.getLogger("khorders.orders")

Clock = Callable[[], datetime]

# 已提交订单的通知任务：请求被取消时仍需跑完，这里持有引用
_PENDING_NOTIFY: Set[asyncio.Task] = set()


def system_clock(tz: str) -> Clock:
    zone = ZoneInfo(tz)
    return lambda: datetime.now(zone)


@dataclass(frozen=True)
class SubmitOutcome:
    order: Order
    notify: NotifyResult

    @property
    def short_id(self) -> Optional[str]:
        return self.order.kh_short_id


class OrderWorkflow:
    """
    下单主链路：
      raw payload → normalize → 履约日 → 分配短单号 → 写库 → 通知（best-effort）

    - 写库成功即视为订单已提交；之后的客户端断开不会回滚
    - 分配 / 写库失败直接抛 OrderError，由 HTTP 层翻译
    - 通知失败只体现在 NotifyResult.warnings
    """

    def __init__(
        self,
        *,
        store: OrderStore,
        allocator: ShortIdAllocator,
        dispatcher: NotificationDispatcher,
        rules: FulfillmentRules,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.allocator = allocator
        self.dispatcher = dispatcher
        self.rules = rules
        self.clock = clock or system_clock(rules.tz)

    async def submit(self, raw: Mapping[str, Any], trace: Optional[TraceContext] = None) -> SubmitOutcome:
        trace = ensure_trace(trace, "workflow:submit")
        started = time.perf_counter()
        try:
            order = await self._commit(raw, trace)
        except OrderError as exc:
            ORDER_ERRS.labels(code=exc.code).inc()
            log.info("order rejected[%s]: code=%s msg=%s", trace.trace_id, exc.code, exc.message)
            raise

        ORDERS.labels(fulfillment=order.fulfillment).inc()
        notify = await self._notify_shielded(order)
        if notify.warnings:
            log.warning("order %s committed with notification warnings[%s]: %s", order.kh_short_id, trace.trace_id, notify.warning)

        SUBMIT_LAT.observe(time.perf_counter() - started)
        return SubmitOutcome(order=order, notify=notify)

    async def _commit(self, raw: Mapping[str, Any], trace: TraceContext) -> Order:
        draft = normalize(raw)
        fulfillment_date = resolve_date(draft.fulfillment_method, draft.requested_date, self.clock(), self.rules)

        short = await self.allocator.allocate(period_key_for(fulfillment_date))
        order = await self.store.insert(build_order(draft, fulfillment_date=fulfillment_date, short_id=short))

        log.info(
            "order committed[%s]: id=%s short_id=%s fulfillment=%s date=%s total=%s",
            trace.trace_id,
            order.id,
            order.kh_short_id,
            order.fulfillment,
            fulfillment_date.isoformat(),
            order.order_total,
        )
        return order

    async def _notify_shielded(self, order: Order) -> NotifyResult:
        task = asyncio.ensure_future(self.dispatcher.notify(order))
        _PENDING_NOTIFY.add(task)
        task.add_done_callback(_PENDING_NOTIFY.discard)
        return await asyncio.shield(task)
