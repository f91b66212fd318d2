# khorders/api/routers/orders.py
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from khorders.api.deps import get_order_store, get_order_workflow, require_admin
from khorders.core.config import AppSettings, get_settings
from khorders.core.trace import new_trace
from khorders.schemas.orders import OrderOut, OrderSubmitOut
from khorders.services.order_errors import INVALID_BODY, OrderValidationError
from khorders.services.order_export import build_orders_csv, filter_orders
from khorders.services.order_render import payment_note
from khorders.services.order_store import OrderStore
from khorders.services.order_workflow import OrderWorkflow

router = APIRouter(tags=["orders"])


async def _read_json_object(request: Request) -> Dict[str, Any]:
    """
    请求体宽松解析：只要求是 JSON 对象，字段口径交给 normalize()。
    空 body / 非法 JSON / 非对象 → 400 INVALID_BODY。
    """
    body = await request.body()
    if not body.strip():
        raise OrderValidationError("Empty request body", code=INVALID_BODY)
    try:
        raw = json.loads(body)
    except ValueError:
        raise OrderValidationError("Invalid JSON body", code=INVALID_BODY)
    if not isinstance(raw, dict):
        raise OrderValidationError("Request body must be a JSON object", code=INVALID_BODY)
    return raw


@router.post("/orders", response_model=OrderSubmitOut, response_model_exclude_none=True)
async def submit_order(
    request: Request,
    workflow: OrderWorkflow = Depends(get_order_workflow),
):
    trace = new_trace("http:/orders")
    request.state.trace_id = trace.trace_id

    raw = await _read_json_object(request)
    outcome = await workflow.submit(raw, trace)

    return OrderSubmitOut(
        shortId=outcome.short_id,
        orderId=outcome.order.id,
        paymentNote=payment_note(outcome.short_id, workflow.dispatcher.cfg.branding),
        warning=outcome.notify.warning,
    )


async def _recent_matching(store: OrderStore, settings: AppSettings, q: Optional[str], limit: Optional[int]):
    cap = int(settings.ORDERS_LIST_LIMIT)
    rows = filter_orders(await store.list_recent(cap), q)
    return rows[: min(limit or cap, cap)]


@router.get(
    "/orders",
    response_model=List[OrderOut],
    dependencies=[Depends(require_admin)],
)
async def list_orders(
    q: Optional[str] = Query(None, description="按姓名 / 邮箱 / 电话 / 城市 / 短单号 / 商品名模糊搜索"),
    limit: Optional[int] = Query(None, ge=1),
    store: OrderStore = Depends(get_order_store),
    settings: AppSettings = Depends(get_settings),
):
    """最近订单（created_at 倒序，最多 ORDERS_LIST_LIMIT 条）。"""
    return await _recent_matching(store, settings, q, limit)


@router.get("/orders/export.csv", dependencies=[Depends(require_admin)])
async def export_orders_csv(
    q: Optional[str] = Query(None),
    store: OrderStore = Depends(get_order_store),
    settings: AppSettings = Depends(get_settings),
):
    rows = await _recent_matching(store, settings, q, None)
    buf, filename = build_orders_csv(rows)
    return StreamingResponse(
        buf,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
