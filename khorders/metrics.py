# khorders/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client import multiprocess

# 业务指标
ORDERS = Counter("orders_created_total", "Orders created", ["fulfillment"])
ORDER_ERRS = Counter("order_errors_total", "Order submissions rejected or failed", ["code"])
NOTIFY = Counter("order_notifications_total", "Order notification attempts", ["recipient", "state"])
SUBMIT_LAT = Histogram("order_submit_seconds", "Order submission latency (seconds)")

router = APIRouter(tags=["ops"])


@router.get("/metrics")
def metrics() -> Response:
    """
    单进程模式直接导出默认 REGISTRY；
    多进程模式（设置了 PROMETHEUS_MULTIPROC_DIR）下合并各 worker 分片。
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
