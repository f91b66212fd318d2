# khorders/services/order_errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class OrderError(Exception):
    """
    订单链路统一业务异常：
    - code:    稳定的机器可读错误码
    - status:  对应 HTTP 状态码（由 http_problem_handlers 翻译）
    - context: 可选上下文（写日志 / 问题响应）
    """

    code = "ORDER_ERROR"
    status = 400

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status: int | None = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        if code:
            self.code = code
        if status:
            self.status = status
        self.message = message
        self.context = context or {}


class OrderValidationError(OrderError):
    """请求体不合法：缺邮箱 / 无商品 / 地址缺失等（400，不重试）。"""

    code = "VALIDATION_ERROR"
    status = 400


MISSING_EMAIL = "MISSING_EMAIL"
EMPTY_ITEMS = "EMPTY_ITEMS"
INVALID_ITEM = "INVALID_ITEM"
MISSING_ADDRESS = "MISSING_ADDRESS"
INVALID_DATE = "INVALID_DATE"
INVALID_BODY = "INVALID_BODY"


class AllocationError(OrderError):
    """短单号计数器原子自增失败：订单不落库，调用方需重提。"""

    code = "ALLOCATION_FAILED"
    status = 500


class StoreError(OrderError):
    """
    订单写库失败：
    - kind="constraint"：约束 / 数据错误，重试无意义
    - kind="transient"：连接 / 超时类，调用方可自行重试（本服务不自动重试）
    """

    code = "STORE_FAILED"
    status = 500

    CONSTRAINT = "constraint"
    TRANSIENT = "transient"

    def __init__(self, message: str, *, kind: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=f"STORE_{kind.upper()}", context=context)
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind == self.TRANSIENT


class NotificationError(OrderError):
    """邮件发送失败：只记日志 + 作为 warning 返回，永不升级成 5xx。"""

    code = "NOTIFICATION_FAILED"
    status = 502
