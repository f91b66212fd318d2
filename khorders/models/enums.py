# khorders/models/enums.py
from __future__ import annotations

from enum import StrEnum


class FulfillmentMethod(StrEnum):
    """
    履约方式（每种方式绑定一个固定的工作日）：

    - PICKUP    到店自取（默认周六）
    - SHIPPING  邮寄（默认周五发出）
    """

    PICKUP = "pickup"
    SHIPPING = "shipping"


class OrderStatus(StrEnum):
    """订单生命周期标记；本服务只写入初始值 OPEN。"""

    OPEN = "open"
    PAID = "paid"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
