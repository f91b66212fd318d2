# khorders/models/__init__.py
"""
统一导出 ORM 模型。
"""

from khorders.models.order import Order
from khorders.models.order_sequence import OrderSequence

__all__ = ["Order", "OrderSequence"]
