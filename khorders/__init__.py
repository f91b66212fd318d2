# khorders/__init__.py
"""
KH Orders：小型农场面包坊的下单 / 通知服务。
"""

__version__ = "1.0.0"
