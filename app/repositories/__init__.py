"""
仓库包初始化文件 - 数据库访问层
"""

from .discount_repository import DiscountRepository
from .notification_repository import NotificationRepository
from .order_repository import OrderRepository
from .product_repository import ProductRepository

__all__ = [
    "DiscountRepository",
    "NotificationRepository",
    "OrderRepository",
    "ProductRepository"
]
