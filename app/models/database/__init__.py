"""
数据库模型包初始化文件
"""

from .discount_db import DiscountCodeDB, DiscountRedemptionDB
from .order_db import OrderDB, OrderItemDB
from .product_db import ProductDB
from .notification_db import NotificationDB

__all__ = [
    "DiscountCodeDB",
    "DiscountRedemptionDB",
    "OrderDB",
    "OrderItemDB",
    "ProductDB",
    "NotificationDB"
]
