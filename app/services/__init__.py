"""
服务包初始化文件
"""

from .inventory_guard import InventoryGuard
from .discount_ledger import DiscountLedger
from .notification_sink import (
    NotificationSink,
    DatabaseNotificationSink,
    RedisNotificationSink,
    CompositeNotificationSink
)
from .order_state_machine import OrderStateMachine
from .checkout_service import CheckoutService

__all__ = [
    "InventoryGuard",
    "DiscountLedger",
    "NotificationSink",
    "DatabaseNotificationSink",
    "RedisNotificationSink",
    "CompositeNotificationSink",
    "OrderStateMachine",
    "CheckoutService"
]
