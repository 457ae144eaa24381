"""
数据模型包初始化文件
"""

from .discount import (
    DiscountType,
    DiscountStatus,
    DiscountCode,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    DiscountRedemption,
    DiscountValidation,
    PercentageRule,
    FixedAmountRule,
    FreeShippingRule,
    compute_discount_amount,
    normalize_code
)
from .order import (
    Order,
    OrderCreate,
    OrderItem,
    OrderItemRequest,
    OrderStatus,
    PaymentMethod,
    ShippingAddress
)
from .product import Product, StockAdjustment
from .notification import OrderEvent, OrderEventType, Notification

__all__ = [
    "DiscountType",
    "DiscountStatus",
    "DiscountCode",
    "DiscountCodeCreate",
    "DiscountCodeUpdate",
    "DiscountRedemption",
    "DiscountValidation",
    "PercentageRule",
    "FixedAmountRule",
    "FreeShippingRule",
    "compute_discount_amount",
    "normalize_code",
    "Order",
    "OrderCreate",
    "OrderItem",
    "OrderItemRequest",
    "OrderStatus",
    "PaymentMethod",
    "ShippingAddress",
    "Product",
    "StockAdjustment",
    "OrderEvent",
    "OrderEventType",
    "Notification"
]
