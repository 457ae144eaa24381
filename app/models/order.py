"""
订单相关数据模型
"""

import re
from decimal import Decimal
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING = "pending"  # 待确认
    PROCESSING = "processing"  # 已确认，备货中
    SHIPPING = "shipping"  # 配送中
    DELIVERED = "delivered"  # 已送达
    CANCELLED = "cancelled"  # 已取消（仅能从待确认取消）


class PaymentMethod(str, Enum):
    """支付方式枚举"""
    COD = "COD"  # 货到付款
    VNPAY = "VNPay"  # 扫码支付（未接入网关）
    CASH = "Cash"  # 现金


# 货到付款类支付方式，送达即视为已支付
PAY_ON_DELIVERY: FrozenSet[PaymentMethod] = frozenset({PaymentMethod.COD, PaymentMethod.CASH})


# 订单状态流转图
ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPING}),
    OrderStatus.SHIPPING: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """检查状态流转是否合法"""
    return target in ORDER_TRANSITIONS[OrderStatus(current)]


PHONE_PATTERN = re.compile(r"^[0-9]{10,11}$")


class ShippingAddress(BaseModel):
    """收货地址"""

    full_name: str = Field(..., min_length=1, description="收货人")
    phone: str = Field(..., description="联系电话")
    address: str = Field(..., min_length=1, description="详细地址")
    city: Optional[str] = Field(None, description="城市")
    district: Optional[str] = Field(None, description="区县")

    @field_validator("full_name", "address")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("字段不能为空")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        v = v.strip()
        if not PHONE_PATTERN.match(v):
            raise ValueError("电话号码必须为10-11位数字")
        return v


class OrderItem(BaseModel):
    """订单商品快照，创建后不可修改"""

    model_config = ConfigDict(frozen=True)

    item_id: Optional[str] = Field(None, description="项目ID")
    product_id: str = Field(..., description="商品ID")
    name: str = Field(..., description="商品名称")
    image: Optional[str] = Field(None, description="商品图片")
    price: Decimal = Field(..., ge=0, description="下单时单价")
    quantity: int = Field(default=1, ge=1, description="数量")

    @property
    def subtotal(self) -> Decimal:
        """小计"""
        return self.price * self.quantity


class OrderItemRequest(BaseModel):
    """下单时的商品请求，价格和名称以商品库为准"""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    """创建订单请求模型"""

    items: List[OrderItemRequest] = Field(..., min_length=1, description="商品列表")
    shipping_address: ShippingAddress = Field(..., description="收货地址")
    payment_method: PaymentMethod = Field(default=PaymentMethod.COD, description="支付方式")
    discount_code: Optional[str] = Field(None, description="优惠码")


class Order(BaseModel):
    """订单基础模型"""

    order_id: str = Field(..., description="订单ID")
    user_id: Optional[str] = Field(None, description="用户ID")
    order_items: List[OrderItem] = Field(..., min_length=1, description="订单商品")
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = PaymentMethod.COD
    items_price: Decimal = Field(..., ge=0, description="商品总额")
    discount_code: Optional[str] = Field(None, description="优惠码")
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, description="优惠码折扣")
    shipping_fee: Decimal = Field(default=Decimal("0"), ge=0, description="运费")
    total_price: Decimal = Field(..., ge=0, description="应付总额")
    status: OrderStatus = Field(default=OrderStatus.PENDING, description="订单状态")
    rejection_reason: Optional[str] = Field(None, description="拒绝原因")
    is_paid: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def total_quantity(self) -> int:
        """订单中的商品总件数"""
        return sum(item.quantity for item in self.order_items)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class OrderRejectRequest(BaseModel):
    """拒绝订单请求"""

    reason: str = Field(default="", description="拒绝原因")


class OrderStatusUpdate(BaseModel):
    """推进订单状态请求"""

    status: OrderStatus


class OrderStatistics(BaseModel):
    """订单统计信息"""

    total_orders: int = 0
    status_breakdown: Dict[str, int] = Field(default_factory=dict)
    delivered_revenue: Decimal = Decimal("0")
    pending_value: Decimal = Decimal("0")
