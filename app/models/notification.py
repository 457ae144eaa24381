"""
订单事件与通知模型
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from enum import Enum


class OrderEventType(str, Enum):
    """订单事件类型"""
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_REJECTED = "order_rejected"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"


EVENT_MESSAGES = {
    OrderEventType.ORDER_CONFIRMED: "您的订单 {order_id} 已确认，正在备货",
    OrderEventType.ORDER_REJECTED: "您的订单 {order_id} 已被拒绝：{reason}",
    OrderEventType.ORDER_SHIPPED: "您的订单 {order_id} 正在配送中",
    OrderEventType.ORDER_DELIVERED: "您的订单 {order_id} 已送达",
}


class OrderEvent(BaseModel):
    """发送给通知渠道的订单事件"""

    event: OrderEventType
    order_id: str
    user_id: Optional[str] = None
    reason: Optional[str] = None
    occurred_at: datetime = Field(default_factory=datetime.now)

    @property
    def message(self) -> str:
        return EVENT_MESSAGES[self.event].format(order_id=self.order_id, reason=self.reason or "")


class Notification(BaseModel):
    """用户通知"""

    notification_id: str
    user_id: Optional[str] = None
    order_id: str
    event: OrderEventType
    message: str
    reason: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None
