"""
用户通知数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, Text, Boolean, DateTime
from app.core.database import Base


class NotificationDB(Base):
    """用户通知表"""

    __tablename__ = "notifications"

    notification_id = Column(String(50), primary_key=True, comment="通知ID")
    user_id = Column(String(50), index=True, comment="接收用户ID")
    order_id = Column(String(50), nullable=False, index=True, comment="关联订单ID")
    event = Column(String(30), nullable=False, comment="事件类型")
    message = Column(Text, nullable=False, comment="通知内容")
    reason = Column(Text, comment="拒绝原因")
    is_read = Column(Boolean, nullable=False, default=False, comment="是否已读")
    created_at = Column(DateTime, default=datetime.now, index=True, comment="创建时间")

    __table_args__ = (
        {'comment': '用户通知表'}
    )
