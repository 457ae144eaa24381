"""
用户通知数据库操作层
"""

from typing import List
import uuid

from sqlalchemy import select, update, and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification, OrderEvent
from app.models.database.notification_db import NotificationDB


class NotificationRepository:
    """用户通知数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_from_event(self, event: OrderEvent) -> NotificationDB:
        """根据订单事件写入一条通知"""
        db_notification = NotificationDB(
            notification_id=str(uuid.uuid4()),
            user_id=event.user_id,
            order_id=event.order_id,
            event=event.event.value,
            message=event.message,
            reason=event.reason,
            is_read=False,
            created_at=event.occurred_at
        )
        self.db.add(db_notification)
        await self.db.flush()
        return db_notification

    async def get_user_notifications(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False
    ) -> List[NotificationDB]:
        """获取用户通知列表"""
        conditions = [NotificationDB.user_id == user_id]
        if unread_only:
            conditions.append(NotificationDB.is_read.is_(False))

        result = await self.db.execute(
            select(NotificationDB)
            .where(and_(*conditions))
            .order_by(desc(NotificationDB.created_at))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_order_notifications(self, order_id: str) -> List[NotificationDB]:
        """获取订单相关的全部通知"""
        result = await self.db.execute(
            select(NotificationDB)
            .where(NotificationDB.order_id == order_id)
            .order_by(NotificationDB.created_at)
        )
        return list(result.scalars().all())

    async def count_unread(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(NotificationDB.notification_id)).where(
                and_(
                    NotificationDB.user_id == user_id,
                    NotificationDB.is_read.is_(False)
                )
            )
        )
        return result.scalar() or 0

    async def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        """标记通知为已读，只能标记自己的通知"""
        result = await self.db.execute(
            update(NotificationDB)
            .where(
                and_(
                    NotificationDB.notification_id == notification_id,
                    NotificationDB.user_id == user_id
                )
            )
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def to_model(self, db_notification: NotificationDB) -> Notification:
        """转换为Pydantic模型"""
        return Notification(
            notification_id=db_notification.notification_id,
            user_id=db_notification.user_id,
            order_id=db_notification.order_id,
            event=db_notification.event,
            message=db_notification.message,
            reason=db_notification.reason,
            is_read=db_notification.is_read,
            created_at=db_notification.created_at
        )
