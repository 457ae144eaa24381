"""
订单事件通知渠道
状态机只依赖 NotificationSink 协议，具体实现可以写库、发Redis或组合使用
"""

import logging
from typing import Iterable, List, Protocol, runtime_checkable

from app.core.redis import RedisManager
from app.models.notification import OrderEvent
from app.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """订单事件接收方"""

    async def emit(self, event: OrderEvent) -> None:
        ...


class DatabaseNotificationSink:
    """把事件写入 notifications 表，供用户在站内查看"""

    def __init__(self, notification_repo: NotificationRepository):
        self.notification_repo = notification_repo

    async def emit(self, event: OrderEvent) -> None:
        if not event.user_id:
            logger.debug(f"游客订单不写站内通知: {event.order_id}")
            return

        db = self.notification_repo.db
        try:
            await self.notification_repo.create_from_event(event)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.debug(f"站内通知已写入: {event.event.value} {event.order_id}")


class RedisNotificationSink:
    """把事件发布到Redis频道，由外部的推送/邮件服务订阅"""

    def __init__(self, redis: RedisManager, channel: str):
        self.redis = redis
        self.channel = channel

    async def emit(self, event: OrderEvent) -> None:
        payload = event.model_dump(mode="json")
        payload["message"] = event.message
        receivers = await self.redis.publish(self.channel, payload)
        logger.debug(f"订单事件已发布到 {self.channel}: {event.event.value}, 订阅者 {receivers}")


class CompositeNotificationSink:
    """
    依次调用多个通知渠道

    事件在状态变更提交之后才发出，某个渠道失败只记录日志，
    不影响其它渠道，也不会回滚已经提交的订单状态
    """

    def __init__(self, sinks: Iterable[NotificationSink]):
        self.sinks: List[NotificationSink] = list(sinks)

    async def emit(self, event: OrderEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.emit(event)
            except Exception as e:
                logger.error(
                    f"通知发送失败 {type(sink).__name__}: {event.event.value} {event.order_id}: {e}"
                )
