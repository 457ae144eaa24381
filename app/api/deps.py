"""
API依赖注入
每个请求使用一个数据库会话，服务对象按请求组装
"""

from typing import List, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db_session
from app.core.redis import redis_manager
from app.repositories.discount_repository import DiscountRepository
from app.repositories.notification_repository import NotificationRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.product_repository import ProductRepository
from app.services.checkout_service import CheckoutService
from app.services.discount_ledger import DiscountLedger
from app.services.inventory_guard import InventoryGuard
from app.services.notification_sink import (
    CompositeNotificationSink,
    DatabaseNotificationSink,
    NotificationSink,
    RedisNotificationSink
)
from app.services.order_state_machine import OrderStateMachine


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> Optional[str]:
    """用户身份由上游网关通过请求头传入，游客为空"""
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


def get_discount_ledger(db: AsyncSession = Depends(get_db_session)) -> DiscountLedger:
    return DiscountLedger(DiscountRepository(db))


def get_notification_repository(db: AsyncSession = Depends(get_db_session)) -> NotificationRepository:
    return NotificationRepository(db)


def get_notification_sink(
    notification_repo: NotificationRepository = Depends(get_notification_repository)
) -> NotificationSink:
    sinks: List[NotificationSink] = []
    if settings.enable_db_notifications:
        sinks.append(DatabaseNotificationSink(notification_repo))
    if settings.enable_redis_notifications and redis_manager.redis_pool:
        sinks.append(RedisNotificationSink(redis_manager, settings.notification_channel))
    return CompositeNotificationSink(sinks)


def get_order_state_machine(
    db: AsyncSession = Depends(get_db_session),
    discount_ledger: DiscountLedger = Depends(get_discount_ledger),
    notification_sink: NotificationSink = Depends(get_notification_sink)
) -> OrderStateMachine:
    return OrderStateMachine(
        order_repo=OrderRepository(db),
        inventory_guard=InventoryGuard(ProductRepository(db)),
        discount_ledger=discount_ledger,
        notification_sink=notification_sink
    )


def get_checkout_service(
    db: AsyncSession = Depends(get_db_session),
    discount_ledger: DiscountLedger = Depends(get_discount_ledger)
) -> CheckoutService:
    return CheckoutService(
        order_repo=OrderRepository(db),
        product_repo=ProductRepository(db),
        discount_ledger=discount_ledger
    )
