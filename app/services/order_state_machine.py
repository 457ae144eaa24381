"""
订单状态机
pending -> processing -> shipping -> delivered，以及 pending -> cancelled

每次状态变更都在一个数据库事务内完成：
先用条件更新抢占订单状态，再执行库存扣减和优惠码兑换，最后提交。
任何一步失败都回滚整个事务，订单、库存、优惠码都保持原样。
通知在提交成功之后发出，失败的变更不会产生通知。
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from app.core.exceptions import (
    InvalidTransitionError,
    OrderNotFoundError,
    RejectReasonRequiredError
)
from app.models.notification import OrderEvent, OrderEventType
from app.models.order import (
    Order,
    OrderStatistics,
    OrderStatus,
    PAY_ON_DELIVERY,
    can_transition
)
from app.models.product import StockAdjustment
from app.repositories.order_repository import OrderRepository
from app.services.discount_ledger import DiscountLedger
from app.services.inventory_guard import InventoryGuard
from app.services.notification_sink import NotificationSink

logger = logging.getLogger(__name__)


# advance 只负责发货和送达，确认和拒绝有各自的入口
ADVANCE_PREDECESSORS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.SHIPPING: OrderStatus.PROCESSING,
    OrderStatus.DELIVERED: OrderStatus.SHIPPING,
}

ADVANCE_EVENTS: Dict[OrderStatus, OrderEventType] = {
    OrderStatus.SHIPPING: OrderEventType.ORDER_SHIPPED,
    OrderStatus.DELIVERED: OrderEventType.ORDER_DELIVERED,
}


class OrderStateMachine:
    """订单状态机"""

    def __init__(
        self,
        order_repo: OrderRepository,
        inventory_guard: InventoryGuard,
        discount_ledger: DiscountLedger,
        notification_sink: Optional[NotificationSink] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.order_repo = order_repo
        self.inventory_guard = inventory_guard
        self.discount_ledger = discount_ledger
        self.notification_sink = notification_sink
        self.clock = clock
        self.db = order_repo.db

    async def get_order(self, order_id: str) -> Order:
        """获取订单，不存在时抛出 OrderNotFoundError"""
        db_order = await self.order_repo.get_by_order_id(order_id)
        if not db_order:
            raise OrderNotFoundError(order_id)
        return self.order_repo.to_model(db_order)

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Order]:
        db_orders = await self.order_repo.get_orders(
            status_filter=status.value if status else None,
            limit=limit,
            offset=offset
        )
        return [self.order_repo.to_model(db_order) for db_order in db_orders]

    async def list_user_orders(
        self,
        user_id: str,
        status: Optional[OrderStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[Order]:
        db_orders = await self.order_repo.get_user_orders(
            user_id=user_id,
            limit=limit,
            offset=offset,
            status_filter=status.value if status else None
        )
        return [self.order_repo.to_model(db_order) for db_order in db_orders]

    async def get_order_statistics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> OrderStatistics:
        return await self.order_repo.get_order_statistics(start_date, end_date)

    async def confirm(self, order_id: str) -> Order:
        """确认订单：扣减库存、兑换优惠码，然后进入 processing"""
        order = await self.get_order(order_id)
        self._ensure_allowed(order, OrderStatus.PROCESSING)

        try:
            await self._compare_and_set(order_id, OrderStatus.PENDING, OrderStatus.PROCESSING)

            await self.inventory_guard.decrement(
                StockAdjustment(product_id=item.product_id, quantity=item.quantity)
                for item in order.order_items
            )

            if order.discount_code:
                await self.discount_ledger.redeem(
                    order.discount_code,
                    user_id=order.user_id,
                    order_value=order.items_price,
                    order_id=order_id
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"订单已确认: {order_id}")
        return await self._finish(order_id, OrderEventType.ORDER_CONFIRMED)

    async def reject(self, order_id: str, reason: str) -> Order:
        """拒绝待确认订单，必须填写原因，不触碰库存和优惠码"""
        reason = (reason or "").strip()
        if not reason:
            raise RejectReasonRequiredError(order_id)

        order = await self.get_order(order_id)
        self._ensure_allowed(order, OrderStatus.CANCELLED)

        try:
            await self._compare_and_set(
                order_id,
                OrderStatus.PENDING,
                OrderStatus.CANCELLED,
                rejection_reason=reason,
                cancelled_at=self.clock()
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"订单已拒绝: {order_id}, 原因: {reason}")
        return await self._finish(order_id, OrderEventType.ORDER_REJECTED, reason=reason)

    async def advance(self, order_id: str, target: OrderStatus) -> Order:
        """推进已确认订单：processing -> shipping -> delivered"""
        target = OrderStatus(target)
        order = await self.get_order(order_id)

        expected = ADVANCE_PREDECESSORS.get(target)
        if expected is None or order.status != expected:
            logger.warning(f"拒绝非法状态变更: {order_id} {order.status.value} -> {target.value}")
            raise InvalidTransitionError(order_id, order.status.value, target.value)

        values: Dict[str, Any] = {}
        if target == OrderStatus.DELIVERED:
            now = self.clock()
            values["delivered_at"] = now
            # 货到付款的订单在送达时收款
            if order.payment_method in PAY_ON_DELIVERY and not order.is_paid:
                values["is_paid"] = True
                values["paid_at"] = now

        try:
            await self._compare_and_set(order_id, expected, target, **values)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"订单状态推进: {order_id} {expected.value} -> {target.value}")
        return await self._finish(order_id, ADVANCE_EVENTS[target])

    def _ensure_allowed(self, order: Order, target: OrderStatus) -> None:
        if not can_transition(order.status, target):
            logger.warning(f"拒绝非法状态变更: {order.order_id} {order.status.value} -> {target.value}")
            raise InvalidTransitionError(order.order_id, order.status.value, target.value)

    async def _compare_and_set(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        **values: Any
    ) -> None:
        """条件更新状态，未命中说明已被并发请求抢先变更"""
        if await self.order_repo.compare_and_set_status(order_id, expected, target, **values):
            return

        current = await self.order_repo.get_status(order_id)
        if current is None:
            raise OrderNotFoundError(order_id)
        logger.info(f"订单状态已被并发修改: {order_id}, 当前 {current}")
        raise InvalidTransitionError(order_id, current, target.value)

    async def _finish(
        self,
        order_id: str,
        event_type: OrderEventType,
        reason: Optional[str] = None
    ) -> Order:
        """读取提交后的订单并发出通知"""
        order = await self.get_order(order_id)

        if self.notification_sink is not None:
            event = OrderEvent(
                event=event_type,
                order_id=order_id,
                user_id=order.user_id,
                reason=reason
            )
            try:
                await self.notification_sink.emit(event)
            except Exception as e:
                logger.error(f"订单通知发送失败: {order_id} {event_type.value}: {e}")

        return order
