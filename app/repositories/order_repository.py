"""
订单数据库操作层
"""

from typing import List, Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import select, update, and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatistics,
    PaymentMethod,
    ShippingAddress
)
from app.models.database.order_db import OrderDB, OrderItemDB


class OrderRepository:
    """订单数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_order_id(self, order_id: str) -> Optional[OrderDB]:
        """根据订单ID获取订单（包含订单项）"""
        result = await self.db.execute(
            select(OrderDB)
            .options(selectinload(OrderDB.order_items))
            .where(OrderDB.order_id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_status(self, order_id: str) -> Optional[str]:
        """只读取订单当前状态"""
        result = await self.db.execute(
            select(OrderDB.status).where(OrderDB.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def get_orders(
        self,
        status_filter: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[OrderDB]:
        """后台订单列表"""
        query = select(OrderDB).options(selectinload(OrderDB.order_items))
        if status_filter:
            query = query.where(OrderDB.status == status_filter)
        query = query.order_by(desc(OrderDB.created_at)).limit(limit).offset(offset)

        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_user_orders(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        status_filter: Optional[str] = None
    ) -> List[OrderDB]:
        """获取用户订单列表"""
        conditions = [OrderDB.user_id == user_id]

        if status_filter:
            conditions.append(OrderDB.status == status_filter)

        query = select(OrderDB).options(
            selectinload(OrderDB.order_items)
        ).where(
            and_(*conditions)
        ).order_by(desc(OrderDB.created_at)).limit(limit).offset(offset)

        result = await self.db.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def create_order_with_items(
        self,
        order_id: str,
        user_id: Optional[str],
        items: List[OrderItem],
        shipping_address: ShippingAddress,
        payment_method: PaymentMethod,
        items_price: Decimal,
        discount_amount: Decimal,
        shipping_fee: Decimal,
        total_price: Decimal,
        discount_code: Optional[str] = None
    ) -> OrderDB:
        """创建订单及订单项"""
        db_order = OrderDB(
            order_id=order_id,
            user_id=user_id,
            shipping_address=shipping_address.model_dump(),
            payment_method=payment_method.value,
            items_price=items_price,
            discount_amount=discount_amount,
            shipping_fee=shipping_fee,
            total_price=total_price,
            discount_code=discount_code,
            status=OrderStatus.PENDING.value,
            is_paid=False,
            order_items=[
                OrderItemDB(
                    item_id=str(uuid.uuid4()),
                    position=position,
                    product_id=item.product_id,
                    name=item.name,
                    image=item.image,
                    price=item.price,
                    quantity=item.quantity
                )
                for position, item in enumerate(items)
            ]
        )

        self.db.add(db_order)
        await self.db.flush()
        return db_order

    async def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        **values: Any
    ) -> bool:
        """
        条件更新订单状态：仅当当前状态等于 expected 时更新

        并发的确认/拒绝同一订单时，只有一个调用能命中该行
        """
        values.update(status=target.value, updated_at=datetime.now())

        result = await self.db.execute(
            update(OrderDB)
            .where(
                and_(
                    OrderDB.order_id == order_id,
                    OrderDB.status == expected.value
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_order_statistics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> OrderStatistics:
        """获取订单统计信息"""
        conditions = []
        if start_date:
            conditions.append(OrderDB.created_at >= start_date)
        if end_date:
            conditions.append(OrderDB.created_at <= end_date)

        query = select(
            OrderDB.status,
            func.count(OrderDB.order_id).label("count"),
            func.sum(OrderDB.total_price).label("amount")
        )
        if conditions:
            query = query.where(and_(*conditions))
        result = await self.db.execute(query.group_by(OrderDB.status))

        stats = OrderStatistics()
        for row in result.fetchall():
            stats.status_breakdown[row.status] = row.count
            stats.total_orders += row.count
            amount = Decimal(str(row.amount or 0))
            if row.status == OrderStatus.DELIVERED.value:
                stats.delivered_revenue = amount
            elif row.status == OrderStatus.PENDING.value:
                stats.pending_value = amount

        return stats

    def to_model(self, db_order: OrderDB) -> Order:
        """转换为Pydantic模型"""
        items = [
            OrderItem(
                item_id=item.item_id,
                product_id=item.product_id,
                name=item.name,
                image=item.image,
                price=item.price,
                quantity=item.quantity
            )
            for item in db_order.order_items
        ]

        return Order(
            order_id=db_order.order_id,
            user_id=db_order.user_id,
            order_items=items,
            shipping_address=ShippingAddress(**db_order.shipping_address),
            payment_method=db_order.payment_method,
            items_price=db_order.items_price,
            discount_code=db_order.discount_code,
            discount_amount=db_order.discount_amount,
            shipping_fee=db_order.shipping_fee,
            total_price=db_order.total_price,
            status=db_order.status,
            rejection_reason=db_order.rejection_reason,
            is_paid=db_order.is_paid,
            created_at=db_order.created_at,
            updated_at=db_order.updated_at,
            paid_at=db_order.paid_at,
            delivered_at=db_order.delivered_at,
            cancelled_at=db_order.cancelled_at
        )
