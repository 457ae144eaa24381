"""
结算服务
计算订单金额、校验优惠码并创建待确认订单
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from app.core.config import settings
from app.core.exceptions import DiscountNotApplicableError, ProductNotFoundError
from app.models.discount import DiscountValidation
from app.models.order import Order, OrderCreate, OrderItem
from app.repositories.order_repository import OrderRepository
from app.repositories.product_repository import ProductRepository
from app.services.discount_ledger import DiscountLedger

logger = logging.getLogger(__name__)


class CheckoutService:
    """结算服务"""

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        discount_ledger: DiscountLedger,
        shipping_fee: Decimal = settings.shipping_fee,
        free_shipping_threshold: Decimal = settings.free_shipping_threshold
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.discount_ledger = discount_ledger
        self.shipping_fee = shipping_fee
        self.free_shipping_threshold = free_shipping_threshold
        self.db = order_repo.db

    async def apply_discount(
        self,
        code: str,
        order_value: Decimal,
        user_id: Optional[str] = None
    ) -> DiscountValidation:
        """结算页预览优惠码，不记账"""
        return await self.discount_ledger.validate(code, user_id, order_value)

    def calculate_shipping_fee(self, payable: Decimal, waive_shipping: bool = False) -> Decimal:
        """折后商品金额达到门槛或使用免运费优惠码时免运费"""
        if waive_shipping or payable >= self.free_shipping_threshold:
            return Decimal("0")
        return self.shipping_fee

    async def build_items(self, order_data: OrderCreate) -> Tuple[List[OrderItem], Decimal]:
        """按当前商品信息生成订单快照，返回 (订单项, 商品总额)"""
        products = await self.product_repo.get_by_product_ids(
            item.product_id for item in order_data.items
        )

        items = []
        for request_item in order_data.items:
            product = products.get(request_item.product_id)
            if not product:
                raise ProductNotFoundError(request_item.product_id)
            items.append(OrderItem(
                product_id=product.product_id,
                name=product.name,
                image=product.image,
                price=product.price,
                quantity=request_item.quantity
            ))

        items_price = sum((item.subtotal for item in items), Decimal("0"))
        return items, items_price

    async def create_order(self, user_id: Optional[str], order_data: OrderCreate) -> Order:
        """
        创建待确认订单

        此时只校验优惠码，不扣库存也不记账，两者都在确认订单时完成
        """
        items, items_price = await self.build_items(order_data)

        discount_code = None
        discount_amount = Decimal("0")
        waive_shipping = False

        if order_data.discount_code:
            validation = await self.discount_ledger.validate(
                order_data.discount_code, user_id, items_price
            )
            if not validation.valid:
                raise DiscountNotApplicableError(
                    validation.code, validation.reason, validation.message
                )
            discount_code = validation.code
            discount_amount = validation.discount_amount
            waive_shipping = validation.waive_shipping

        payable = max(items_price - discount_amount, Decimal("0"))
        shipping_fee = self.calculate_shipping_fee(payable, waive_shipping)
        total_price = payable + shipping_fee

        order_id = f"ORDER_{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8].upper()}"

        try:
            await self.order_repo.create_order_with_items(
                order_id=order_id,
                user_id=user_id,
                items=items,
                shipping_address=order_data.shipping_address,
                payment_method=order_data.payment_method,
                items_price=items_price,
                discount_amount=discount_amount,
                shipping_fee=shipping_fee,
                total_price=total_price,
                discount_code=discount_code
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"订单已创建: {order_id}, 用户: {user_id}, 应付: {total_price}")

        db_order = await self.order_repo.get_by_order_id(order_id)
        return self.order_repo.to_model(db_order)
