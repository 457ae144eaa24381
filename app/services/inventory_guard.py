"""
库存守卫
对一组商品做全有或全无的库存扣减
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from app.core.exceptions import (
    InsufficientStockError,
    InventoryConflictError,
    ProductNotFoundError
)
from app.models.product import Product, StockAdjustment
from app.repositories.product_repository import ProductRepository

logger = logging.getLogger(__name__)


class InventoryGuard:
    """
    库存守卫

    每个商品用一条条件更新扣减，扣减和校验在同一条语句里完成，
    不存在先读库存再写回的窗口。扣减运行在调用方的事务内：
    任一商品失败时抛出异常，调用方回滚事务后之前的扣减全部撤销。
    商品按ID排序处理，多个订单并发扣减时加锁顺序一致。
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    @staticmethod
    def merge_adjustments(items: Iterable[StockAdjustment]) -> Dict[str, int]:
        """合并同一商品的多行数量"""
        merged: Dict[str, int] = defaultdict(int)
        for item in items:
            if item.quantity <= 0:
                raise ValueError(f"扣减数量必须为正数: {item.product_id}")
            merged[item.product_id] += item.quantity
        return dict(merged)

    async def decrement(self, items: Iterable[StockAdjustment]) -> Dict[str, int]:
        """扣减库存，返回每个商品实际扣减的数量"""
        merged = self.merge_adjustments(items)

        for product_id in sorted(merged):
            quantity = merged[product_id]
            if await self.product_repo.decrement_stock(product_id, quantity):
                continue

            # 条件更新未命中，区分库存不足和记录不存在
            available = await self.product_repo.get_stock(product_id)
            if available is None:
                logger.warning(f"扣减库存时商品记录不存在: {product_id}")
                raise InventoryConflictError(product_id)

            logger.info(f"库存不足: {product_id}, 需要 {quantity}, 剩余 {available}")
            raise InsufficientStockError([{
                "product_id": product_id,
                "requested": quantity,
                "available": available
            }])

        logger.debug(f"库存扣减完成: {merged}")
        return merged

    async def get_stock(self, product_id: str) -> int:
        """查询当前库存，商品不存在时抛出 ProductNotFoundError"""
        available = await self.product_repo.get_stock(product_id)
        if available is None:
            raise ProductNotFoundError(product_id)
        return available

    async def list_low_stock(self, threshold: int = 5, limit: int = 50) -> List[Product]:
        """库存不高于阈值的商品，供后台补货参考"""
        db_products = await self.product_repo.list_low_stock(threshold=threshold, limit=limit)
        return [self.product_repo.to_model(db_product) for db_product in db_products]
