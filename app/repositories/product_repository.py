"""
商品库存数据库操作层
库存只通过条件更新扣减，不在应用内存中先读后写
"""

from typing import Dict, Iterable, List, Optional
from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import select, update, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.product import Product
from app.models.database.product_db import ProductDB


class ProductRepository:
    """商品数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_product_id(self, product_id: str) -> Optional[ProductDB]:
        """根据商品ID获取商品"""
        result = await self.db.execute(
            select(ProductDB)
            .where(ProductDB.product_id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_product_ids(self, product_ids: Iterable[str]) -> Dict[str, ProductDB]:
        """批量获取商品，返回 product_id -> ProductDB"""
        ids = list(set(product_ids))
        if not ids:
            return {}

        result = await self.db.execute(
            select(ProductDB)
            .where(ProductDB.product_id.in_(ids))
            .execution_options(populate_existing=True)
        )
        return {product.product_id: product for product in result.scalars().all()}

    async def get_stock(self, product_id: str) -> Optional[int]:
        """获取当前库存，商品不存在时返回None"""
        result = await self.db.execute(
            select(ProductDB.stock_quantity).where(ProductDB.product_id == product_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        name: str,
        price: Decimal,
        stock_quantity: int = 0,
        image: Optional[str] = None,
        product_id: Optional[str] = None,
        status: str = "active"
    ) -> ProductDB:
        """创建商品（目录管理和测试数据使用）"""
        db_product = ProductDB(
            product_id=product_id or str(uuid.uuid4()),
            name=name,
            price=price,
            image=image,
            stock_quantity=stock_quantity,
            status=status
        )
        self.db.add(db_product)
        await self.db.flush()
        return db_product

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """条件扣减库存：仅当 stock_quantity >= quantity 时扣减，返回是否命中"""
        result = await self.db.execute(
            update(ProductDB)
            .where(
                and_(
                    ProductDB.product_id == product_id,
                    ProductDB.stock_quantity >= quantity
                )
            )
            .values(
                stock_quantity=ProductDB.stock_quantity - quantity,
                updated_at=datetime.now()
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_low_stock(self, threshold: int = 5, limit: int = 50) -> List[ProductDB]:
        """获取库存低于阈值的商品（后台库存页面）"""
        result = await self.db.execute(
            select(ProductDB)
            .where(ProductDB.stock_quantity <= threshold)
            .order_by(ProductDB.stock_quantity, ProductDB.name)
            .limit(limit)
        )
        return list(result.scalars().all())

    def to_model(self, db_product: ProductDB) -> Product:
        """转换为Pydantic模型"""
        return Product(
            product_id=db_product.product_id,
            name=db_product.name,
            price=db_product.price,
            image=db_product.image,
            stock_quantity=db_product.stock_quantity,
            status=db_product.status,
            created_at=db_product.created_at,
            updated_at=db_product.updated_at
        )
