"""
门店数据库表创建与示例数据脚本
"""

import asyncio
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from app.core.config import settings
from app.core.database import Base, build_engine
from app.models.discount import DiscountCodeCreate, DiscountType
from app.repositories.discount_repository import DiscountRepository
from app.repositories.product_repository import ProductRepository

# 导入所有数据库模型以确保表被注册
import app.models.database  # noqa: F401


SAMPLE_PRODUCTS = [
    {"product_id": "iphone_15_128", "name": "iPhone 15 128GB", "price": Decimal("19990000"), "stock_quantity": 20},
    {"product_id": "galaxy_s24_256", "name": "Samsung Galaxy S24 256GB", "price": Decimal("18490000"), "stock_quantity": 15},
    {"product_id": "redmi_note_13", "name": "Xiaomi Redmi Note 13", "price": Decimal("4890000"), "stock_quantity": 40},
    {"product_id": "airpods_pro_2", "name": "AirPods Pro 2", "price": Decimal("5990000"), "stock_quantity": 8},
    {"product_id": "usb_c_cable", "name": "Cáp USB-C 1m", "price": Decimal("150000"), "stock_quantity": 100},
]


def sample_discounts(now: datetime):
    return [
        DiscountCodeCreate(
            code="WELCOME10",
            name="Chào mừng khách hàng mới",
            discount_type=DiscountType.PERCENTAGE,
            value=Decimal("10"),
            max_discount=Decimal("1000000"),
            min_order_value=Decimal("2000000"),
            start_date=now,
            end_date=now + timedelta(days=90),
            max_uses=500,
            max_uses_per_user=1
        ),
        DiscountCodeCreate(
            code="GIAM500K",
            name="Giảm 500K cho đơn từ 10 triệu",
            discount_type=DiscountType.FIXED_AMOUNT,
            value=Decimal("500000"),
            min_order_value=Decimal("10000000"),
            start_date=now,
            end_date=now + timedelta(days=30),
            max_uses=100,
            max_uses_per_user=2
        ),
        DiscountCodeCreate(
            code="FREESHIP",
            name="Miễn phí vận chuyển",
            discount_type=DiscountType.FREE_SHIPPING,
            value=Decimal("0"),
            start_date=now,
            end_date=now + timedelta(days=60),
            max_uses_per_user=5
        ),
    ]


async def create_tables(engine):
    """创建所有数据表"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        print("所有数据表创建成功")


async def create_indexes(engine):
    """创建额外的索引"""
    indexes = [
        "CREATE INDEX IF NOT EXISTS idx_orders_user_created ON orders(user_id, created_at);",
        "CREATE INDEX IF NOT EXISTS idx_orders_status_created ON orders(status, created_at);",
        "CREATE INDEX IF NOT EXISTS idx_discount_codes_status_end ON discount_codes(status, end_date);",
        "CREATE INDEX IF NOT EXISTS idx_redemptions_user ON discount_redemptions(discount_id, user_id);",
        "CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications(user_id, is_read);",
    ]

    async with engine.begin() as conn:
        for index_sql in indexes:
            await conn.execute(text(index_sql))
        print("所有索引创建成功")


async def insert_sample_data(session_maker):
    """插入示例商品和优惠码，已存在的跳过"""
    async with session_maker() as session:
        product_repo = ProductRepository(session)
        discount_repo = DiscountRepository(session)

        for product in SAMPLE_PRODUCTS:
            if await product_repo.get_by_product_id(product["product_id"]):
                print(f"商品已存在: {product['name']}")
                continue
            await product_repo.create(**product)
            print(f"插入商品: {product['name']}")

        for discount in sample_discounts(datetime.now()):
            if await discount_repo.get_by_code(discount.code):
                print(f"优惠码已存在: {discount.code}")
                continue
            await discount_repo.create(discount)
            print(f"插入优惠码: {discount.code}")

        await session.commit()


async def main():
    """主函数"""
    print("开始初始化门店数据库...")
    engine = build_engine(settings.database_url_computed)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        await create_tables(engine)
        await create_indexes(engine)
        await insert_sample_data(session_maker)
        print("门店数据库初始化完成")
    except Exception as e:
        print(f"初始化失败: {e}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
