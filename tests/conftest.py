"""
测试配置文件 - pytest fixtures和共用配置
"""

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import app.models.database  # noqa: F401  注册全部数据表
from app.core.database import Base, build_engine
from app.models.discount import DiscountCodeCreate, DiscountStatus, DiscountType
from app.models.order import OrderCreate, OrderItemRequest, PaymentMethod, ShippingAddress
from app.repositories.discount_repository import DiscountRepository
from app.repositories.order_repository import OrderRepository
from app.repositories.product_repository import ProductRepository
from app.services.checkout_service import CheckoutService
from app.services.discount_ledger import DiscountLedger
from app.services.inventory_guard import InventoryGuard
from app.services.order_state_machine import OrderStateMachine


@pytest_asyncio.fixture(scope="function")
async def test_db_engine(tmp_path):
    """测试数据库引擎 - 每个测试一个临时SQLite文件，支持多会话并发"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    """会话工厂，并发测试中每个任务使用独立会话"""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """测试数据库会话"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def notification_sink():
    """记录事件的通知渠道"""
    sink = AsyncMock()
    sink.emit = AsyncMock()
    return sink


def build_state_machine(session: AsyncSession, sink=None) -> OrderStateMachine:
    """按会话组装订单状态机"""
    return OrderStateMachine(
        order_repo=OrderRepository(session),
        inventory_guard=InventoryGuard(ProductRepository(session)),
        discount_ledger=DiscountLedger(DiscountRepository(session)),
        notification_sink=sink
    )


def build_checkout(session: AsyncSession) -> CheckoutService:
    return CheckoutService(
        order_repo=OrderRepository(session),
        product_repo=ProductRepository(session),
        discount_ledger=DiscountLedger(DiscountRepository(session)),
        shipping_fee=Decimal("30000"),
        free_shipping_threshold=Decimal("500000")
    )


@pytest.fixture
def state_machine(db_session, notification_sink):
    return build_state_machine(db_session, notification_sink)


@pytest.fixture
def checkout_service(db_session):
    return build_checkout(db_session)


@pytest.fixture
def discount_ledger(db_session):
    return DiscountLedger(DiscountRepository(db_session))


@pytest.fixture
def shipping_address():
    """示例收货地址"""
    return ShippingAddress(
        full_name="Nguyen Van An",
        phone="0901234567",
        address="12 Le Loi",
        city="Ho Chi Minh",
        district="Quan 1"
    )


@pytest.fixture
def make_product(db_session):
    """创建商品"""
    async def _make(
        product_id: str,
        stock: int = 10,
        price: Decimal = Decimal("1000000"),
        name: Optional[str] = None
    ):
        product = await ProductRepository(db_session).create(
            name=name or f"Phone {product_id}",
            price=price,
            stock_quantity=stock,
            image=f"/images/{product_id}.png",
            product_id=product_id
        )
        await db_session.commit()
        return product

    return _make


@pytest.fixture
def make_discount(db_session):
    """创建优惠码，默认是一个当前有效的固定金额优惠码"""
    async def _make(
        code: str = "SALE10",
        discount_type: DiscountType = DiscountType.FIXED_AMOUNT,
        value: Decimal = Decimal("500000"),
        max_discount: Decimal = Decimal("0"),
        min_order_value: Decimal = Decimal("0"),
        max_uses: Optional[int] = None,
        max_uses_per_user: int = 1,
        status: DiscountStatus = DiscountStatus.ACTIVE,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ):
        now = datetime.now()
        data = DiscountCodeCreate(
            code=code,
            name=f"活动 {code}",
            discount_type=discount_type,
            value=value,
            max_discount=max_discount,
            min_order_value=min_order_value,
            start_date=start_date or now - timedelta(days=1),
            end_date=end_date or now + timedelta(days=30),
            max_uses=max_uses,
            max_uses_per_user=max_uses_per_user,
            status=status
        )
        discount = await DiscountRepository(db_session).create(data)
        await db_session.commit()
        return discount

    return _make


@pytest.fixture
def place_order(db_session, shipping_address):
    """通过结算服务创建待确认订单"""
    async def _place(
        items: List[Tuple[str, int]],
        user_id: Optional[str] = "user_001",
        discount_code: Optional[str] = None,
        payment_method: PaymentMethod = PaymentMethod.COD
    ):
        order_data = OrderCreate(
            items=[OrderItemRequest(product_id=pid, quantity=qty) for pid, qty in items],
            shipping_address=shipping_address,
            payment_method=payment_method,
            discount_code=discount_code
        )
        return await build_checkout(db_session).create_order(user_id, order_data)

    return _place


@pytest.fixture
def state_machine_factory():
    """并发测试用：为独立会话组装状态机"""
    return build_state_machine
