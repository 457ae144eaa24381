"""
优惠码数据库操作层
"""

from typing import List, Optional, Dict, Any
from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import select, update, delete, and_, or_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.discount import (
    DiscountCode,
    DiscountCodeCreate,
    DiscountRedemption,
    normalize_code
)
from app.models.database.discount_db import DiscountCodeDB, DiscountRedemptionDB
from app.models.database.order_db import OrderDB


class DiscountRepository:
    """优惠码数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> Optional[DiscountCodeDB]:
        """根据优惠码获取（大小写不敏感）"""
        result = await self.db.execute(
            select(DiscountCodeDB)
            .where(DiscountCodeDB.code == normalize_code(code))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_discount_id(self, discount_id: str) -> Optional[DiscountCodeDB]:
        """根据ID获取优惠码"""
        result = await self.db.execute(
            select(DiscountCodeDB)
            .where(DiscountCodeDB.discount_id == discount_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_codes(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[DiscountCodeDB]:
        """后台优惠码列表"""
        conditions = []
        if status:
            conditions.append(DiscountCodeDB.status == status)
        if search:
            keyword = f"%{search.strip()}%"
            conditions.append(
                or_(
                    DiscountCodeDB.code.ilike(keyword),
                    DiscountCodeDB.name.ilike(keyword)
                )
            )

        query = select(DiscountCodeDB).execution_options(populate_existing=True)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(desc(DiscountCodeDB.created_at)).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_public_codes(self, current_time: Optional[datetime] = None) -> List[DiscountCodeDB]:
        """获取当前可展示给顾客的优惠码"""
        if current_time is None:
            current_time = datetime.now()

        query = select(DiscountCodeDB).where(
            and_(
                DiscountCodeDB.status == "active",
                DiscountCodeDB.start_date <= current_time,
                DiscountCodeDB.end_date >= current_time,
                or_(
                    DiscountCodeDB.max_uses.is_(None),
                    DiscountCodeDB.used_count < DiscountCodeDB.max_uses
                )
            )
        ).order_by(DiscountCodeDB.end_date).execution_options(populate_existing=True)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create(self, data: DiscountCodeCreate) -> DiscountCodeDB:
        """创建优惠码"""
        db_code = DiscountCodeDB(
            discount_id=str(uuid.uuid4()),
            code=data.code,
            name=data.name,
            description=data.description,
            discount_type=data.discount_type.value,
            value=data.value,
            max_discount=data.max_discount,
            min_order_value=data.min_order_value,
            start_date=data.start_date,
            end_date=data.end_date,
            max_uses=data.max_uses,
            max_uses_per_user=data.max_uses_per_user,
            used_count=0,
            status=data.status.value
        )
        self.db.add(db_code)
        await self.db.flush()
        return db_code

    async def update(self, discount_id: str, values: Dict[str, Any]) -> bool:
        """更新优惠码字段（不包括使用次数）"""
        values = {k: v for k, v in values.items() if k not in ("used_count", "discount_id", "code")}
        if not values:
            return True

        values["updated_at"] = datetime.now()
        result = await self.db.execute(
            update(DiscountCodeDB)
            .where(DiscountCodeDB.discount_id == discount_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def delete(self, discount_id: str) -> bool:
        """删除优惠码及其兑换记录"""
        await self.db.execute(
            delete(DiscountRedemptionDB)
            .where(DiscountRedemptionDB.discount_id == discount_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            delete(DiscountCodeDB)
            .where(DiscountCodeDB.discount_id == discount_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def increment_used_count(self, discount_id: str) -> bool:
        """条件递增使用次数：max_uses 为空或 used_count < max_uses 时才递增"""
        result = await self.db.execute(
            update(DiscountCodeDB)
            .where(
                and_(
                    DiscountCodeDB.discount_id == discount_id,
                    or_(
                        DiscountCodeDB.max_uses.is_(None),
                        DiscountCodeDB.used_count < DiscountCodeDB.max_uses
                    )
                )
            )
            .values(
                used_count=DiscountCodeDB.used_count + 1,
                updated_at=datetime.now()
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_user_redemptions(self, discount_id: str, user_id: str) -> int:
        """获取用户对特定优惠码的兑换次数"""
        result = await self.db.execute(
            select(func.count(DiscountRedemptionDB.redemption_id)).where(
                and_(
                    DiscountRedemptionDB.discount_id == discount_id,
                    DiscountRedemptionDB.user_id == user_id
                )
            )
        )
        return result.scalar() or 0

    async def count_pending_orders(self, code: str) -> int:
        """统计仍引用该优惠码的待确认订单数"""
        result = await self.db.execute(
            select(func.count(OrderDB.order_id)).where(
                and_(
                    OrderDB.discount_code == normalize_code(code),
                    OrderDB.status == "pending"
                )
            )
        )
        return result.scalar() or 0

    async def add_redemption(
        self,
        db_code: DiscountCodeDB,
        user_id: Optional[str],
        order_value: Decimal,
        discount_amount: Decimal,
        order_id: Optional[str] = None
    ) -> DiscountRedemptionDB:
        """追加兑换记录"""
        redemption = DiscountRedemptionDB(
            redemption_id=str(uuid.uuid4()),
            discount_id=db_code.discount_id,
            code=db_code.code,
            user_id=user_id,
            order_id=order_id,
            order_value=order_value,
            discount_amount=discount_amount,
            used_at=datetime.now()
        )
        self.db.add(redemption)
        await self.db.flush()
        return redemption

    async def get_redemptions(
        self,
        discount_id: str,
        limit: int = 20,
        offset: int = 0
    ) -> List[DiscountRedemptionDB]:
        """获取优惠码兑换记录"""
        result = await self.db.execute(
            select(DiscountRedemptionDB)
            .where(DiscountRedemptionDB.discount_id == discount_id)
            .order_by(desc(DiscountRedemptionDB.used_at))
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def get_usage_summary(self, discount_id: str) -> Dict[str, Any]:
        """获取优惠码兑换汇总"""
        result = await self.db.execute(
            select(
                func.count(DiscountRedemptionDB.redemption_id).label("total_usage"),
                func.count(func.distinct(DiscountRedemptionDB.user_id)).label("unique_users"),
                func.sum(DiscountRedemptionDB.order_value).label("total_order_value")
            ).where(DiscountRedemptionDB.discount_id == discount_id)
        )
        row = result.fetchone()
        return {
            "total_usage": row.total_usage or 0,
            "unique_users": row.unique_users or 0,
            "total_order_value": Decimal(str(row.total_order_value or 0))
        }

    def to_model(self, db_code: DiscountCodeDB) -> DiscountCode:
        """转换为Pydantic模型"""
        return DiscountCode(
            discount_id=db_code.discount_id,
            code=db_code.code,
            name=db_code.name,
            description=db_code.description,
            discount_type=db_code.discount_type,
            value=db_code.value,
            max_discount=db_code.max_discount or Decimal("0"),
            min_order_value=db_code.min_order_value or Decimal("0"),
            start_date=db_code.start_date,
            end_date=db_code.end_date,
            max_uses=db_code.max_uses,
            max_uses_per_user=db_code.max_uses_per_user,
            used_count=db_code.used_count,
            status=db_code.status,
            created_at=db_code.created_at,
            updated_at=db_code.updated_at
        )

    def to_redemption_model(self, db_redemption: DiscountRedemptionDB) -> DiscountRedemption:
        return DiscountRedemption(
            redemption_id=db_redemption.redemption_id,
            discount_id=db_redemption.discount_id,
            code=db_redemption.code,
            user_id=db_redemption.user_id,
            order_id=db_redemption.order_id,
            order_value=db_redemption.order_value,
            discount_amount=db_redemption.discount_amount,
            used_at=db_redemption.used_at
        )
