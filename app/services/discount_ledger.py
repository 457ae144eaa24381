"""
优惠码账本服务
负责优惠码的校验、折扣计算、兑换记账以及后台管理
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from app.core.exceptions import (
    DiscountInUseError,
    DiscountNotFoundError,
    DiscountRedemptionError,
    ErrorKind
)
from app.models.discount import (
    DiscountCode,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    DiscountRedemption,
    DiscountStats,
    DiscountStatus,
    DiscountType,
    DiscountValidation,
    normalize_code,
    waives_shipping
)
from app.repositories.discount_repository import DiscountRepository

logger = logging.getLogger(__name__)


class DiscountLedger:
    """优惠码账本"""

    def __init__(
        self,
        discount_repo: DiscountRepository,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.discount_repo = discount_repo
        self.clock = clock

    @staticmethod
    def check_eligibility(
        discount: DiscountCode,
        order_value: Decimal,
        now: datetime,
        user_redemptions: Optional[int] = None
    ) -> Optional[DiscountValidation]:
        """
        按固定顺序检查优惠码，返回第一个失败项，全部通过返回None

        顺序：停用 -> 未开始 -> 已过期 -> 名额用尽 -> 未达最低金额 -> 超出单用户次数。
        状态为 active 但已过结束时间的优惠码按过期处理。
        """
        code = discount.code

        if discount.status != DiscountStatus.ACTIVE:
            return DiscountValidation.failure(
                code, ErrorKind.DISCOUNT_INACTIVE, "优惠码已停用"
            )

        if now < discount.start_date:
            return DiscountValidation.failure(
                code, ErrorKind.DISCOUNT_NOT_STARTED, "优惠码活动尚未开始"
            )

        if now > discount.end_date:
            return DiscountValidation.failure(
                code, ErrorKind.DISCOUNT_EXPIRED, "优惠码已过期"
            )

        # max_uses 为 0 表示不可使用，为空表示不限次数
        if discount.max_uses is not None and discount.used_count >= discount.max_uses:
            return DiscountValidation.failure(
                code, ErrorKind.DISCOUNT_EXHAUSTED, "优惠码使用次数已达上限"
            )

        if order_value < discount.min_order_value:
            return DiscountValidation.failure(
                code,
                ErrorKind.DISCOUNT_MIN_ORDER_NOT_MET,
                f"订单金额需满 {discount.min_order_value} 才能使用该优惠码",
                min_order_required=discount.min_order_value
            )

        if user_redemptions is not None and user_redemptions >= discount.max_uses_per_user:
            return DiscountValidation.failure(
                code, ErrorKind.DISCOUNT_USER_LIMIT_REACHED, "您已达到该优惠码的使用次数上限"
            )

        return None

    async def validate(
        self,
        code: str,
        user_id: Optional[str],
        order_value: Decimal,
        now: Optional[datetime] = None
    ) -> DiscountValidation:
        """校验优惠码，失败以结构化结果返回，不抛出异常"""
        normalized = normalize_code(code)
        now = now or self.clock()

        db_code = await self.discount_repo.get_by_code(normalized)
        if not db_code:
            return DiscountValidation.failure(
                normalized, ErrorKind.DISCOUNT_NOT_FOUND, "优惠码不存在"
            )

        discount = self.discount_repo.to_model(db_code)

        user_redemptions = None
        if user_id:
            user_redemptions = await self.discount_repo.count_user_redemptions(
                discount.discount_id, user_id
            )

        failure = self.check_eligibility(discount, order_value, now, user_redemptions)
        if failure:
            logger.debug(f"优惠码校验失败: {normalized}, 原因: {failure.reason.value}")
            return failure

        return DiscountValidation(
            valid=True,
            code=discount.code,
            message="优惠码可用",
            discount_amount=self.compute_discount_amount(discount, order_value),
            waive_shipping=waives_shipping(discount.rule),
            min_order_required=discount.min_order_value
        )

    def compute_discount_amount(self, discount: DiscountCode, order_value: Decimal) -> Decimal:
        """计算折扣金额，免运费类型返回0"""
        return discount.calculate_discount(order_value)

    async def redeem(
        self,
        code: str,
        user_id: Optional[str],
        order_value: Decimal,
        order_id: Optional[str] = None
    ) -> DiscountRedemption:
        """
        兑换优惠码：使用次数条件加一，并追加一条兑换记录

        在调用方的事务内执行。条件更新命中后该行被锁定，
        此时再统计用户兑换次数，并发的同一用户兑换会排队看到彼此的记录。
        抛出异常时调用方必须回滚，已递增的次数随之撤销。
        """
        normalized = normalize_code(code)

        db_code = await self.discount_repo.get_by_code(normalized)
        if not db_code:
            raise DiscountNotFoundError(normalized)

        if not await self.discount_repo.increment_used_count(db_code.discount_id):
            logger.info(f"优惠码名额已被抢占: {normalized}")
            raise DiscountRedemptionError(
                normalized, ErrorKind.DISCOUNT_EXHAUSTED, "优惠码使用次数已达上限"
            )

        if user_id:
            used = await self.discount_repo.count_user_redemptions(db_code.discount_id, user_id)
            if used >= db_code.max_uses_per_user:
                logger.info(f"用户 {user_id} 已达优惠码使用上限: {normalized}")
                raise DiscountRedemptionError(
                    normalized,
                    ErrorKind.DISCOUNT_USER_LIMIT_REACHED,
                    "您已达到该优惠码的使用次数上限"
                )

        discount = self.discount_repo.to_model(db_code)
        discount_amount = self.compute_discount_amount(discount, order_value)

        db_redemption = await self.discount_repo.add_redemption(
            db_code,
            user_id=user_id,
            order_value=order_value,
            discount_amount=discount_amount,
            order_id=order_id
        )

        logger.info(f"优惠码兑换成功: {normalized}, 订单: {order_id}, 用户: {user_id}")
        return self.discount_repo.to_redemption_model(db_redemption)

    # ---------- 查询与后台管理 ----------

    async def get_discount(self, discount_id: str) -> DiscountCode:
        db_code = await self.discount_repo.get_by_discount_id(discount_id)
        if not db_code:
            raise DiscountNotFoundError(discount_id)
        return self.discount_repo.to_model(db_code)

    async def get_discount_by_code(self, code: str) -> DiscountCode:
        db_code = await self.discount_repo.get_by_code(code)
        if not db_code:
            raise DiscountNotFoundError(normalize_code(code))
        return self.discount_repo.to_model(db_code)

    async def list_public_discounts(self, now: Optional[datetime] = None) -> List[DiscountCode]:
        """顾客可见的优惠码"""
        db_codes = await self.discount_repo.list_public_codes(now or self.clock())
        return [self.discount_repo.to_model(db_code) for db_code in db_codes]

    async def list_discounts(
        self,
        status: Optional[DiscountStatus] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[DiscountCode]:
        db_codes = await self.discount_repo.list_codes(
            status=status.value if status else None,
            search=search,
            limit=limit,
            offset=offset
        )
        return [self.discount_repo.to_model(db_code) for db_code in db_codes]

    async def create_discount(self, data: DiscountCodeCreate) -> DiscountCode:
        """创建优惠码，优惠码重复时抛出 ValueError"""
        if await self.discount_repo.get_by_code(data.code):
            raise ValueError(f"优惠码已存在: {data.code}")

        try:
            db_code = await self.discount_repo.create(data)
            await self.discount_repo.db.commit()
        except Exception:
            await self.discount_repo.db.rollback()
            raise

        logger.info(f"创建优惠码: {data.code}")
        return self.discount_repo.to_model(db_code)

    async def update_discount(self, discount_id: str, data: DiscountCodeUpdate) -> DiscountCode:
        """更新优惠码，更新后的字段组合必须仍然合法"""
        current = await self.get_discount(discount_id)
        # 显式传入的 null 需要保留，max_uses 置空表示改回不限次数
        changes: Dict[str, Any] = data.model_dump(exclude_unset=True)

        # 用完整模型重新校验，如结束时间、百分比上限
        merged = DiscountCode(**{**current.model_dump(), **changes})

        if merged.max_uses is not None and merged.max_uses < merged.used_count:
            raise ValueError(
                f"总使用次数不能小于已使用次数 {merged.used_count}"
            )

        values = {
            key: value.value if isinstance(value, (DiscountType, DiscountStatus)) else value
            for key, value in changes.items()
        }
        try:
            await self.discount_repo.update(discount_id, values)
            await self.discount_repo.db.commit()
        except Exception:
            await self.discount_repo.db.rollback()
            raise

        logger.info(f"更新优惠码: {current.code}, 字段: {sorted(values)}")
        return await self.get_discount(discount_id)

    async def delete_discount(self, discount_id: str) -> bool:
        """删除从未兑换且没有待确认订单引用的优惠码，否则抛出 DiscountInUseError"""
        current = await self.get_discount(discount_id)
        pending_orders = await self.discount_repo.count_pending_orders(current.code)
        if current.used_count > 0 or pending_orders > 0:
            logger.warning(f"拒绝删除使用中的优惠码: {current.code}")
            raise DiscountInUseError(current.code, current.used_count, pending_orders)

        try:
            deleted = await self.discount_repo.delete(discount_id)
            await self.discount_repo.db.commit()
        except Exception:
            await self.discount_repo.db.rollback()
            raise

        logger.info(f"删除优惠码: {current.code}")
        return deleted

    async def get_discount_stats(self, discount_id: str, recent_limit: int = 10) -> DiscountStats:
        """优惠码使用统计"""
        discount = await self.get_discount(discount_id)
        summary = await self.discount_repo.get_usage_summary(discount_id)
        recent = await self.discount_repo.get_redemptions(discount_id, limit=recent_limit)

        return DiscountStats(
            discount_id=discount.discount_id,
            code=discount.code,
            status=discount.status,
            max_uses=discount.max_uses,
            used_count=discount.used_count,
            remaining_uses=discount.remaining_uses,
            unique_users=summary["unique_users"],
            total_order_value=summary["total_order_value"],
            recent_redemptions=[
                self.discount_repo.to_redemption_model(r) for r in recent
            ]
        )
