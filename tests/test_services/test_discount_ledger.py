"""
DiscountLedger业务逻辑测试
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone

from app.core.exceptions import (
    DiscountInUseError,
    DiscountNotFoundError,
    DiscountRedemptionError,
    ErrorKind
)
from app.models.discount import (
    DiscountCodeCreate,
    DiscountCodeUpdate,
    DiscountStatus,
    DiscountType
)


@pytest.mark.asyncio
class TestDiscountValidation:
    """优惠码校验测试类"""

    async def test_unknown_code(self, discount_ledger):
        result = await discount_ledger.validate("nope", "u1", Decimal("100"))
        assert result.valid is False
        assert result.reason == ErrorKind.DISCOUNT_NOT_FOUND
        assert result.code == "NOPE"

    async def test_case_insensitive(self, discount_ledger, make_discount):
        """优惠码大小写和首尾空格不影响匹配"""
        await make_discount(code="SALE10")
        result = await discount_ledger.validate("  sale10 ", "u1", Decimal("1200000"))
        assert result.valid is True
        assert result.code == "SALE10"

    async def test_sale10_scenario(self, discount_ledger, make_discount):
        """固定金额50万，满100万可用，仅限一次"""
        await make_discount(
            code="SALE10",
            value=Decimal("500000"),
            min_order_value=Decimal("1000000"),
            max_uses=1
        )

        result = await discount_ledger.validate("SALE10", "u1", Decimal("1200000"))
        assert result.valid is True
        assert result.discount_amount == Decimal("500000.00")
        assert result.waive_shipping is False

        await discount_ledger.redeem("SALE10", "u1", Decimal("1200000"), "ORDER_1")
        await discount_ledger.discount_repo.db.commit()

        result = await discount_ledger.validate("SALE10", "u2", Decimal("2000000"))
        assert result.valid is False
        assert result.reason == ErrorKind.DISCOUNT_EXHAUSTED

    async def test_inactive(self, discount_ledger, make_discount):
        await make_discount(status=DiscountStatus.INACTIVE)
        result = await discount_ledger.validate("SALE10", "u1", Decimal("1"))
        assert result.reason == ErrorKind.DISCOUNT_INACTIVE

    async def test_not_started(self, discount_ledger, make_discount):
        now = datetime.now()
        await make_discount(start_date=now + timedelta(days=1), end_date=now + timedelta(days=2))
        result = await discount_ledger.validate("SALE10", "u1", Decimal("1"))
        assert result.reason == ErrorKind.DISCOUNT_NOT_STARTED

    async def test_active_but_past_end_date(self, discount_ledger, make_discount):
        """状态仍为active但已过结束时间，按过期处理"""
        now = datetime.now()
        await make_discount(
            status=DiscountStatus.ACTIVE,
            start_date=now - timedelta(days=10),
            end_date=now - timedelta(seconds=1)
        )
        result = await discount_ledger.validate("SALE10", "u1", Decimal("1"))
        assert result.reason == ErrorKind.DISCOUNT_EXPIRED

    async def test_max_uses_zero_never_usable(self, discount_ledger, make_discount):
        """max_uses为0表示不可使用"""
        await make_discount(max_uses=0)
        result = await discount_ledger.validate("SALE10", None, Decimal("1000000"))
        assert result.reason == ErrorKind.DISCOUNT_EXHAUSTED

    async def test_max_uses_none_unlimited(self, discount_ledger, make_discount):
        """max_uses为空表示不限次数"""
        await make_discount(max_uses=None, max_uses_per_user=100)
        for i in range(5):
            await discount_ledger.redeem("SALE10", f"u{i}", Decimal("1000000"))
        await discount_ledger.discount_repo.db.commit()

        result = await discount_ledger.validate("SALE10", "u9", Decimal("1000000"))
        assert result.valid is True

    async def test_min_order_not_met(self, discount_ledger, make_discount):
        await make_discount(min_order_value=Decimal("1000000"))
        result = await discount_ledger.validate("SALE10", "u1", Decimal("999999"))
        assert result.reason == ErrorKind.DISCOUNT_MIN_ORDER_NOT_MET
        assert result.min_order_required == Decimal("1000000")

    async def test_user_limit(self, discount_ledger, make_discount):
        """单用户次数用完后只影响该用户"""
        await make_discount(max_uses_per_user=1)
        await discount_ledger.redeem("SALE10", "u1", Decimal("1000000"))
        await discount_ledger.discount_repo.db.commit()

        result = await discount_ledger.validate("SALE10", "u1", Decimal("1000000"))
        assert result.reason == ErrorKind.DISCOUNT_USER_LIMIT_REACHED

        assert (await discount_ledger.validate("SALE10", "u2", Decimal("1000000"))).valid
        # 游客不检查单用户次数
        assert (await discount_ledger.validate("SALE10", None, Decimal("1000000"))).valid

    async def test_first_failure_wins(self, discount_ledger, make_discount):
        """多项不满足时按固定顺序返回第一个失败原因"""
        now = datetime.now()
        await make_discount(
            status=DiscountStatus.INACTIVE,
            start_date=now - timedelta(days=10),
            end_date=now - timedelta(days=1),
            max_uses=0,
            min_order_value=Decimal("99999999")
        )
        result = await discount_ledger.validate("SALE10", "u1", Decimal("1"))
        assert result.reason == ErrorKind.DISCOUNT_INACTIVE

        await discount_ledger.update_discount(
            (await discount_ledger.get_discount_by_code("SALE10")).discount_id,
            DiscountCodeUpdate(status=DiscountStatus.ACTIVE)
        )
        result = await discount_ledger.validate("SALE10", "u1", Decimal("1"))
        assert result.reason == ErrorKind.DISCOUNT_EXPIRED

    async def test_exhausted_before_min_order(self, discount_ledger, make_discount):
        await make_discount(max_uses=0, min_order_value=Decimal("99999999"))
        result = await discount_ledger.validate("SALE10", "u1", Decimal("1"))
        assert result.reason == ErrorKind.DISCOUNT_EXHAUSTED

    async def test_percentage_with_cap(self, discount_ledger, make_discount):
        await make_discount(
            code="PCT10",
            discount_type=DiscountType.PERCENTAGE,
            value=Decimal("10"),
            max_discount=Decimal("3000000")
        )
        capped = await discount_ledger.validate("PCT10", "u1", Decimal("50000000"))
        uncapped = await discount_ledger.validate("PCT10", "u1", Decimal("10000000"))
        assert capped.discount_amount == Decimal("3000000.00")
        assert uncapped.discount_amount == Decimal("1000000.00")

    async def test_free_shipping(self, discount_ledger, make_discount):
        await make_discount(code="SHIPFREE", discount_type=DiscountType.FREE_SHIPPING, value=Decimal("0"))
        result = await discount_ledger.validate("shipfree", "u1", Decimal("200000"))
        assert result.valid is True
        assert result.discount_amount == Decimal("0.00")
        assert result.waive_shipping is True

    async def test_validate_does_not_mutate(self, discount_ledger, make_discount):
        """校验不会改变使用次数"""
        discount = await make_discount(max_uses=1)
        for _ in range(3):
            assert (await discount_ledger.validate("SALE10", "u1", Decimal("1"))).valid
        assert (await discount_ledger.get_discount(discount.discount_id)).used_count == 0


@pytest.mark.asyncio
class TestDiscountRedemption:
    """优惠码兑换测试类"""

    async def test_redeem_records_and_counts(self, discount_ledger, make_discount):
        """兑换记录订单金额快照，使用次数加一"""
        discount = await make_discount(max_uses=10)
        redemption = await discount_ledger.redeem("sale10", "u1", Decimal("1200000"), "ORDER_1")
        await discount_ledger.discount_repo.db.commit()

        assert redemption.code == "SALE10"
        assert redemption.order_value == Decimal("1200000")
        assert redemption.discount_amount == Decimal("500000")
        assert redemption.order_id == "ORDER_1"

        refreshed = await discount_ledger.get_discount(discount.discount_id)
        assert refreshed.used_count == 1

    async def test_redeem_unknown(self, discount_ledger):
        with pytest.raises(DiscountNotFoundError):
            await discount_ledger.redeem("GHOST", "u1", Decimal("1"))

    async def test_redeem_exhausted(self, discount_ledger, make_discount):
        await make_discount(max_uses=1)
        await discount_ledger.redeem("SALE10", "u1", Decimal("1"))
        await discount_ledger.discount_repo.db.commit()

        with pytest.raises(DiscountRedemptionError) as exc_info:
            await discount_ledger.redeem("SALE10", "u2", Decimal("1"))
        assert exc_info.value.kind == ErrorKind.DISCOUNT_EXHAUSTED

    async def test_redeem_user_limit_rolls_back(self, discount_ledger, make_discount):
        """单用户次数超限时回滚后使用次数不变"""
        discount_id = (await make_discount(max_uses=10, max_uses_per_user=1)).discount_id
        await discount_ledger.redeem("SALE10", "u1", Decimal("1"))
        await discount_ledger.discount_repo.db.commit()

        with pytest.raises(DiscountRedemptionError) as exc_info:
            await discount_ledger.redeem("SALE10", "u1", Decimal("1"))
        await discount_ledger.discount_repo.db.rollback()

        assert exc_info.value.kind == ErrorKind.DISCOUNT_USER_LIMIT_REACHED
        assert (await discount_ledger.get_discount(discount_id)).used_count == 1


@pytest.mark.asyncio
class TestDiscountAdmin:
    """优惠码后台管理测试类"""

    def _create_data(self, **overrides):
        now = datetime.now()
        data = dict(
            code="newyear",
            name="新年促销",
            discount_type=DiscountType.PERCENTAGE,
            value=Decimal("15"),
            max_discount=Decimal("2000000"),
            start_date=now - timedelta(hours=1),
            end_date=now + timedelta(days=10),
            max_uses=100
        )
        data.update(overrides)
        return DiscountCodeCreate(**data)

    async def test_create_and_duplicate(self, discount_ledger):
        created = await discount_ledger.create_discount(self._create_data())
        assert created.code == "NEWYEAR"
        assert created.used_count == 0

        with pytest.raises(ValueError):
            await discount_ledger.create_discount(self._create_data(code="NewYear"))

    async def test_update(self, discount_ledger):
        created = await discount_ledger.create_discount(self._create_data())
        updated = await discount_ledger.update_discount(
            created.discount_id,
            DiscountCodeUpdate(name="新年大促", value=Decimal("20"))
        )
        assert updated.name == "新年大促"
        assert updated.value == Decimal("20")

    async def test_update_rejects_invalid_combination(self, discount_ledger):
        """更新后百分比超过100被拒绝"""
        created = await discount_ledger.create_discount(self._create_data())
        with pytest.raises(ValueError):
            await discount_ledger.update_discount(created.discount_id, DiscountCodeUpdate(value=Decimal("150")))

    async def test_update_cannot_lower_max_uses_below_used(self, discount_ledger):
        created = await discount_ledger.create_discount(self._create_data(max_uses=5))
        await discount_ledger.redeem("NEWYEAR", "u1", Decimal("1000000"))
        await discount_ledger.redeem("NEWYEAR", "u2", Decimal("1000000"))
        await discount_ledger.discount_repo.db.commit()

        with pytest.raises(ValueError):
            await discount_ledger.update_discount(created.discount_id, DiscountCodeUpdate(max_uses=1))

        updated = await discount_ledger.update_discount(created.discount_id, DiscountCodeUpdate(max_uses=2))
        assert updated.max_uses == 2
        assert updated.remaining_uses == 0

    async def test_delete(self, discount_ledger):
        created = await discount_ledger.create_discount(self._create_data())
        assert await discount_ledger.delete_discount(created.discount_id) is True

        with pytest.raises(DiscountNotFoundError):
            await discount_ledger.get_discount(created.discount_id)

    async def test_delete_refuses_redeemed_code(self, discount_ledger):
        """已兑换过的优惠码只能停用，兑换记录保留"""
        created = await discount_ledger.create_discount(self._create_data())
        await discount_ledger.redeem("NEWYEAR", "u1", Decimal("1000000"), "ORDER_1")
        await discount_ledger.discount_repo.db.commit()

        with pytest.raises(DiscountInUseError) as exc_info:
            await discount_ledger.delete_discount(created.discount_id)

        assert exc_info.value.kind == ErrorKind.DISCOUNT_IN_USE
        assert exc_info.value.details["used_count"] == 1
        stats = await discount_ledger.get_discount_stats(created.discount_id)
        assert len(stats.recent_redemptions) == 1

    async def test_delete_refuses_code_on_pending_order(self, discount_ledger, make_product, place_order):
        """待确认订单引用的优惠码不能删除，否则订单无法确认"""
        created = await discount_ledger.create_discount(self._create_data())
        await make_product("p1")
        await place_order([("p1", 1)], discount_code="newyear")

        with pytest.raises(DiscountInUseError) as exc_info:
            await discount_ledger.delete_discount(created.discount_id)

        assert exc_info.value.details["pending_orders"] == 1
        assert (await discount_ledger.get_discount(created.discount_id)).code == "NEWYEAR"

    async def test_update_with_timezone_aware_end_date(self, discount_ledger):
        """带时区的时间与库中的本地时间可以比较"""
        created = await discount_ledger.create_discount(self._create_data())
        new_end = datetime.now(timezone.utc) + timedelta(days=60)

        updated = await discount_ledger.update_discount(
            created.discount_id, DiscountCodeUpdate(end_date=new_end)
        )

        assert updated.end_date.tzinfo is None
        assert updated.end_date == new_end.astimezone().replace(tzinfo=None)

    async def test_create_with_timezone_aware_dates(self, discount_ledger):
        now = datetime.now(timezone.utc)
        created = await discount_ledger.create_discount(
            self._create_data(start_date=now - timedelta(hours=1), end_date=now + timedelta(days=1))
        )
        assert created.start_date.tzinfo is None
        assert (await discount_ledger.validate("NEWYEAR", "u1", Decimal("1000000"))).valid is True

    async def test_update_back_to_unlimited(self, discount_ledger):
        """显式置空 max_uses 恢复不限次数，description 也可以清空"""
        created = await discount_ledger.create_discount(
            self._create_data(max_uses=5, description="限量活动")
        )

        updated = await discount_ledger.update_discount(
            created.discount_id, DiscountCodeUpdate(max_uses=None, description=None)
        )

        assert updated.max_uses is None
        assert updated.remaining_uses is None
        assert updated.description is None

    async def test_update_keeps_unset_fields(self, discount_ledger):
        created = await discount_ledger.create_discount(self._create_data(max_uses=5))
        updated = await discount_ledger.update_discount(
            created.discount_id, DiscountCodeUpdate(name="限时促销")
        )
        assert updated.max_uses == 5

    async def test_update_rejects_null_for_required_fields(self):
        with pytest.raises(ValueError):
            DiscountCodeUpdate(name=None)
        with pytest.raises(ValueError):
            DiscountCodeUpdate(end_date=None)

    async def test_lists(self, discount_ledger, make_discount):
        await make_discount(code="LIVE")
        await make_discount(code="PAUSED", status=DiscountStatus.INACTIVE)

        public = await discount_ledger.list_public_discounts()
        assert [d.code for d in public] == ["LIVE"]

        inactive = await discount_ledger.list_discounts(status=DiscountStatus.INACTIVE)
        assert [d.code for d in inactive] == ["PAUSED"]

    async def test_stats(self, discount_ledger, make_discount):
        """测试使用统计"""
        discount = await make_discount(max_uses=10, max_uses_per_user=5)
        await discount_ledger.redeem("SALE10", "u1", Decimal("1000000"), "O1")
        await discount_ledger.redeem("SALE10", "u1", Decimal("2000000"), "O2")
        await discount_ledger.redeem("SALE10", "u2", Decimal("3000000"), "O3")
        await discount_ledger.discount_repo.db.commit()

        stats = await discount_ledger.get_discount_stats(discount.discount_id)
        assert stats.used_count == 3
        assert stats.remaining_uses == 7
        assert stats.unique_users == 2
        assert stats.total_order_value == Decimal("6000000")
        assert len(stats.recent_redemptions) == 3
