"""
优惠规则计算测试
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta
from pydantic import TypeAdapter, ValidationError

from app.models.discount import (
    DiscountCode,
    DiscountCodeCreate,
    DiscountRule,
    DiscountType,
    FixedAmountRule,
    FreeShippingRule,
    PercentageRule,
    build_rule,
    compute_discount_amount,
    normalize_code,
    waives_shipping
)


class TestDiscountRules:
    """折扣规则计算测试类"""

    def test_percentage_capped(self):
        """测试百分比折扣封顶"""
        rule = PercentageRule(value=Decimal("10"), max_discount=Decimal("3000000"))
        assert compute_discount_amount(rule, Decimal("50000000")) == Decimal("3000000.00")

    def test_percentage_below_cap(self):
        """测试百分比折扣未达封顶"""
        rule = PercentageRule(value=Decimal("10"), max_discount=Decimal("3000000"))
        assert compute_discount_amount(rule, Decimal("10000000")) == Decimal("1000000.00")

    def test_percentage_zero_cap_means_uncapped(self):
        """max_discount 为0时不封顶"""
        rule = PercentageRule(value=Decimal("20"))
        assert compute_discount_amount(rule, Decimal("50000000")) == Decimal("10000000.00")

    def test_percentage_rounds_to_cents(self):
        rule = PercentageRule(value=Decimal("15"))
        assert compute_discount_amount(rule, Decimal("333.33")) == Decimal("50.00")

    def test_fixed_amount_limited_by_order_value(self):
        """固定金额折扣不超过订单金额"""
        rule = FixedAmountRule(value=Decimal("500000"))
        assert compute_discount_amount(rule, Decimal("1200000")) == Decimal("500000.00")
        assert compute_discount_amount(rule, Decimal("300000")) == Decimal("300000.00")

    def test_free_shipping_has_no_amount(self):
        """免运费不产生金额折扣，单独标记免运费"""
        rule = FreeShippingRule()
        assert compute_discount_amount(rule, Decimal("1000000")) == Decimal("0.00")
        assert waives_shipping(rule) is True
        assert waives_shipping(FixedAmountRule(value=Decimal("1"))) is False

    def test_rule_discriminated_by_type(self):
        """按 type 字段解析为对应规则"""
        adapter = TypeAdapter(DiscountRule)
        rule = adapter.validate_python({"type": "percentage", "value": "5", "max_discount": "100"})
        assert isinstance(rule, PercentageRule)
        rule = adapter.validate_python({"type": "free_shipping"})
        assert isinstance(rule, FreeShippingRule)

        with pytest.raises(ValidationError):
            adapter.validate_python({"type": "buy_one_get_one", "value": "1"})

    def test_percentage_rule_rejects_over_100(self):
        with pytest.raises(ValidationError):
            PercentageRule(value=Decimal("120"))

    def test_build_rule(self):
        rule = build_rule(DiscountType.PERCENTAGE, Decimal("10"), Decimal("50"))
        assert rule == PercentageRule(value=Decimal("10"), max_discount=Decimal("50"))
        assert isinstance(build_rule(DiscountType.FIXED_AMOUNT, Decimal("10")), FixedAmountRule)


class TestDiscountCodeModel:
    """优惠码模型校验测试类"""

    def _base(self, **overrides):
        now = datetime.now()
        data = {
            "code": "  summer25 ",
            "name": "夏季促销",
            "discount_type": DiscountType.PERCENTAGE,
            "value": Decimal("25"),
            "start_date": now,
            "end_date": now + timedelta(days=7),
        }
        data.update(overrides)
        return data

    def test_code_normalized(self):
        """优惠码去空格转大写"""
        assert DiscountCodeCreate(**self._base()).code == "SUMMER25"
        assert normalize_code(" sale10 ") == "SALE10"

    def test_blank_code_rejected(self):
        with pytest.raises(ValidationError):
            DiscountCodeCreate(**self._base(code="   "))

    def test_end_must_follow_start(self):
        """结束时间必须晚于开始时间"""
        now = datetime.now()
        with pytest.raises(ValidationError):
            DiscountCodeCreate(**self._base(start_date=now, end_date=now))

    def test_percentage_over_100_rejected(self):
        with pytest.raises(ValidationError):
            DiscountCodeCreate(**self._base(value=Decimal("101")))

    def test_fixed_amount_may_exceed_100(self):
        data = DiscountCodeCreate(**self._base(discount_type=DiscountType.FIXED_AMOUNT, value=Decimal("500000")))
        assert data.value == Decimal("500000")

    def test_remaining_uses(self):
        """剩余次数：不限次数为None"""
        now = datetime.now()
        base = dict(
            discount_id="d1", code="X", name="X", discount_type=DiscountType.FIXED_AMOUNT,
            value=Decimal("1"), start_date=now, end_date=now + timedelta(days=1)
        )
        assert DiscountCode(**base, max_uses=None, used_count=3).remaining_uses is None
        assert DiscountCode(**base, max_uses=5, used_count=3).remaining_uses == 2
        assert DiscountCode(**base, max_uses=0).remaining_uses == 0
