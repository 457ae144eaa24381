"""
优惠码相关数据模型

优惠类型是封闭的三种规则：百分比、固定金额、免运费。
每种规则各自实现折扣金额的计算，compute_discount_amount 负责穷尽匹配。
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union, assert_never
from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum

from app.core.exceptions import ErrorKind


MONEY_QUANT = Decimal("0.01")


def normalize_code(code: str) -> str:
    """优惠码统一去空格并转大写"""
    return code.strip().upper()


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间转换为本地时间并去掉时区，与数据库中的时间保持一致"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class DiscountType(str, Enum):
    """优惠类型枚举"""
    PERCENTAGE = "percentage"  # 百分比折扣
    FIXED_AMOUNT = "fixed_amount"  # 固定金额折扣
    FREE_SHIPPING = "free_shipping"  # 免运费


class DiscountStatus(str, Enum):
    """优惠码状态枚举"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class PercentageRule(BaseModel):
    """百分比折扣规则，max_discount 为 0 时不封顶"""

    type: Literal["percentage"] = "percentage"
    value: Decimal = Field(..., ge=0, le=100)
    max_discount: Decimal = Field(default=Decimal("0"), ge=0)


class FixedAmountRule(BaseModel):
    """固定金额折扣规则"""

    type: Literal["fixed_amount"] = "fixed_amount"
    value: Decimal = Field(..., ge=0)


class FreeShippingRule(BaseModel):
    """免运费规则，不产生金额折扣"""

    type: Literal["free_shipping"] = "free_shipping"
    value: Decimal = Field(default=Decimal("0"), ge=0)


DiscountRule = Annotated[
    Union[PercentageRule, FixedAmountRule, FreeShippingRule],
    Field(discriminator="type")
]


def compute_discount_amount(rule: DiscountRule, order_value: Decimal) -> Decimal:
    """按规则计算折扣金额"""
    match rule:
        case PercentageRule(value=value, max_discount=cap):
            amount = order_value * value / Decimal("100")
            if cap > 0:
                amount = min(amount, cap)
        case FixedAmountRule(value=value):
            amount = min(value, order_value)
        case FreeShippingRule():
            amount = Decimal("0")
        case _:
            assert_never(rule)

    return amount.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def waives_shipping(rule: DiscountRule) -> bool:
    """是否免除运费"""
    return isinstance(rule, FreeShippingRule)


def build_rule(
    discount_type: DiscountType,
    value: Decimal,
    max_discount: Optional[Decimal] = None
) -> DiscountRule:
    """根据扁平字段构造规则对象"""
    discount_type = DiscountType(discount_type)
    if discount_type == DiscountType.PERCENTAGE:
        return PercentageRule(value=value, max_discount=max_discount or Decimal("0"))
    if discount_type == DiscountType.FIXED_AMOUNT:
        return FixedAmountRule(value=value)
    return FreeShippingRule(value=value)


class DiscountCode(BaseModel):
    """优惠码基础模型"""

    discount_id: str = Field(..., description="优惠码ID")
    code: str = Field(..., min_length=1, max_length=50, description="优惠码")
    name: str = Field(..., description="活动名称")
    description: Optional[str] = Field(None, description="活动描述")
    discount_type: DiscountType = Field(..., description="优惠类型")
    value: Decimal = Field(..., ge=0, description="折扣值")
    max_discount: Decimal = Field(default=Decimal("0"), ge=0, description="最大折扣金额")
    min_order_value: Decimal = Field(default=Decimal("0"), ge=0, description="最低订单金额")
    start_date: datetime = Field(..., description="有效开始时间")
    end_date: datetime = Field(..., description="有效结束时间")
    max_uses: Optional[int] = Field(None, ge=0, description="总使用次数限制")
    max_uses_per_user: int = Field(default=1, ge=1, description="单用户使用次数限制")
    used_count: int = Field(default=0, ge=0, description="已使用次数")
    status: DiscountStatus = Field(default=DiscountStatus.ACTIVE, description="优惠码状态")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def drop_timezone(cls, v: datetime) -> datetime:
        return to_local_naive(v)

    @model_validator(mode="after")
    def validate_rules(self):
        if self.end_date <= self.start_date:
            raise ValueError("结束时间必须晚于开始时间")
        if self.discount_type == DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError("百分比折扣值不能超过100")
        return self

    @property
    def rule(self) -> DiscountRule:
        return build_rule(self.discount_type, self.value, self.max_discount)

    @property
    def remaining_uses(self) -> Optional[int]:
        if self.max_uses is None:
            return None
        return max(self.max_uses - self.used_count, 0)

    def calculate_discount(self, order_value: Decimal) -> Decimal:
        """计算具体折扣金额"""
        return compute_discount_amount(self.rule, order_value)


class DiscountCodeCreate(BaseModel):
    """创建优惠码模型"""

    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1)
    description: Optional[str] = Field(None, max_length=1000)
    discount_type: DiscountType = Field(default=DiscountType.PERCENTAGE)
    value: Decimal = Field(..., ge=0)
    max_discount: Decimal = Field(default=Decimal("0"), ge=0)
    min_order_value: Decimal = Field(default=Decimal("0"), ge=0)
    start_date: datetime = Field(...)
    end_date: datetime = Field(...)
    max_uses: Optional[int] = Field(None, ge=0)
    max_uses_per_user: int = Field(default=1, ge=1)
    status: DiscountStatus = Field(default=DiscountStatus.ACTIVE)

    @field_validator("code")
    @classmethod
    def normalize(cls, v: str) -> str:
        v = normalize_code(v)
        if not v:
            raise ValueError("优惠码不能为空")
        return v

    @field_validator("start_date", "end_date")
    @classmethod
    def drop_timezone(cls, v: datetime) -> datetime:
        return to_local_naive(v)

    @model_validator(mode="after")
    def validate_rules(self):
        if self.end_date <= self.start_date:
            raise ValueError("结束时间必须晚于开始时间")
        if self.discount_type == DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError("百分比折扣值不能超过100")
        return self


NULLABLE_UPDATE_FIELDS = frozenset({"description", "max_uses"})


class DiscountCodeUpdate(BaseModel):
    """更新优惠码模型，使用次数只能由兑换流程修改"""

    name: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)
    discount_type: Optional[DiscountType] = None
    value: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, ge=0)
    min_order_value: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    max_uses: Optional[int] = Field(None, ge=0)
    max_uses_per_user: Optional[int] = Field(None, ge=1)
    status: Optional[DiscountStatus] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def drop_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)

    @model_validator(mode="after")
    def reject_null_required(self):
        # 只有 description 和 max_uses 可以显式置空，max_uses 为空表示不限次数
        cleared = [
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in NULLABLE_UPDATE_FIELDS
        ]
        if cleared:
            raise ValueError("以下字段不能为空: " + ", ".join(sorted(cleared)))
        return self


class DiscountRedemption(BaseModel):
    """优惠码兑换记录"""

    redemption_id: str
    discount_id: str
    code: str
    user_id: Optional[str] = None
    order_id: Optional[str] = None
    order_value: Decimal
    discount_amount: Decimal = Decimal("0")
    used_at: datetime


class DiscountValidation(BaseModel):
    """优惠码校验结果，失败时 reason 为具体的错误类型"""

    valid: bool = Field(..., description="是否可用")
    code: Optional[str] = Field(None, description="规范化后的优惠码")
    reason: Optional[ErrorKind] = Field(None, description="失败原因")
    message: Optional[str] = Field(None, description="提示信息")
    discount_amount: Optional[Decimal] = Field(None, description="折扣金额")
    waive_shipping: bool = Field(default=False, description="是否免运费")
    min_order_required: Optional[Decimal] = Field(None, description="所需最低订单金额")

    @classmethod
    def failure(cls, code: Optional[str], reason: ErrorKind, message: str, **extra) -> "DiscountValidation":
        return cls(valid=False, code=code, reason=reason, message=message, **extra)


class DiscountApplyRequest(BaseModel):
    """结算页应用优惠码请求"""

    code: str = Field(..., min_length=1)
    order_value: Decimal = Field(..., ge=0)
    user_id: Optional[str] = None


class DiscountStats(BaseModel):
    """优惠码使用统计"""

    discount_id: str
    code: str
    status: DiscountStatus
    max_uses: Optional[int]
    used_count: int
    remaining_uses: Optional[int]
    unique_users: int
    total_order_value: Decimal
    recent_redemptions: List[DiscountRedemption] = Field(default_factory=list)
