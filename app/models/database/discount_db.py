"""
优惠码相关数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base


class DiscountCodeDB(Base):
    """优惠码数据库表"""

    __tablename__ = "discount_codes"

    # 主键和基本信息
    discount_id = Column(String(50), primary_key=True, comment="优惠码ID")
    code = Column(String(50), nullable=False, unique=True, index=True, comment="优惠码（大写）")
    name = Column(String(200), nullable=False, comment="活动名称")
    description = Column(Text, comment="活动描述")
    discount_type = Column(String(20), nullable=False, comment="优惠类型")

    # 折扣信息
    value = Column(Numeric(14, 2), nullable=False, comment="折扣值（百分比或金额）")
    max_discount = Column(Numeric(14, 2), nullable=False, default=0, comment="最大折扣金额，0为不限")
    min_order_value = Column(Numeric(14, 2), nullable=False, default=0, comment="最低订单金额")

    # 有效期
    start_date = Column(DateTime, nullable=False, index=True, comment="有效开始时间")
    end_date = Column(DateTime, nullable=False, index=True, comment="有效结束时间")

    # 使用限制
    max_uses = Column(Integer, comment="总使用次数限制，NULL为不限")
    max_uses_per_user = Column(Integer, nullable=False, default=1, comment="单用户使用次数限制")
    used_count = Column(Integer, nullable=False, default=0, comment="已使用次数")

    status = Column(String(20), nullable=False, default="active", index=True, comment="优惠码状态")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")

    redemptions = relationship(
        "DiscountRedemptionDB",
        back_populates="discount",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("value >= 0", name="ck_discount_value_non_negative"),
        CheckConstraint("used_count >= 0", name="ck_discount_used_count_non_negative"),
        {'comment': '优惠码信息表'}
    )


class DiscountRedemptionDB(Base):
    """优惠码兑换记录表"""

    __tablename__ = "discount_redemptions"

    redemption_id = Column(String(50), primary_key=True, comment="兑换记录ID")
    discount_id = Column(
        String(50),
        ForeignKey("discount_codes.discount_id", ondelete="CASCADE"),
        nullable=False,
        comment="优惠码ID"
    )
    code = Column(String(50), nullable=False, comment="优惠码")
    user_id = Column(String(50), index=True, comment="用户ID，游客为空")
    order_id = Column(String(50), comment="关联订单ID")

    # 兑换时订单金额快照
    order_value = Column(Numeric(14, 2), nullable=False, comment="订单金额快照")
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0, comment="折扣金额")

    used_at = Column(DateTime, default=datetime.now, comment="使用时间")

    discount = relationship("DiscountCodeDB", back_populates="redemptions")

    __table_args__ = (
        Index("ix_discount_redemptions_discount_user", "discount_id", "user_id"),
        {'comment': '优惠码兑换记录表'}
    )
