"""
订单相关数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, Text, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base


class OrderDB(Base):
    """订单数据库表"""

    __tablename__ = "orders"

    # 主键和用户信息
    order_id = Column(String(50), primary_key=True, comment="订单ID")
    user_id = Column(String(50), index=True, comment="用户ID，游客为空")

    # 收货和支付信息
    shipping_address = Column(JSON, nullable=False, comment="收货地址")
    payment_method = Column(String(20), nullable=False, default="COD", comment="支付方式")

    # 金额信息（下单时计算，之后不再修改）
    items_price = Column(Numeric(14, 2), nullable=False, comment="商品总额")
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0, comment="优惠码折扣")
    shipping_fee = Column(Numeric(14, 2), nullable=False, default=0, comment="运费")
    total_price = Column(Numeric(14, 2), nullable=False, comment="应付总额")

    # 应用的优惠码
    discount_code = Column(String(50), comment="使用的优惠码")

    # 订单状态
    status = Column(String(20), nullable=False, default="pending", index=True, comment="订单状态")
    rejection_reason = Column(Text, comment="拒绝原因")

    is_paid = Column(Boolean, nullable=False, default=False, comment="是否已支付")

    # 时间戳
    created_at = Column(DateTime, default=datetime.now, index=True, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")
    paid_at = Column(DateTime, comment="支付时间")
    delivered_at = Column(DateTime, comment="送达时间")
    cancelled_at = Column(DateTime, comment="取消时间")

    # 关系映射
    order_items = relationship(
        "OrderItemDB",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemDB.position"
    )

    __table_args__ = (
        {'comment': '订单主表'}
    )


class OrderItemDB(Base):
    """订单商品快照表"""

    __tablename__ = "order_items"

    # 主键和关联信息
    item_id = Column(String(50), primary_key=True, comment="项目ID")
    order_id = Column(String(50), ForeignKey("orders.order_id"), nullable=False, index=True, comment="订单ID")
    position = Column(Integer, nullable=False, default=0, comment="在订单中的顺序")

    # 商品快照
    product_id = Column(String(50), nullable=False, comment="商品ID")
    name = Column(String(200), nullable=False, comment="商品名称")
    image = Column(String(500), comment="商品图片")
    price = Column(Numeric(14, 2), nullable=False, comment="下单时单价")
    quantity = Column(Integer, nullable=False, default=1, comment="数量")

    # 关系映射
    order = relationship("OrderDB", back_populates="order_items")

    __table_args__ = (
        {'comment': '订单商品快照表'}
    )
