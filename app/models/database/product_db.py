"""
商品库存数据库模型
"""

from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, DateTime, CheckConstraint
from app.core.database import Base


class ProductDB(Base):
    """商品数据库表（仅包含订单核心需要的字段）"""

    __tablename__ = "products"

    product_id = Column(String(50), primary_key=True, comment="商品ID")
    name = Column(String(200), nullable=False, index=True, comment="商品名称")
    price = Column(Numeric(14, 2), nullable=False, comment="当前售价")
    image = Column(String(500), comment="主图")
    stock_quantity = Column(Integer, nullable=False, default=0, comment="库存数量")
    status = Column(String(20), nullable=False, default="active", comment="商品状态")

    created_at = Column(DateTime, default=datetime.now, comment="创建时间")
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, comment="更新时间")

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
        {'comment': '商品信息表'}
    )
