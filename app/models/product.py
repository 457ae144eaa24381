"""
商品与库存相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class Product(BaseModel):
    """商品模型（订单核心只关心价格、名称、图片和库存）"""

    product_id: str
    name: str
    price: Decimal = Field(..., ge=0)
    image: Optional[str] = None
    stock_quantity: int = Field(default=0, ge=0)
    status: str = "active"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockAdjustment(BaseModel):
    """一次库存扣减请求"""

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
