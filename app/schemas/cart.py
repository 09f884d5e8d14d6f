"""购物车相关的请求/响应模型"""

from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponse


# ==================== 请求模型 ====================

class AddCartItemRequest(BaseModel):
    """加入购物车"""
    variant_id: int = Field(..., gt=0, description="商品规格ID", examples=[1])
    quantity: int = Field(1, gt=0, description="加购数量", examples=[2])


class UpdateCartItemRequest(BaseModel):
    """修改数量，0 表示移除"""
    quantity: int = Field(..., ge=0, description="目标数量", examples=[3])


class MergeCartRequest(BaseModel):
    """登录后合并游客购物车"""
    guest_session_id: str = Field(..., min_length=1, max_length=100, description="游客会话ID")


# ==================== 响应模型 ====================

class CartLineSchema(BaseModel):
    id: int
    variant_id: int
    sku: str
    product_name: str
    product_slug: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    expires_at: datetime
    lapsed: bool = Field(False, description="预占是否已过期（需重新加购）")


class CartResponse(BaseResponse):
    items: List[CartLineSchema] = []
    subtotal: Decimal = Decimal("0.00")
    item_count: int = 0


class MergeCartResponse(CartResponse):
    merged: int = Field(0, description="合并的购物车行数")
