"""商品目录模型（前台 + 后台）"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.models.product import ProductStatus
from app.schemas.base import BaseResponse


# ==================== 请求模型 ====================

class VariantCreate(BaseModel):
    sku: Optional[str] = Field(None, max_length=64, description="为空时按 <slug>-v<序号> 生成")
    price: Optional[Decimal] = Field(None, ge=0, description="为空时使用商品基础价格")
    available_stock: int = Field(0, ge=0, description="初始库存")
    is_active: bool = True
    track_inventory: bool = Field(True, description="关闭后只受单品数量上限约束")


class VariantUpdate(BaseModel):
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    price: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None
    track_inventory: Optional[bool] = None


class ProductCreate(BaseModel):
    slug: str = Field(..., min_length=1, max_length=128, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)
    status: ProductStatus = ProductStatus.DRAFT
    variants: List[VariantCreate] = []


class ProductUpdate(BaseModel):
    slug: Optional[str] = Field(None, min_length=1, max_length=128, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    status: Optional[ProductStatus] = None


class StockAdjustRequest(BaseModel):
    """人工调整库存：正数入库，负数出库"""
    delta: int = Field(..., description="可售库存变化量", examples=[12])
    reason: Optional[str] = Field(None, max_length=40)


# ==================== 响应模型 ====================

class VariantSchema(BaseModel):
    id: int
    product_id: int
    sku: str
    price: Decimal
    available_stock: int
    reserved_stock: int
    is_active: bool
    track_inventory: bool = True


class ProductSchema(BaseModel):
    id: int
    slug: str
    name: str
    description: Optional[str] = None
    base_price: Decimal
    status: str
    variants: List[VariantSchema] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ProductResponse(BaseResponse):
    product: ProductSchema


class ProductListResponse(BaseResponse):
    products: List[ProductSchema] = []
    pagination: Pagination


class VariantResponse(BaseResponse):
    variant: VariantSchema


class VariantListResponse(BaseResponse):
    variants: List[VariantSchema] = []


class StockResponse(BaseResponse):
    """单个规格库存响应"""
    variant_id: int
    available_stock: int = Field(..., ge=0, description="可售库存数量")


class StockAdjustResponse(StockResponse):
    reserved_stock: int
