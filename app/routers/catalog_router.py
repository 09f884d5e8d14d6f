"""商品目录（前台）API 路由"""

from fastapi import APIRouter, Depends, Path, Query
import logging

from app.core.dependencies import get_catalog_service
from app.services.catalog_service import CatalogService
from app.schemas.base import ErrorResponse
from app.schemas.catalog import ProductListResponse, ProductResponse, StockResponse

logger = logging.getLogger(__name__)
router = APIRouter(
    tags=["商品"],
    responses={
        404: {"model": ErrorResponse, "description": "资源未找到"},
        422: {"description": "请求验证失败"},
    }
)


@router.get("/products", response_model=ProductListResponse, summary="商品列表")
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query("", max_length=100),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"success": True, **service.list_published(page, limit, search)}


@router.get("/products/{slug}", response_model=ProductResponse, summary="商品详情")
async def get_product(
    slug: str = Path(..., max_length=128),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"success": True, "product": service.get_published(slug)}


@router.get(
    "/variants/{variant_id}/stock",
    response_model=StockResponse,
    summary="查询规格库存",
    description="""查询规格的可售库存，仅用于展示。

    **缓存策略：**
    - 首先查询Redis缓存，未命中再查数据库
    - 结果缓存5分钟，库存变更后立即失效
    """,
)
async def get_variant_stock(
    variant_id: int = Path(..., gt=0, description="商品规格ID"),
    service: CatalogService = Depends(get_catalog_service),
):
    return {
        "success": True,
        "variant_id": variant_id,
        "available_stock": service.get_variant_stock(variant_id),
    }
