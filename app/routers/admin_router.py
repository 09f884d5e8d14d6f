"""后台管理 API 路由：商品、规格、库存调整"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Body
import logging

from app.core.dependencies import get_catalog_service
from app.core.security import require_admin
from app.models.product import ProductStatus
from app.services.catalog_service import CatalogService
from app.schemas.base import ErrorResponse
from app.schemas.catalog import (
    ProductCreate,
    ProductUpdate,
    VariantCreate,
    VariantUpdate,
    StockAdjustRequest,
    ProductResponse,
    ProductListResponse,
    VariantResponse,
    VariantListResponse,
    StockAdjustResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/admin",
    tags=["后台管理"],
    responses={
        401: {"model": ErrorResponse, "description": "未登录"},
        403: {"model": ErrorResponse, "description": "非管理员"},
        404: {"model": ErrorResponse, "description": "资源未找到"},
        409: {"model": ErrorResponse, "description": "slug/SKU 冲突或库存不足"},
    }
)


@router.get("/products", response_model=ProductListResponse, summary="商品列表（含草稿）")
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = Query("", max_length=100),
    status: Optional[ProductStatus] = Query(None),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"success": True, **service.list_products(page, limit, search, status)}


@router.post("/products", response_model=ProductResponse, status_code=201, summary="创建商品")
async def create_product(
    request: ProductCreate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    data = request.model_dump()
    return {"success": True, "product": service.create_product(data, admin_id)}


@router.get("/products/{product_id}", response_model=ProductResponse, summary="商品详情")
async def get_product(
    product_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"success": True, "product": service.get_product(product_id)}


@router.patch("/products/{product_id}", response_model=ProductResponse, summary="更新商品")
async def update_product(
    product_id: int = Path(..., gt=0),
    request: ProductUpdate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    data = request.model_dump(exclude_unset=True)
    return {"success": True, "product": service.update_product(product_id, data, admin_id)}


@router.delete("/products/{product_id}", response_model=ProductResponse, summary="下架商品")
async def archive_product(
    product_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"success": True, "message": "商品已下架", "product": service.archive_product(product_id, admin_id)}


@router.get("/products/{product_id}/variants", response_model=VariantListResponse, summary="规格列表")
async def list_variants(
    product_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"success": True, "variants": service.list_variants(product_id)}


@router.post(
    "/products/{product_id}/variants",
    response_model=VariantResponse,
    status_code=201,
    summary="创建规格",
)
async def create_variant(
    product_id: int = Path(..., gt=0),
    request: VariantCreate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    return {"success": True, "variant": service.create_variant(product_id, request.model_dump(), admin_id)}


@router.patch(
    "/products/{product_id}/variants/{variant_id}",
    response_model=VariantResponse,
    summary="更新规格",
)
async def update_variant(
    product_id: int = Path(..., gt=0),
    variant_id: int = Path(..., gt=0),
    request: VariantUpdate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    data = request.model_dump(exclude_unset=True)
    return {"success": True, "variant": service.update_variant(product_id, variant_id, data, admin_id)}


@router.post(
    "/variants/{variant_id}/stock",
    response_model=StockAdjustResponse,
    summary="调整库存",
    description="""人工入库 / 盘点调整可售库存，记录 ADJUST 日志。

    **注意：**
    - 只调整可售库存，已预占的数量不受影响
    - 出库数量不能超过当前可售库存
    """,
)
async def adjust_stock(
    variant_id: int = Path(..., gt=0),
    request: StockAdjustRequest = Body(...),
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
):
    result = service.adjust_stock(variant_id, request.delta, admin_id, request.reason)
    return {"success": True, "message": "库存已调整", **result}
