"""购物车 API 路由"""

from fastapi import APIRouter, Depends, Path, Body
import logging

from app.core.dependencies import get_cart_service
from app.core.security import get_current_owner, get_current_user_id, guest_owner, user_owner
from app.services.cart_service import CartService
from app.schemas.base import ErrorResponse
from app.schemas.cart import (
    AddCartItemRequest,
    UpdateCartItemRequest,
    MergeCartRequest,
    CartResponse,
    MergeCartResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/cart",
    tags=["购物车"],
    responses={
        400: {"model": ErrorResponse, "description": "请求参数错误"},
        401: {"model": ErrorResponse, "description": "缺少用户或会话标识"},
        404: {"model": ErrorResponse, "description": "资源未找到"},
        409: {"model": ErrorResponse, "description": "库存不足或并发冲突"},
        500: {"model": ErrorResponse, "description": "服务器内部错误"}
    }
)


@router.get("", response_model=CartResponse, summary="查询购物车")
async def get_cart(
    owner_id: str = Depends(get_current_owner),
    service: CartService = Depends(get_cart_service),
):
    return service.get_cart(owner_id)


@router.post(
    "/items",
    response_model=CartResponse,
    summary="加入购物车",
    description="""加购即预占库存，预占在最后一次修改购物车后 15 分钟过期。

    **特点：**
    - 使用单条条件更新扣减库存，可售库存永不为负
    - 同一规格重复加购会累加数量，单品不超过上限
    """,
)
async def add_item(
    request: AddCartItemRequest = Body(...),
    owner_id: str = Depends(get_current_owner),
    service: CartService = Depends(get_cart_service),
):
    return service.add_item(owner_id, request.variant_id, request.quantity)


@router.patch("/items/{variant_id}", response_model=CartResponse, summary="修改购买数量")
async def update_item(
    variant_id: int = Path(..., gt=0, description="商品规格ID"),
    request: UpdateCartItemRequest = Body(...),
    owner_id: str = Depends(get_current_owner),
    service: CartService = Depends(get_cart_service),
):
    return service.update_item(owner_id, variant_id, request.quantity)


@router.delete("/items/{variant_id}", response_model=CartResponse, summary="移除商品")
async def remove_item(
    variant_id: int = Path(..., gt=0, description="商品规格ID"),
    owner_id: str = Depends(get_current_owner),
    service: CartService = Depends(get_cart_service),
):
    return service.remove_item(owner_id, variant_id)


@router.delete("", response_model=CartResponse, summary="清空购物车")
async def clear_cart(
    owner_id: str = Depends(get_current_owner),
    service: CartService = Depends(get_cart_service),
):
    return service.clear(owner_id)


@router.post("/merge", response_model=MergeCartResponse, summary="合并游客购物车")
async def merge_cart(
    request: MergeCartRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    service: CartService = Depends(get_cart_service),
):
    """登录后调用一次：数量相加，不超过单品上限"""
    return service.merge_guest_cart(guest_owner(request.guest_session_id), user_owner(user_id))
