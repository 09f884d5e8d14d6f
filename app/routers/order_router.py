"""订单与支付回调 API 路由"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Path, Body
import logging

from app.core.dependencies import get_checkout_service
from app.core.security import get_current_owner, require_shared_secret
from app.services.checkout_service import CheckoutService
from app.schemas.base import ErrorResponse
from app.schemas.order import (
    OrderResponse,
    OrderListResponse,
    PaymentCallbackRequest,
    PaymentCallbackResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/orders",
    tags=["订单"],
    responses={
        400: {"model": ErrorResponse, "description": "购物车为空"},
        401: {"model": ErrorResponse, "description": "缺少用户或会话标识"},
        404: {"model": ErrorResponse, "description": "订单不存在"},
        409: {"model": ErrorResponse, "description": "预占已过期或状态冲突"},
        500: {"model": ErrorResponse, "description": "服务器内部错误"}
    }
)

payment_router = APIRouter(
    prefix="/payments",
    tags=["支付"],
    dependencies=[Depends(require_shared_secret)],
    responses={
        401: {"model": ErrorResponse, "description": "回调密钥错误"},
        404: {"model": ErrorResponse, "description": "订单不存在"},
        409: {"model": ErrorResponse, "description": "订单已过期或已取消"},
    }
)


@router.post(
    "/checkout",
    response_model=OrderResponse,
    status_code=201,
    summary="结算下单",
    description="""把购物车快照为待支付订单，支付截止时间为下单后 20 分钟。

    **注意：**
    - 结算时重新校验预占，已过期的商品需要重新加入购物车（409 stock_conflict）
    - 携带 Idempotency-Key 的重复请求直接返回首次结果
    """,
)
async def checkout(
    idempotency_key: Optional[str] = Header(None, max_length=128),
    owner_id: str = Depends(get_current_owner),
    service: CheckoutService = Depends(get_checkout_service),
):
    order = service.checkout(owner_id, idempotency_key=idempotency_key)
    return {"success": True, "message": "下单成功", "order": order}


@router.get("", response_model=OrderListResponse, summary="我的订单")
async def list_orders(
    owner_id: str = Depends(get_current_owner),
    service: CheckoutService = Depends(get_checkout_service),
):
    return {"success": True, "orders": service.list_orders(owner_id)}


@router.get("/{order_no}", response_model=OrderResponse, summary="订单详情")
async def get_order(
    order_no: str = Path(..., max_length=64),
    owner_id: str = Depends(get_current_owner),
    service: CheckoutService = Depends(get_checkout_service),
):
    return {"success": True, "order": service.get_order(order_no, owner_id)}


@router.post("/{order_no}/cancel", response_model=OrderResponse, summary="取消订单")
async def cancel_order(
    order_no: str = Path(..., max_length=64),
    owner_id: str = Depends(get_current_owner),
    service: CheckoutService = Depends(get_checkout_service),
):
    """只能取消待支付订单，取消后预占库存立即归还"""
    order = service.cancel(order_no, owner_id)
    return {"success": True, "message": "订单已取消", "order": order}


@payment_router.post("/callback", response_model=PaymentCallbackResponse, summary="支付成功回调")
async def payment_callback(
    request: PaymentCallbackRequest = Body(...),
    service: CheckoutService = Depends(get_checkout_service),
):
    """支付渠道确认到账后调用；重复回调是幂等的"""
    result = service.mark_paid(request.order_no, request.provider, request.provider_payment_id)
    return {"success": True, **result}
