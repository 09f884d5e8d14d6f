"""后台客户管理 API 路由：客户资料、批量删除、收货地址"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Body
import logging

from app.core.dependencies import get_customer_service
from app.core.security import require_admin
from app.services.customer_service import CustomerService
from app.schemas.base import BaseResponse, ErrorResponse
from app.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerBulkDelete,
    AddressCreate,
    AddressUpdate,
    CustomerResponse,
    CustomerListResponse,
    CustomerDeleteResponse,
    AddressResponse,
    AddressListResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/admin/customers",
    tags=["后台客户管理"],
    responses={
        401: {"model": ErrorResponse, "description": "未登录"},
        403: {"model": ErrorResponse, "description": "非管理员"},
        404: {"model": ErrorResponse, "description": "客户或地址不存在"},
        409: {"model": ErrorResponse, "description": "邮箱重复或客户存在订单"},
    }
)


@router.get("", response_model=CustomerListResponse, summary="客户列表")
async def list_customers(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    search: str = Query("", max_length=100, description="姓名 / 邮箱 / 电话 / 公司"),
    status: Optional[str] = Query(None, pattern="^(active|inactive)$"),
    sort: str = Query("created_at", pattern="^(created_at|first_name|last_name|email)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    return {"success": True, **service.list_customers(page, limit, search, status, sort, order)}


@router.post("", response_model=CustomerResponse, status_code=201, summary="创建客户")
async def create_customer(
    request: CustomerCreate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    return {"success": True, "customer": service.create_customer(request.model_dump(), admin_id)}


@router.delete(
    "",
    response_model=CustomerDeleteResponse,
    summary="批量删除客户",
    description="任一客户存在订单时整体拒绝（409），应改为停用。",
)
async def bulk_delete_customers(
    request: CustomerBulkDelete = Body(...),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    return {"success": True, "deleted": service.delete_customers(request.ids, admin_id)}


@router.get("/{customer_id}", response_model=CustomerResponse, summary="客户详情")
async def get_customer(
    customer_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    return {"success": True, "customer": service.get_customer(customer_id)}


@router.patch("/{customer_id}", response_model=CustomerResponse, summary="更新客户")
async def update_customer(
    customer_id: int = Path(..., gt=0),
    request: CustomerUpdate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    data = request.model_dump(exclude_unset=True, exclude_none=True)
    return {"success": True, "customer": service.update_customer(customer_id, data, admin_id)}


@router.delete("/{customer_id}", response_model=BaseResponse, summary="删除客户")
async def delete_customer(
    customer_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    service.delete_customer(customer_id, admin_id)
    return {"success": True, "message": "客户已删除"}


# ==================== 收货地址 ====================

@router.get("/{customer_id}/addresses", response_model=AddressListResponse, summary="地址列表")
async def list_addresses(
    customer_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    return {"success": True, "addresses": service.list_addresses(customer_id)}


@router.post(
    "/{customer_id}/addresses",
    response_model=AddressResponse,
    status_code=201,
    summary="新增地址",
)
async def create_address(
    customer_id: int = Path(..., gt=0),
    request: AddressCreate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    return {"success": True, "address": service.create_address(customer_id, request.model_dump(), admin_id)}


@router.patch(
    "/{customer_id}/addresses/{address_id}",
    response_model=AddressResponse,
    summary="更新地址",
)
async def update_address(
    customer_id: int = Path(..., gt=0),
    address_id: int = Path(..., gt=0),
    request: AddressUpdate = Body(...),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    data = request.model_dump(exclude_unset=True, exclude_none=True)
    return {"success": True, "address": service.update_address(customer_id, address_id, data, admin_id)}


@router.delete(
    "/{customer_id}/addresses/{address_id}",
    response_model=BaseResponse,
    summary="删除地址",
)
async def delete_address(
    customer_id: int = Path(..., gt=0),
    address_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: CustomerService = Depends(get_customer_service),
):
    service.delete_address(customer_id, address_id, admin_id)
    return {"success": True, "message": "地址已删除"}
