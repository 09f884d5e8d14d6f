"""后台规格模板 API 路由"""

from fastapi import APIRouter, Depends, Path, Body
import logging

from app.core.dependencies import get_variation_service
from app.core.security import require_admin
from app.services.variation_service import VariationService
from app.schemas.base import BaseResponse, ErrorResponse
from app.schemas.variation import (
    TemplateCreate,
    TemplateUpdate,
    ValueCreate,
    ValueUpdate,
    TemplateResponse,
    TemplateListResponse,
    ValueResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/admin/variations",
    tags=["后台规格模板"],
    responses={
        401: {"model": ErrorResponse, "description": "未登录"},
        403: {"model": ErrorResponse, "description": "非管理员"},
        404: {"model": ErrorResponse, "description": "模板或取值不存在"},
        409: {"model": ErrorResponse, "description": "名称重复（忽略大小写）"},
    }
)


@router.get("", response_model=TemplateListResponse, summary="模板列表（含取值）")
async def list_templates(
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    return {"success": True, "templates": service.list_templates()}


@router.post("", response_model=TemplateResponse, status_code=201, summary="创建模板")
async def create_template(
    request: TemplateCreate = Body(...),
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    template = service.create_template(request.name, request.display_order, admin_id)
    return {"success": True, "template": template}


@router.get("/{template_id}", response_model=TemplateResponse, summary="模板详情")
async def get_template(
    template_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    return {"success": True, "template": service.get_template(template_id)}


@router.patch("/{template_id}", response_model=TemplateResponse, summary="更新模板")
async def update_template(
    template_id: int = Path(..., gt=0),
    request: TemplateUpdate = Body(...),
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    data = request.model_dump(exclude_unset=True, exclude_none=True)
    return {"success": True, "template": service.update_template(template_id, data, admin_id)}


@router.delete("/{template_id}", response_model=BaseResponse, summary="删除模板")
async def delete_template(
    template_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    service.delete_template(template_id, admin_id)
    return {"success": True, "message": "规格模板已删除"}


@router.post(
    "/{template_id}/values",
    response_model=ValueResponse,
    status_code=201,
    summary="新增取值",
)
async def add_value(
    template_id: int = Path(..., gt=0),
    request: ValueCreate = Body(...),
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    value = service.add_value(template_id, request.value, request.display_order, admin_id)
    return {"success": True, "value": value}


@router.patch(
    "/{template_id}/values/{value_id}",
    response_model=ValueResponse,
    summary="更新取值",
)
async def update_value(
    template_id: int = Path(..., gt=0),
    value_id: int = Path(..., gt=0),
    request: ValueUpdate = Body(...),
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    data = request.model_dump(exclude_unset=True, exclude_none=True)
    return {"success": True, "value": service.update_value(template_id, value_id, data, admin_id)}


@router.delete(
    "/{template_id}/values/{value_id}",
    response_model=BaseResponse,
    summary="删除取值",
)
async def delete_value(
    template_id: int = Path(..., gt=0),
    value_id: int = Path(..., gt=0),
    admin_id: str = Depends(require_admin),
    service: VariationService = Depends(get_variation_service),
):
    service.delete_value(template_id, value_id, admin_id)
    return {"success": True, "message": "规格取值已删除"}
