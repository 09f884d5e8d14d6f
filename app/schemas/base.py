"""通用响应模型"""

from pydantic import BaseModel, Field
from typing import Optional


class BaseResponse(BaseModel):
    """基础响应模型"""
    success: bool = Field(
        True,
        description="请求是否成功"
    )
    message: Optional[str] = Field(
        None,
        description="响应消息"
    )


class ErrorResponse(BaseModel):
    """错误响应模型"""
    success: bool = Field(False)
    error: str = Field(..., description="可读的错误信息")
    code: Optional[str] = Field(None, description="错误类型")


class HealthCheckResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(
        "healthy",
        description="服务状态"
    )
    service: str = Field(
        "bakery-storefront",
        description="服务名称"
    )
    version: str = Field(
        "1.0.0",
        description="服务版本"
    )


class APIInfoResponse(BaseModel):
    """API信息响应"""
    message: str = Field(
        "欢迎使用烘焙商城服务",
        description="欢迎信息"
    )
    docs: str = Field(
        "/docs",
        description="API文档路径"
    )
    health: str = Field(
        "/health",
        description="健康检查路径"
    )
