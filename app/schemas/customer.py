"""后台客户管理模型"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.base import BaseResponse
from app.schemas.catalog import Pagination

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ==================== 请求模型 ====================

class CustomerCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Optional[str] = Field(None, max_length=64, description="关联的登录账号，后台新建客户可为空")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255, pattern=EMAIL_PATTERN, examples=["jane@example.com"])
    phone: Optional[str] = Field(None, max_length=32)
    company: Optional[str] = Field(None, max_length=255)
    admin_notes: Optional[str] = None
    tags: List[str] = []
    social_media: Optional[Dict[str, Any]] = None


class CustomerUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, max_length=32)
    company: Optional[str] = Field(None, max_length=255)
    admin_notes: Optional[str] = None
    tags: Optional[List[str]] = None
    social_media: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None


class CustomerBulkDelete(BaseModel):
    ids: List[int] = Field(..., min_length=1, max_length=100)


class AddressCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    label: Optional[str] = Field(None, max_length=50, description="为空时为 Home")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip: str = Field(..., min_length=1, max_length=20)
    country: Optional[str] = Field(None, min_length=2, max_length=2, description="为空时为 US")
    phone: Optional[str] = Field(None, max_length=32)
    is_default: bool = False


class AddressUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    label: Optional[str] = Field(None, min_length=1, max_length=50)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    address_line1: Optional[str] = Field(None, min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=1, max_length=100)
    zip: Optional[str] = Field(None, min_length=1, max_length=20)
    country: Optional[str] = Field(None, min_length=2, max_length=2)
    phone: Optional[str] = Field(None, max_length=32)
    is_default: Optional[bool] = None


# ==================== 响应模型 ====================

class AddressSchema(BaseModel):
    id: int
    customer_id: int
    label: str
    first_name: str
    last_name: str
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    zip: str
    country: str
    phone: Optional[str] = None
    is_default: bool


class CustomerSchema(BaseModel):
    id: int
    user_id: Optional[str] = None
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    admin_notes: Optional[str] = None
    tags: List[str] = []
    social_media: Optional[Dict[str, Any]] = None
    is_active: bool
    created_at: Optional[datetime] = None
    addresses: List[AddressSchema] = []


class CustomerResponse(BaseResponse):
    customer: CustomerSchema


class CustomerListResponse(BaseResponse):
    customers: List[CustomerSchema] = []
    pagination: Pagination


class CustomerDeleteResponse(BaseResponse):
    deleted: int


class AddressResponse(BaseResponse):
    address: AddressSchema


class AddressListResponse(BaseResponse):
    addresses: List[AddressSchema] = []
