"""规格模板模型"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.base import BaseResponse


class TemplateCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100, examples=["尺寸"])
    display_order: int = Field(0, ge=0)


class TemplateUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_order: Optional[int] = Field(None, ge=0)


class ValueCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    value: str = Field(..., min_length=1, max_length=100, examples=["6 寸"])
    display_order: Optional[int] = Field(None, ge=0, description="为空时排在最后")


class ValueUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    value: Optional[str] = Field(None, min_length=1, max_length=100)
    display_order: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_not_empty(self):
        if self.value is None and self.display_order is None:
            raise ValueError("没有需要更新的字段")
        return self


class ValueSchema(BaseModel):
    id: int
    template_id: int
    value: str
    display_order: int


class TemplateSchema(BaseModel):
    id: int
    name: str
    display_order: int
    values: List[ValueSchema] = []


class TemplateResponse(BaseResponse):
    template: TemplateSchema


class TemplateListResponse(BaseResponse):
    templates: List[TemplateSchema] = []


class ValueResponse(BaseResponse):
    value: ValueSchema
