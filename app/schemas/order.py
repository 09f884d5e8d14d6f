"""订单与支付回调模型"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.schemas.base import BaseResponse


class OrderItemSchema(BaseModel):
    variant_id: int
    sku: str
    product_name: str
    quantity: int
    unit_price: Decimal


class OrderSchema(BaseModel):
    order_no: str
    owner_id: str
    status: str
    total_amount: Decimal
    payment_deadline: datetime
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    items: List[OrderItemSchema] = []


class OrderResponse(BaseResponse):
    order: OrderSchema


class OrderListResponse(BaseResponse):
    orders: List[OrderSchema] = []


class PaymentCallbackRequest(BaseModel):
    """支付渠道确认到账后的回调"""
    order_no: str = Field(..., min_length=1, max_length=64, examples=["ORD20260101120000AB12CD34"])
    provider: str = Field(..., pattern="^(stripe|paypal)$")
    provider_payment_id: str = Field(..., min_length=1, max_length=128)


class PaymentCallbackResponse(OrderResponse):
    already_finalized: bool = False
