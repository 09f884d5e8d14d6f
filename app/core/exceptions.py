"""业务异常定义

服务层只抛出这里定义的异常，由 app.main 中的全局处理器统一转换为
{"success": false, "error": ..., "code": ...} 形式的 JSON 响应。
第三方（数据库驱动、身份服务）的异常在进入服务层边界时就被转换掉。
"""

from typing import Any, Dict, List, Optional


class StorefrontError(Exception):
    """业务异常基类"""
    status_code: int = 400
    code: str = "storefront_error"
    message: str = "请求处理失败"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.context:
            body["details"] = self.context
        return body


class InsufficientStockError(StorefrontError):
    status_code = 409
    code = "insufficient_stock"
    message = "库存不足"

    def __init__(self, variant_id: int, requested: int, available: int):
        super().__init__(
            f"库存不足：规格 {variant_id} 仅剩 {available} 件，请求 {requested} 件",
            variant_id=variant_id,
            requested=requested,
            available=available,
        )


class EmptyCartError(StorefrontError):
    status_code = 400
    code = "empty_cart"
    message = "购物车为空，无法结算"


class StockConflictError(StorefrontError):
    """预占在加购与结算之间已过期，需要重新加入购物车"""
    status_code = 409
    code = "stock_conflict"
    message = "部分商品的库存预占已过期，请重新加入购物车"

    def __init__(self, variant_ids: Optional[List[int]] = None):
        if variant_ids:
            super().__init__(variant_ids=variant_ids)
        else:
            super().__init__()


class InvalidQuantityError(StorefrontError):
    status_code = 400
    code = "invalid_quantity"
    message = "购买数量不合法"


class NotFoundError(StorefrontError):
    status_code = 404
    code = "not_found"
    message = "资源不存在"


class VariantNotFoundError(NotFoundError):
    message = "商品规格不存在或已下架"


class ProductNotFoundError(NotFoundError):
    message = "商品不存在"


class CartItemNotFoundError(NotFoundError):
    message = "购物车中没有该商品"


class OrderNotFoundError(NotFoundError):
    message = "订单不存在"


class CustomerNotFoundError(NotFoundError):
    message = "客户不存在"


class AddressNotFoundError(NotFoundError):
    message = "地址不存在"


class TemplateNotFoundError(NotFoundError):
    message = "规格模板不存在"


class TemplateValueNotFoundError(NotFoundError):
    message = "规格取值不存在"


class InvalidOrderTransitionError(StorefrontError):
    status_code = 409
    code = "invalid_transition"
    message = "订单状态不允许该操作"


class DuplicateRequestError(StorefrontError):
    status_code = 409
    code = "duplicate_request"
    message = "相同的请求正在处理中"


class AuthenticationRequiredError(StorefrontError):
    status_code = 401
    code = "unauthenticated"
    message = "Unauthorized"


class ForbiddenError(StorefrontError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class UnauthorizedCleanupError(StorefrontError):
    status_code = 401
    code = "unauthorized"
    message = "Unauthorized"


class PersistenceError(StorefrontError):
    """数据库失败，不自动重试"""
    status_code = 500
    code = "persistence_error"
    message = "数据库操作失败"




class ConflictError(StorefrontError):
    """唯一性冲突，例如重复的 slug / SKU"""
    status_code = 409
    code = "conflict"
    message = "资源已存在"


class ConcurrentModificationError(StorefrontError):
    """同一购物车行被并发修改"""
    status_code = 409
    code = "concurrent_modification"
    message = "购物车已被其他请求修改，请刷新后重试"


__all__ = [
    "StorefrontError",
    "InsufficientStockError",
    "EmptyCartError",
    "StockConflictError",
    "InvalidQuantityError",
    "NotFoundError",
    "VariantNotFoundError",
    "ProductNotFoundError",
    "CartItemNotFoundError",
    "OrderNotFoundError",
    "CustomerNotFoundError",
    "AddressNotFoundError",
    "TemplateNotFoundError",
    "TemplateValueNotFoundError",
    "InvalidOrderTransitionError",
    "DuplicateRequestError",
    "ConflictError",
    "ConcurrentModificationError",
    "AuthenticationRequiredError",
    "ForbiddenError",
    "UnauthorizedCleanupError",
    "PersistenceError",
]
