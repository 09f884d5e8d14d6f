# Models
from .product import Product, ProductStatus
from .product_variant import ProductVariant
from .cart_line_item import CartLineItem
from .order import Order, OrderItem, OrderStatus
from .inventory_logs import InventoryLog, ChangeType
from .idempotency_keys import IdempotencyKey, IdempotencyStatus
from .customer import Customer, CustomerAddress
from .variation_template import VariationTemplate, VariationTemplateValue

__all__ = [
    "Product",
    "ProductStatus",
    "ProductVariant",
    "CartLineItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "InventoryLog",
    "ChangeType",
    "IdempotencyKey",
    "IdempotencyStatus",
    "Customer",
    "CustomerAddress",
    "VariationTemplate",
    "VariationTemplateValue",
]
