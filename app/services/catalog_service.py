"""商品目录服务：前台展示 + 后台商品/规格管理"""

import logging
import math
from typing import Any, Dict, List, Optional

from redis import Redis
from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    VariantNotFoundError,
)
from app.models.cart_line_item import CartLineItem
from app.models.inventory_logs import InventoryLog, ChangeType
from app.models.product import Product, ProductStatus
from app.models.product_variant import ProductVariant
from app.services.base import unit_of_work
from app.services.reservation_ledger import SYNC_FETCH
from app.services.stock_cache import StockCache

logger = logging.getLogger(__name__)


class CatalogService:
    """商品目录服务类"""

    def __init__(self, db: Session, redis: Redis = None):
        self.db = db
        self.redis = redis
        self.stock_cache = StockCache(redis)

    # ==================== 前台 ====================

    def list_published(self, page: int = 1, limit: int = 20, search: str = "") -> Dict[str, Any]:
        return self.list_products(page, limit, search, ProductStatus.PUBLISHED, active_only=True)

    def get_published(self, slug: str) -> Dict[str, Any]:
        product = self.db.execute(
            select(Product)
            .options(selectinload(Product.variants))
            .where(Product.slug == slug, Product.status == ProductStatus.PUBLISHED)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError()
        return self._product_to_dict(product, active_only=True)

    def get_variant_stock(self, variant_id: int) -> int:
        """查询规格可售库存（带缓存，仅用于展示）"""
        cached = self.stock_cache.get(variant_id)
        if cached is not None:
            return cached

        available = self.db.execute(
            select(ProductVariant.available_stock).where(ProductVariant.id == variant_id)
        ).scalar_one_or_none()
        if available is None:
            raise VariantNotFoundError()

        self.stock_cache.set(variant_id, available)
        return available

    # ==================== 后台：商品 ====================

    def list_products(
        self,
        page: int = 1,
        limit: int = 20,
        search: str = "",
        status: Optional[ProductStatus] = None,
        active_only: bool = False,
    ) -> Dict[str, Any]:
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.slug.ilike(pattern)))
        if status:
            conditions.append(Product.status == status)

        total = self.db.execute(
            select(func.count(Product.id)).where(*conditions)
        ).scalar_one()

        products = self.db.execute(
            select(Product)
            .options(selectinload(Product.variants))
            .where(*conditions)
            .order_by(Product.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return {
            "products": [self._product_to_dict(p, active_only) for p in products],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def create_product(self, data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        """创建商品，可同时创建规格；未填写 SKU 的规格按 <slug>-v<序号> 生成"""
        variants = data.pop("variants", None) or []

        with unit_of_work(self.db, "创建商品"):
            self._ensure_unique_slug(data["slug"])
            product = Product(**data)
            self.db.add(product)
            self.db.flush()

            for index, variant_data in enumerate(variants, start=1):
                sku = variant_data.get("sku") or f"{product.slug}-v{index}"
                self._ensure_unique_sku(sku)
                product.variants.append(
                    ProductVariant(
                        sku=sku,
                        price=variant_data.get("price") or product.base_price,
                        available_stock=variant_data.get("available_stock") or 0,
                        is_active=variant_data.get("is_active", True),
                        track_inventory=variant_data.get("track_inventory", True),
                    )
                )
                self.db.flush()
            self.db.refresh(product)

        logger.info(f"创建商品: product_id={product.id}, slug={product.slug}, admin={admin_id}")
        return self._product_to_dict(product)

    def get_product(self, product_id: int) -> Dict[str, Any]:
        return self._product_to_dict(self._get_product(product_id))

    def update_product(self, product_id: int, data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        with unit_of_work(self.db, "更新商品"):
            product = self._get_product(product_id)
            if "slug" in data and data["slug"] != product.slug:
                self._ensure_unique_slug(data["slug"])
            for field, value in data.items():
                setattr(product, field, value)
            self.db.flush()

        logger.info(f"更新商品: product_id={product_id}, fields={sorted(data)}, admin={admin_id}")
        return self._product_to_dict(product)

    def archive_product(self, product_id: int, admin_id: str) -> Dict[str, Any]:
        """下架商品并停用全部规格；已有的预占不受影响，照常过期或结算"""
        with unit_of_work(self.db, "下架商品"):
            product = self._get_product(product_id)
            product.status = ProductStatus.ARCHIVED
            for variant in product.variants:
                variant.is_active = False
            self.db.flush()

        logger.info(f"下架商品: product_id={product_id}, admin={admin_id}")
        return self._product_to_dict(product)

    # ==================== 后台：规格 ====================

    def list_variants(self, product_id: int) -> List[Dict[str, Any]]:
        product = self._get_product(product_id)
        return [self._variant_to_dict(v) for v in product.variants]

    def create_variant(self, product_id: int, data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        with unit_of_work(self.db, "创建规格"):
            product = self._get_product(product_id)
            sku = data.get("sku") or f"{product.slug}-v{len(product.variants) + 1}"
            self._ensure_unique_sku(sku)
            variant = ProductVariant(
                sku=sku,
                price=data.get("price") or product.base_price,
                available_stock=data.get("available_stock") or 0,
                is_active=data.get("is_active", True),
                track_inventory=data.get("track_inventory", True),
            )
            product.variants.append(variant)
            self.db.flush()

        logger.info(f"创建规格: variant_id={variant.id}, sku={variant.sku}, admin={admin_id}")
        return self._variant_to_dict(variant)

    def update_variant(
        self,
        product_id: int,
        variant_id: int,
        data: Dict[str, Any],
        admin_id: str,
    ) -> Dict[str, Any]:
        """更新价格 / SKU / 启用状态 / 库存追踪；库存只能通过 adjust_stock 修改"""
        with unit_of_work(self.db, "更新规格"):
            variant = self.db.execute(
                select(ProductVariant).where(
                    ProductVariant.id == variant_id,
                    ProductVariant.product_id == product_id,
                )
            ).scalar_one_or_none()
            if variant is None:
                raise VariantNotFoundError()
            if "sku" in data and data["sku"] != variant.sku:
                self._ensure_unique_sku(data["sku"])
            if "track_inventory" in data and data["track_inventory"] != variant.track_inventory:
                self._ensure_no_open_lines(variant_id)
            for field, value in data.items():
                setattr(variant, field, value)
            self.db.flush()

        logger.info(f"更新规格: variant_id={variant_id}, fields={sorted(data)}, admin={admin_id}")
        return self._variant_to_dict(variant)

    def adjust_stock(
        self,
        variant_id: int,
        delta: int,
        admin_id: str,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        """人工调整可售库存（入库为正，盘亏为负），可售库存不会被调成负数"""
        if delta == 0:
            raise InvalidQuantityError("调整数量不能为 0")

        with unit_of_work(self.db, "调整库存"):
            conditions = [ProductVariant.id == variant_id]
            if delta < 0:
                conditions.append(ProductVariant.available_stock >= -delta)

            row = self.db.execute(
                update(ProductVariant)
                .where(*conditions)
                .values(available_stock=ProductVariant.available_stock + delta)
                .returning(ProductVariant.available_stock, ProductVariant.reserved_stock)
                .execution_options(**SYNC_FETCH)
            ).first()

            if row is None:
                available = self.db.execute(
                    select(ProductVariant.available_stock).where(ProductVariant.id == variant_id)
                ).scalar_one_or_none()
                if available is None:
                    raise VariantNotFoundError()
                raise InsufficientStockError(variant_id, -delta, available)

            self.db.add(
                InventoryLog(
                    variant_id=variant_id,
                    change_type=ChangeType.ADJUST,
                    quantity=delta,
                    before_available=row.available_stock - delta,
                    after_available=row.available_stock,
                    operator=admin_id,
                    source=f"admin:{reason}" if reason else "admin",
                )
            )

        self.stock_cache.invalidate([variant_id])
        logger.info(f"调整库存: variant_id={variant_id}, delta={delta}, admin={admin_id}")
        return {
            "variant_id": variant_id,
            "available_stock": row.available_stock,
            "reserved_stock": row.reserved_stock,
        }

    # ==================== 内部方法 ====================

    def _get_product(self, product_id: int) -> Product:
        product = self.db.execute(
            select(Product)
            .options(selectinload(Product.variants))
            .where(Product.id == product_id)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError()
        return product

    def _ensure_unique_slug(self, slug: str) -> None:
        exists = self.db.execute(select(Product.id).where(Product.slug == slug)).first()
        if exists:
            raise ConflictError(f"slug 已存在: {slug}")

    def _ensure_unique_sku(self, sku: str) -> None:
        exists = self.db.execute(select(ProductVariant.id).where(ProductVariant.sku == sku)).first()
        if exists:
            raise ConflictError(f"SKU 已存在: {sku}")

    def _ensure_no_open_lines(self, variant_id: int) -> None:
        """切换库存追踪前要求该规格没有任何购物车行（含待支付订单占用的行）"""
        lines = self.db.execute(
            select(func.count(CartLineItem.id)).where(CartLineItem.variant_id == variant_id)
        ).scalar_one()
        if lines:
            raise ConflictError(f"规格仍有 {lines} 条购物车预占，不能切换库存追踪")

    def _product_to_dict(self, product: Product, active_only: bool = False) -> Dict[str, Any]:
        variants = [v for v in product.variants if v.is_active or not active_only]
        return {
            "id": product.id,
            "slug": product.slug,
            "name": product.name,
            "description": product.description,
            "base_price": product.base_price,
            "status": product.status.value,
            "variants": [self._variant_to_dict(v) for v in variants],
        }

    @staticmethod
    def _variant_to_dict(variant: ProductVariant) -> Dict[str, Any]:
        return {
            "id": variant.id,
            "product_id": variant.product_id,
            "sku": variant.sku,
            "price": variant.price,
            "available_stock": variant.available_stock,
            "reserved_stock": variant.reserved_stock,
            "is_active": variant.is_active,
            "track_inventory": variant.track_inventory,
        }
