"""购物车服务"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, Optional

from redis import Redis
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import CartItemNotFoundError
from app.core.timeutils import utcnow
from app.models.cart_line_item import CartLineItem
from app.models.product import Product
from app.models.product_variant import ProductVariant
from app.services.base import unit_of_work
from app.services.reservation_ledger import ReservationLedger
from app.services.stock_cache import StockCache

logger = logging.getLogger(__name__)


class CartService:
    """购物车用例：查询 + 加购 / 改数量 / 移除 / 清空 / 合并

    每个写操作是一个事务，返回更新后的购物车。
    """

    def __init__(self, db: Session, redis: Redis = None):
        self.db = db
        self.redis = redis
        self.ledger = ReservationLedger(db)
        self.stock_cache = StockCache(redis)

    def get_cart(self, owner_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        rows = self.db.execute(
            select(
                CartLineItem,
                ProductVariant,
                Product.name,
                Product.slug,
                (CartLineItem.expires_at < now).label("lapsed"),
            )
            .join(ProductVariant, ProductVariant.id == CartLineItem.variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                CartLineItem.owner_id == owner_id,
                CartLineItem.order_id.is_(None),
            )
            .order_by(CartLineItem.id)
        ).all()

        items = []
        subtotal = Decimal("0.00")
        for line, variant, product_name, product_slug, lapsed in rows:
            line_total = variant.price * line.quantity
            subtotal += line_total
            items.append({
                "id": line.id,
                "variant_id": variant.id,
                "sku": variant.sku,
                "product_name": product_name,
                "product_slug": product_slug,
                "unit_price": variant.price,
                "quantity": line.quantity,
                "line_total": line_total,
                "expires_at": line.expires_at,
                "lapsed": bool(lapsed),
            })

        return {
            "owner_id": owner_id,
            "items": items,
            "subtotal": subtotal,
            "item_count": sum(i["quantity"] for i in items),
        }

    def add_item(
        self,
        owner_id: str,
        variant_id: int,
        quantity: int = 1,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        with unit_of_work(self.db, "加入购物车"):
            self.ledger.reserve(owner_id, variant_id, quantity, now)
        self._after_commit()
        return self.get_cart(owner_id, now)

    def update_item(
        self,
        owner_id: str,
        variant_id: int,
        quantity: int,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        with unit_of_work(self.db, "修改购物车数量"):
            line = self.ledger.open_line(owner_id, variant_id)
            if line is None:
                raise CartItemNotFoundError()
            self.ledger.set_quantity(owner_id, variant_id, quantity, now, line=line)
        self._after_commit()
        return self.get_cart(owner_id, now)

    def remove_item(self, owner_id: str, variant_id: int) -> Dict[str, Any]:
        # 重复移除是空操作
        with unit_of_work(self.db, "移除购物车商品"):
            self.ledger.release_for_owner(owner_id, variant_id)
        self._after_commit()
        return self.get_cart(owner_id)

    def clear(self, owner_id: str) -> Dict[str, Any]:
        with unit_of_work(self.db, "清空购物车"):
            released = self.ledger.release_all(owner_id)
        logger.info(f"清空购物车: owner={owner_id}, released={released}")
        self._after_commit()
        return self.get_cart(owner_id)

    def merge_guest_cart(
        self,
        guest_owner: str,
        user_owner: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """登录后把游客购物车并入用户购物车

        合并规则：同规格数量相加，不超过单品上限。
        """
        merged = 0
        with unit_of_work(self.db, "合并购物车"):
            for line in self.ledger.open_lines(guest_owner):
                if self.ledger.merge_line(line, user_owner, now):
                    merged += 1

        logger.info(f"合并购物车: {guest_owner} -> {user_owner}, merged={merged}")
        self._after_commit()
        cart = self.get_cart(user_owner, now)
        cart["merged"] = merged
        return cart

    def _after_commit(self) -> None:
        self.stock_cache.invalidate(self.ledger.touched_variants)
        self.ledger.touched_variants.clear()
