"""模型单元测试"""
import pytest
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.models import (
    CartLineItem,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductStatus,
    ProductVariant,
)


class TestModels:
    """数据模型测试类"""

    def test_product_with_variants(self, db_session):
        product = Product(slug="baguette", name="法棍", base_price=Decimal("2.80"))
        product.variants.append(ProductVariant(sku="BG-1", price=Decimal("2.80"), available_stock=12))
        db_session.add(product)
        db_session.commit()

        saved = db_session.execute(select(Product)).scalar_one()
        assert saved.status == ProductStatus.DRAFT
        assert saved.created_at is not None
        variant = saved.variants[0]
        assert (variant.available_stock, variant.reserved_stock, variant.is_active) == (12, 0, True)

    def test_negative_stock_rejected(self, db_session, make_variant):
        variant = make_variant(stock=1)
        variant.available_stock = -1
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_one_open_line_per_owner_and_variant(self, db_session, make_variant, now):
        variant = make_variant(stock=5)
        db_session.add(CartLineItem(owner_id="user:1", variant_id=variant.id, quantity=1, expires_at=now))
        db_session.commit()

        db_session.add(CartLineItem(owner_id="user:1", variant_id=variant.id, quantity=1, expires_at=now))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_ordered_line_does_not_block_new_line(self, db_session, make_variant, now):
        variant = make_variant(stock=5)
        order = Order(
            order_no="ORD1",
            owner_id="user:1",
            total_amount=Decimal("4.50"),
            payment_deadline=now,
        )
        order.items.append(
            OrderItem(variant_id=variant.id, sku=variant.sku, product_name="酸面包", quantity=1, unit_price=variant.price)
        )
        db_session.add(order)
        db_session.flush()
        db_session.add(CartLineItem(owner_id="user:1", variant_id=variant.id, quantity=1, expires_at=now, order_id=order.id))
        db_session.add(CartLineItem(owner_id="user:1", variant_id=variant.id, quantity=2, expires_at=now))
        db_session.commit()

        assert order.status == OrderStatus.PENDING_PAYMENT
        assert len(db_session.execute(select(CartLineItem)).scalars().all()) == 2
