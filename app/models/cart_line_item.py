from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    TIMESTAMP,
    ForeignKey,
    CheckConstraint,
    Index,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base import Base, BigIntPK


class CartLineItem(Base):
    """购物车行，同时也是一条库存预占记录

    order_id 为空：仍在购物车中，expires_at 到期后由清理任务释放
    order_id 非空：已并入待支付订单，随订单一起确认或释放
    """
    __tablename__ = "cart_line_items"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    owner_id = Column(
        String(128),
        nullable=False,
        index=True,
        comment="购物车归属（user:<id> 或 guest:<session>）",
    )

    variant_id = Column(
        BigInteger,
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="商品规格ID",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="预占数量",
    )

    expires_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        comment="预占过期时间",
    )

    order_id = Column(
        BigInteger,
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="已关联的订单ID",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    variant = relationship("ProductVariant")

    __table_args__ = (
        CheckConstraint(
            "quantity > 0",
            name="ck_cart_quantity_positive",
        ),
    )


# 清理任务按过期时间扫描未下单的行
Index(
    "idx_cart_line_items_open_expires",
    CartLineItem.order_id,
    CartLineItem.expires_at,
)

# 同一购物车同一规格只能有一条未下单的行
Index(
    "uq_cart_open_owner_variant",
    CartLineItem.owner_id,
    CartLineItem.variant_id,
    unique=True,
    postgresql_where=CartLineItem.order_id.is_(None),
    sqlite_where=CartLineItem.order_id.is_(None),
)
