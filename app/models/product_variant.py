from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    Numeric,
    Boolean,
    ForeignKey,
    CheckConstraint,
    TIMESTAMP,
    func,
    true,
)
from sqlalchemy.orm import relationship
from app.db.base import Base, BigIntPK


class ProductVariant(Base):
    """商品规格（尺寸/口味等），库存按规格维护

    总库存 = available_stock + reserved_stock
    """
    __tablename__ = "product_variants"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    product_id = Column(
        BigInteger,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="商品ID",
    )

    sku = Column(
        String(64),
        nullable=False,
        unique=True,
        comment="规格唯一SKU",
    )

    price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="售价",
    )

    available_stock = Column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="当前可售库存",
    )

    reserved_stock = Column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="已预占库存（购物车 + 待支付订单）",
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

    track_inventory = Column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        comment="是否追踪库存；不追踪时只受单品数量上限约束",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    product = relationship("Product", back_populates="variants")

    __table_args__ = (
        CheckConstraint(
            "available_stock >= 0",
            name="ck_available_stock_non_negative",
        ),
        CheckConstraint(
            "reserved_stock >= 0",
            name="ck_reserved_stock_non_negative",
        ),
    )
