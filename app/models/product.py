import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    Numeric,
    TIMESTAMP,
    Enum,
    Index,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base import Base, BigIntPK


class ProductStatus(str, enum.Enum):
    DRAFT = "draft"          # 草稿
    PUBLISHED = "published"  # 已上架
    ARCHIVED = "archived"    # 已归档（下架）


class Product(Base):
    __tablename__ = "products"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    slug = Column(
        String(128),
        nullable=False,
        unique=True,
        comment="商品URL标识",
    )

    name = Column(
        String(255),
        nullable=False,
        comment="商品名称",
    )

    description = Column(
        Text,
        nullable=True,
    )

    base_price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="基础价格，规格未单独定价时使用",
    )

    status = Column(
        Enum(
            ProductStatus,
            name="product_status_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ProductStatus.DRAFT,
        comment="上架状态",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
        onupdate=func.now(),
    )

    variants = relationship(
        "ProductVariant",
        back_populates="product",
        order_by="ProductVariant.id",
    )


# -----------------------------
# 组合索引（按名称搜索）
# -----------------------------
Index(
    "idx_products_name",
    Product.name,
)
