import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    Numeric,
    TIMESTAMP,
    Enum,
    ForeignKey,
    Index,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base import Base, BigIntPK


# 1️ 订单状态枚举

class OrderStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"  # 待支付
    PAID = "paid"                        # 已支付
    EXPIRED = "expired"                  # 超时未支付
    CANCELLED = "cancelled"              # 用户取消


# 2️ 订单表

class Order(Base):
    __tablename__ = "orders"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    order_no = Column(
        String(64),
        nullable=False,
        unique=True,
        comment="订单号",
    )

    owner_id = Column(
        String(128),
        nullable=False,
        index=True,
        comment="下单人",
    )

    status = Column(
        Enum(
            OrderStatus,
            name="order_status_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=OrderStatus.PENDING_PAYMENT,
        comment="订单状态",
    )

    total_amount = Column(
        Numeric(12, 2),
        nullable=False,
        comment="订单总额",
    )

    payment_deadline = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        comment="支付截止时间",
    )

    paid_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)
    expired_at = Column(TIMESTAMP(timezone=True), nullable=True)

    payment_provider = Column(
        String(32),
        nullable=True,
        comment="支付渠道：stripe / paypal",
    )

    provider_payment_id = Column(
        String(128),
        nullable=True,
        comment="支付渠道流水号",
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

    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )


# 3️ 订单明细（下单时的快照）

class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    order_id = Column(
        BigInteger,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    variant_id = Column(
        BigInteger,
        nullable=False,
        comment="商品规格ID（不设外键，规格删除后快照仍保留）",
    )

    sku = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=False)

    quantity = Column(
        Integer,
        nullable=False,
    )

    unit_price = Column(
        Numeric(10, 2),
        nullable=False,
        comment="下单时单价",
    )

    order = relationship("Order", back_populates="items")


# 清理任务按状态 + 截止时间扫描
Index(
    "idx_orders_status_deadline",
    Order.status,
    Order.payment_deadline,
)
