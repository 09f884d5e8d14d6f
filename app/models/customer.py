from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Text,
    Boolean,
    ForeignKey,
    TIMESTAMP,
    JSON,
    Index,
    func,
    true,
    false,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from app.db.base import Base, BigIntPK


# 1️ 客户表
# 后台创建的客户可以没有登录账号（user_id 为空）

class Customer(Base):
    __tablename__ = "customers"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    user_id = Column(
        String(64),
        nullable=True,
        unique=True,
        comment="身份服务中的用户ID，后台创建的客户为空",
    )

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        comment="小写存储",
    )

    phone = Column(String(32), nullable=True)
    company = Column(String(255), nullable=True)

    admin_notes = Column(
        Text,
        nullable=True,
        comment="后台备注，前台不可见",
    )

    tags = Column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=False,
        default=list,
    )

    social_media = Column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )

    created_by = Column(
        String(64),
        nullable=True,
        comment="创建该客户的管理员",
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

    addresses = relationship(
        "CustomerAddress",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by=lambda: [CustomerAddress.is_default.desc(), CustomerAddress.id.desc()],
    )


# 2️ 客户地址

class CustomerAddress(Base):
    __tablename__ = "customer_addresses"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    customer_id = Column(
        BigInteger,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    label = Column(String(50), nullable=False, default="Home")
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    address_line1 = Column(String(255), nullable=False)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zip = Column(String(20), nullable=False)
    country = Column(String(2), nullable=False, default="US")
    phone = Column(String(32), nullable=True)

    is_default = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        comment="每个客户最多一个默认地址",
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

    customer = relationship("Customer", back_populates="addresses")


# 3️ 索引设计

Index(
    "idx_customers_name",
    Customer.last_name,
    Customer.first_name,
)
