import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    TIMESTAMP,
    Enum,
    Index,
    func,
)
from app.db.base import Base, BigIntPK

# 1定义库存变更类型（数据库 ENUM）
class ChangeType(str, enum.Enum):
    RESERVE = "RESERVE"   # 购物车预占
    CONFIRM = "CONFIRM"   # 支付成功，确认扣减
    RELEASE = "RELEASE"   # 释放库存（移除/取消/过期）
    ADJUST = "ADJUST"     # 后台人工调整
# 2️库存日志表
class InventoryLog(Base):
    __tablename__ = "inventory_logs"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    variant_id = Column(
        BigInteger,
        nullable=False,
        index=True,
        comment="商品规格ID",
    )

    order_no = Column(
        String(64),
        nullable=True,
        index=True,
        comment="订单号（购物车预占或库存调整时为空）",
    )

    change_type = Column(
        Enum(
            ChangeType,
            name="inventory_change_type",  # PostgreSQL ENUM 类型名
        ),
        nullable=False,
        comment="库存变更类型",
    )

    quantity = Column(
        Integer,
        nullable=False,
        comment="可用库存变化量",
    )

    before_available = Column(
        Integer,
        nullable=False,
        comment="变更前可用库存",
    )

    after_available = Column(
        Integer,
        nullable=False,
        comment="变更后可用库存",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    operator = Column(
        String(128),
        nullable=True,
        comment="操作人：购物车归属 / 管理员ID / system_cleanup",
    )

    source = Column(
        String(50),
        nullable=True,
        comment="来源：cart / checkout / payment / cleanup_job / admin",
    )

# 3️组合索引（按规格查询变更历史）


Index(
    "idx_inventory_logs_variant_created_desc",
    InventoryLog.variant_id,
    InventoryLog.created_at.desc(),
)
