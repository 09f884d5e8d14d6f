import enum

from sqlalchemy import (
    Column,
    String,
    TIMESTAMP,
    JSON,
    Enum,
    Index,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from app.db.base import Base



# 1️ 幂等状态枚举

class IdempotencyStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"  # 正在处理中
    SUCCESS = "SUCCESS"        # 成功，response_snapshot 可直接重放



# 2️ 幂等表（结算接口的 Idempotency-Key）

class IdempotencyKey(Base):
    __tablename__ = "idempotency_keys"

    # 幂等唯一Key（归属 + 客户端传入的 Idempotency-Key）
    key = Column(
        String(255),
        primary_key=True,
        comment="幂等唯一键",
    )

    status = Column(
        Enum(
            IdempotencyStatus,
            name="idempotency_status_type",
        ),
        nullable=False,
        default=IdempotencyStatus.PROCESSING,
        comment="当前处理状态",
    )

    # 存储接口响应快照（成功后返回）
    response_snapshot = Column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
        comment="接口响应结果快照",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    expires_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        comment="过期时间，过期后同名键视为不存在",
    )



# 3️ 索引设计

Index(
    "idx_idempotency_keys_expires_at",
    IdempotencyKey.expires_at,
)
