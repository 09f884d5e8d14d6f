from sqlalchemy import (
    Column,
    BigInteger,
    String,
    Integer,
    ForeignKey,
    TIMESTAMP,
    Index,
    func,
)
from sqlalchemy.orm import relationship
from app.db.base import Base, BigIntPK


class VariationTemplate(Base):
    """规格模板（如 尺寸、口味），后台配置规格时作为下拉选项来源"""
    __tablename__ = "variation_templates"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    name = Column(
        String(100),
        nullable=False,
        comment="模板名称，忽略大小写唯一",
    )

    display_order = Column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    values = relationship(
        "VariationTemplateValue",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by=lambda: [VariationTemplateValue.display_order, VariationTemplateValue.id],
    )


class VariationTemplateValue(Base):
    __tablename__ = "variation_template_values"

    id = Column(
        BigIntPK,
        primary_key=True,
        autoincrement=True,
    )

    template_id = Column(
        BigInteger,
        ForeignKey("variation_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    value = Column(
        String(100),
        nullable=False,
        comment="取值，同一模板内忽略大小写唯一",
    )

    display_order = Column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    created_at = Column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    template = relationship("VariationTemplate", back_populates="values")


# -----------------------------
# 忽略大小写的唯一约束
# -----------------------------
Index(
    "uq_variation_templates_name",
    func.lower(VariationTemplate.name),
    unique=True,
)

Index(
    "uq_variation_template_values_value",
    VariationTemplateValue.template_id,
    func.lower(VariationTemplateValue.value),
    unique=True,
)
