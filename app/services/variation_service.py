"""规格模板服务

模板（尺寸、口味……）和取值是后台配置规格时的下拉选项。
模板名称全局、取值在模板内，都忽略大小写唯一，重复时返回 409。
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import ConflictError, TemplateNotFoundError, TemplateValueNotFoundError
from app.models.variation_template import VariationTemplate, VariationTemplateValue
from app.services.base import unit_of_work
from app.services.reservation_ledger import SYNC_FETCH

logger = logging.getLogger(__name__)


class VariationService:
    """规格模板服务类"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== 模板 ====================

    def list_templates(self) -> List[Dict[str, Any]]:
        templates = self.db.execute(
            select(VariationTemplate)
            .options(selectinload(VariationTemplate.values))
            .order_by(VariationTemplate.display_order, VariationTemplate.id)
        ).scalars().all()
        return [self._template_to_dict(t) for t in templates]

    def get_template(self, template_id: int) -> Dict[str, Any]:
        return self._template_to_dict(self._get_template(template_id))

    def create_template(self, name: str, display_order: int, admin_id: str) -> Dict[str, Any]:
        with unit_of_work(self.db, "创建规格模板"):
            self._ensure_unique_name(name)
            template = VariationTemplate(name=name, display_order=display_order)
            self.db.add(template)
            self.db.flush()

        logger.info(f"创建规格模板: template_id={template.id}, name={name}, admin={admin_id}")
        return self._template_to_dict(template)

    def update_template(self, template_id: int, data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        with unit_of_work(self.db, "更新规格模板"):
            template = self._get_template(template_id)
            if data.get("name") and data["name"].lower() != template.name.lower():
                self._ensure_unique_name(data["name"], exclude_id=template_id)
            for field, value in data.items():
                setattr(template, field, value)
            self.db.flush()

        logger.info(f"更新规格模板: template_id={template_id}, fields={sorted(data)}, admin={admin_id}")
        return self._template_to_dict(template)

    def delete_template(self, template_id: int, admin_id: str) -> None:
        """删除模板及其全部取值"""
        with unit_of_work(self.db, "删除规格模板"):
            self.db.execute(
                delete(VariationTemplateValue)
                .where(VariationTemplateValue.template_id == template_id)
                .execution_options(**SYNC_FETCH)
            )
            row = self.db.execute(
                delete(VariationTemplate)
                .where(VariationTemplate.id == template_id)
                .returning(VariationTemplate.id)
                .execution_options(**SYNC_FETCH)
            ).first()
            if row is None:
                raise TemplateNotFoundError()

        logger.info(f"删除规格模板: template_id={template_id}, admin={admin_id}")

    # ==================== 取值 ====================

    def add_value(
        self,
        template_id: int,
        value: str,
        display_order: Optional[int],
        admin_id: str,
    ) -> Dict[str, Any]:
        """新增取值；未指定排序时排在最后"""
        with unit_of_work(self.db, "新增规格取值"):
            template = self._get_template(template_id)
            self._ensure_unique_value(template_id, value)
            if display_order is None:
                last = self.db.execute(
                    select(func.max(VariationTemplateValue.display_order))
                    .where(VariationTemplateValue.template_id == template_id)
                ).scalar_one()
                display_order = 0 if last is None else last + 1
            item = VariationTemplateValue(value=value, display_order=display_order)
            template.values.append(item)
            self.db.flush()

        logger.info(f"新增规格取值: template_id={template_id}, value={value}, admin={admin_id}")
        return self._value_to_dict(item)

    def update_value(
        self,
        template_id: int,
        value_id: int,
        data: Dict[str, Any],
        admin_id: str,
    ) -> Dict[str, Any]:
        with unit_of_work(self.db, "更新规格取值"):
            item = self._get_value(template_id, value_id)
            if data.get("value") and data["value"].lower() != item.value.lower():
                self._ensure_unique_value(template_id, data["value"], exclude_id=value_id)
            for field, value in data.items():
                setattr(item, field, value)
            self.db.flush()

        logger.info(f"更新规格取值: value_id={value_id}, fields={sorted(data)}, admin={admin_id}")
        return self._value_to_dict(item)

    def delete_value(self, template_id: int, value_id: int, admin_id: str) -> None:
        with unit_of_work(self.db, "删除规格取值"):
            row = self.db.execute(
                delete(VariationTemplateValue)
                .where(
                    VariationTemplateValue.id == value_id,
                    VariationTemplateValue.template_id == template_id,
                )
                .returning(VariationTemplateValue.id)
                .execution_options(**SYNC_FETCH)
            ).first()
            if row is None:
                raise TemplateValueNotFoundError()

        logger.info(f"删除规格取值: template_id={template_id}, value_id={value_id}, admin={admin_id}")

    # ==================== 内部方法 ====================

    def _get_template(self, template_id: int) -> VariationTemplate:
        template = self.db.execute(
            select(VariationTemplate)
            .options(selectinload(VariationTemplate.values))
            .where(VariationTemplate.id == template_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if template is None:
            raise TemplateNotFoundError()
        return template

    def _get_value(self, template_id: int, value_id: int) -> VariationTemplateValue:
        item = self.db.execute(
            select(VariationTemplateValue).where(
                VariationTemplateValue.id == value_id,
                VariationTemplateValue.template_id == template_id,
            )
        ).scalar_one_or_none()
        if item is None:
            raise TemplateValueNotFoundError()
        return item

    def _ensure_unique_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(VariationTemplate.id).where(func.lower(VariationTemplate.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(VariationTemplate.id != exclude_id)
        if self.db.execute(stmt).first():
            raise ConflictError(f"规格模板已存在: {name}")

    def _ensure_unique_value(self, template_id: int, value: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(VariationTemplateValue.id).where(
            VariationTemplateValue.template_id == template_id,
            func.lower(VariationTemplateValue.value) == value.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(VariationTemplateValue.id != exclude_id)
        if self.db.execute(stmt).first():
            raise ConflictError(f"该模板中已存在取值: {value}")

    def _template_to_dict(self, template: VariationTemplate) -> Dict[str, Any]:
        values = sorted(template.values, key=lambda v: (v.display_order, v.id))
        return {
            "id": template.id,
            "name": template.name,
            "display_order": template.display_order,
            "values": [self._value_to_dict(v) for v in values],
        }

    @staticmethod
    def _value_to_dict(item: VariationTemplateValue) -> Dict[str, Any]:
        return {
            "id": item.id,
            "template_id": item.template_id,
            "value": item.value,
            "display_order": item.display_order,
        }
