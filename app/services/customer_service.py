"""后台客户管理服务：客户资料与收货地址

客户记录由本服务持有，后台可以直接创建没有登录账号的客户；
关联了登录账号（user_id）的客户，其订单按 ``user:<user_id>`` 归属查询。
"""

import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import ConflictError, CustomerNotFoundError, AddressNotFoundError
from app.core.security import user_owner
from app.models.customer import Customer, CustomerAddress
from app.models.order import Order
from app.services.base import unit_of_work
from app.services.reservation_ledger import SYNC_FETCH

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "created_at": Customer.created_at,
    "first_name": Customer.first_name,
    "last_name": Customer.last_name,
    "email": Customer.email,
}

# 可选文本字段：空字符串按未填写处理
OPTIONAL_TEXT = ("user_id", "phone", "company", "admin_notes", "address_line2")


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = dict(data)
    for field in OPTIONAL_TEXT:
        if field in cleaned and not cleaned[field]:
            cleaned[field] = None
    if cleaned.get("email"):
        cleaned["email"] = cleaned["email"].lower()
    return cleaned


class CustomerService:
    """客户服务类"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== 客户 ====================

    def list_customers(
        self,
        page: int = 1,
        limit: int = 50,
        search: str = "",
        status: Optional[str] = None,
        sort: str = "created_at",
        order: str = "desc",
    ) -> Dict[str, Any]:
        """分页查询客户

        Args:
            search: 在姓名、邮箱、电话、公司中模糊匹配
            status: active / inactive，其他值不过滤
            sort: created_at / first_name / last_name / email
            order: asc / desc
        """
        conditions = []
        if status == "active":
            conditions.append(Customer.is_active.is_(True))
        elif status == "inactive":
            conditions.append(Customer.is_active.is_(False))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Customer.first_name.ilike(pattern),
                    Customer.last_name.ilike(pattern),
                    Customer.email.ilike(pattern),
                    Customer.phone.ilike(pattern),
                    Customer.company.ilike(pattern),
                )
            )

        total = self.db.execute(
            select(func.count(Customer.id)).where(*conditions)
        ).scalar_one()

        column = SORTABLE_FIELDS.get(sort, Customer.created_at)
        ordering = column.asc() if order == "asc" else column.desc()

        customers = self.db.execute(
            select(Customer)
            .options(selectinload(Customer.addresses))
            .where(*conditions)
            .order_by(ordering, Customer.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return {
            "customers": [self._customer_to_dict(c) for c in customers],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    def create_customer(self, data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        data = _normalize(data)
        with unit_of_work(self.db, "创建客户"):
            self._ensure_unique_email(data["email"])
            if data.get("user_id"):
                self._ensure_unique_user(data["user_id"])
            customer = Customer(created_by=admin_id, **data)
            self.db.add(customer)
            self.db.flush()
            self.db.refresh(customer)

        logger.info(f"创建客户: customer_id={customer.id}, admin={admin_id}")
        return self._customer_to_dict(customer)

    def get_customer(self, customer_id: int) -> Dict[str, Any]:
        return self._customer_to_dict(self._get_customer(customer_id))

    def update_customer(self, customer_id: int, data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        data = _normalize(data)
        with unit_of_work(self.db, "更新客户"):
            customer = self._get_customer(customer_id)
            if "email" in data and data["email"] != customer.email:
                self._ensure_unique_email(data["email"], exclude_id=customer_id)
            for field, value in data.items():
                setattr(customer, field, value)
            self.db.flush()

        logger.info(f"更新客户: customer_id={customer_id}, fields={sorted(data)}, admin={admin_id}")
        return self._customer_to_dict(customer)

    def delete_customers(self, customer_ids: List[int], admin_id: str) -> int:
        """删除客户及其地址；任一客户有订单时整体拒绝，应改为停用"""
        ids = sorted(set(customer_ids))
        with unit_of_work(self.db, "删除客户"):
            user_ids = self.db.execute(
                select(Customer.user_id).where(Customer.id.in_(ids), Customer.user_id.is_not(None))
            ).scalars().all()
            if user_ids:
                ordered = self.db.execute(
                    select(func.count(Order.id)).where(
                        Order.owner_id.in_([user_owner(uid) for uid in user_ids])
                    )
                ).scalar_one()
                if ordered:
                    raise ConflictError("客户存在订单，不能删除，请改为停用")

            self.db.execute(
                delete(CustomerAddress)
                .where(CustomerAddress.customer_id.in_(ids))
                .execution_options(**SYNC_FETCH)
            )
            deleted = self.db.execute(
                delete(Customer)
                .where(Customer.id.in_(ids))
                .returning(Customer.id)
                .execution_options(**SYNC_FETCH)
            ).scalars().all()

        logger.info(f"删除客户: ids={deleted}, admin={admin_id}")
        return len(deleted)

    def delete_customer(self, customer_id: int, admin_id: str) -> None:
        if not self.delete_customers([customer_id], admin_id):
            raise CustomerNotFoundError()

    # ==================== 地址 ====================

    def list_addresses(self, customer_id: int) -> List[Dict[str, Any]]:
        return [self._address_to_dict(a) for a in self._get_customer(customer_id).addresses]

    def create_address(self, customer_id: int, data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        data = _normalize(data)
        data["label"] = data.get("label") or "Home"
        data["country"] = (data.get("country") or "US").upper()

        with unit_of_work(self.db, "新增地址"):
            customer = self._get_customer(customer_id)
            if data.get("is_default"):
                self._clear_default(customer_id)
            address = CustomerAddress(**data)
            customer.addresses.append(address)
            self.db.flush()

        logger.info(f"新增地址: customer_id={customer_id}, address_id={address.id}, admin={admin_id}")
        return self._address_to_dict(address)

    def update_address(
        self,
        customer_id: int,
        address_id: int,
        data: Dict[str, Any],
        admin_id: str,
    ) -> Dict[str, Any]:
        data = _normalize(data)
        if data.get("country"):
            data["country"] = data["country"].upper()

        with unit_of_work(self.db, "更新地址"):
            address = self._get_address(customer_id, address_id)
            if data.get("is_default") and not address.is_default:
                self._clear_default(customer_id)
            for field, value in data.items():
                setattr(address, field, value)
            self.db.flush()

        logger.info(f"更新地址: address_id={address_id}, fields={sorted(data)}, admin={admin_id}")
        return self._address_to_dict(address)

    def delete_address(self, customer_id: int, address_id: int, admin_id: str) -> None:
        with unit_of_work(self.db, "删除地址"):
            row = self.db.execute(
                delete(CustomerAddress)
                .where(
                    CustomerAddress.id == address_id,
                    CustomerAddress.customer_id == customer_id,
                )
                .returning(CustomerAddress.id)
                .execution_options(**SYNC_FETCH)
            ).first()
            if row is None:
                raise AddressNotFoundError()

        logger.info(f"删除地址: customer_id={customer_id}, address_id={address_id}, admin={admin_id}")

    # ==================== 内部方法 ====================

    def _get_customer(self, customer_id: int) -> Customer:
        customer = self.db.execute(
            select(Customer)
            .options(selectinload(Customer.addresses))
            .where(Customer.id == customer_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if customer is None:
            raise CustomerNotFoundError()
        return customer

    def _get_address(self, customer_id: int, address_id: int) -> CustomerAddress:
        address = self.db.execute(
            select(CustomerAddress).where(
                CustomerAddress.id == address_id,
                CustomerAddress.customer_id == customer_id,
            )
        ).scalar_one_or_none()
        if address is None:
            raise AddressNotFoundError()
        return address

    def _clear_default(self, customer_id: int) -> None:
        self.db.execute(
            update(CustomerAddress)
            .where(
                CustomerAddress.customer_id == customer_id,
                CustomerAddress.is_default.is_(True),
            )
            .values(is_default=False)
            .execution_options(**SYNC_FETCH)
        )

    def _ensure_unique_email(self, email: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Customer.id).where(Customer.email == email)
        if exclude_id is not None:
            stmt = stmt.where(Customer.id != exclude_id)
        if self.db.execute(stmt).first():
            raise ConflictError(f"邮箱已被其他客户使用: {email}")

    def _ensure_unique_user(self, user_id: str) -> None:
        if self.db.execute(select(Customer.id).where(Customer.user_id == user_id)).first():
            raise ConflictError(f"该账号已关联其他客户: {user_id}")

    def _customer_to_dict(self, customer: Customer) -> Dict[str, Any]:
        return {
            "id": customer.id,
            "user_id": customer.user_id,
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "email": customer.email,
            "phone": customer.phone,
            "company": customer.company,
            "admin_notes": customer.admin_notes,
            "tags": customer.tags or [],
            "social_media": customer.social_media,
            "is_active": customer.is_active,
            "created_at": customer.created_at,
            "addresses": [self._address_to_dict(a) for a in customer.addresses],
        }

    @staticmethod
    def _address_to_dict(address: CustomerAddress) -> Dict[str, Any]:
        return {
            "id": address.id,
            "customer_id": address.customer_id,
            "label": address.label,
            "first_name": address.first_name,
            "last_name": address.last_name,
            "address_line1": address.address_line1,
            "address_line2": address.address_line2,
            "city": address.city,
            "state": address.state,
            "zip": address.zip,
            "country": address.country,
            "phone": address.phone,
            "is_default": address.is_default,
        }
