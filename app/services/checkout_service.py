"""结算与订单生命周期

pending_payment → paid / expired / cancelled，三个都是终态。
所有状态流转都用 ``UPDATE ... WHERE status = 'pending_payment'`` 条件更新，
同一订单被支付回调、用户取消、清理任务同时处理时只有一方生效。
"""

from datetime import datetime, timedelta
from decimal import Decimal
import logging
import secrets
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from redis import Redis
from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import (
    EmptyCartError,
    StockConflictError,
    OrderNotFoundError,
    InvalidOrderTransitionError,
    DuplicateRequestError,
    PersistenceError,
    StorefrontError,
)
from app.core.timeutils import utcnow
from app.models.cart_line_item import CartLineItem
from app.models.idempotency_keys import IdempotencyKey, IdempotencyStatus
from app.models.order import Order, OrderItem, OrderStatus
from app.models.product import Product
from app.models.product_variant import ProductVariant
from app.services.base import unit_of_work
from app.services.reservation_ledger import ReservationLedger, SYNC_FETCH
from app.services.stock_cache import StockCache

logger = logging.getLogger(__name__)

# 幂等键保留时长
IDEMPOTENCY_TTL = timedelta(hours=24)


def generate_order_no(now: datetime) -> str:
    return f"ORD{now.strftime('%Y%m%d%H%M%S')}{secrets.token_hex(4).upper()}"


class CheckoutService:
    """结算服务"""

    def __init__(
        self,
        db: Session,
        redis: Redis = None,
        payment_window_minutes: Optional[int] = None,
    ):
        self.db = db
        self.redis = redis
        self.ledger = ReservationLedger(db)
        self.stock_cache = StockCache(redis)
        self.payment_window = timedelta(
            minutes=payment_window_minutes or settings.PAYMENT_WINDOW_MINUTES
        )

    # ==================== 下单 ====================

    def checkout(
        self,
        owner_id: str,
        idempotency_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """把购物车快照成待支付订单

        Args:
            owner_id: 购物车归属
            idempotency_key: 客户端传入的幂等键，重复请求直接返回首次结果
            now: 当前时间（测试注入）

        Raises:
            EmptyCartError: 购物车为空
            StockConflictError: 有预占在结算前已过期
            DuplicateRequestError: 同一幂等键的请求仍在处理中
        """
        now = now or utcnow()
        record_key = f"checkout:{owner_id}:{idempotency_key}" if idempotency_key else None

        claim = None
        if record_key:
            record = self._live_key(record_key, now)
            if record is not None:
                if record.status == IdempotencyStatus.SUCCESS:
                    logger.info(f"幂等命中，返回首次结算结果: key={record_key}")
                    return record.response_snapshot
                raise DuplicateRequestError()
            claim = self._claim_key(record_key, now)

        try:
            with unit_of_work(self.db, "结算"):
                order = self._create_order(owner_id, now)
                snapshot = jsonable_encoder(self._order_to_dict(order))
                if claim is not None:
                    claim.status = IdempotencyStatus.SUCCESS
                    claim.response_snapshot = snapshot
        except StorefrontError:
            if claim is not None:
                self._release_key(record_key)
            raise

        logger.info(
            f"创建订单成功: order_no={order.order_no}, owner={owner_id}, "
            f"total={order.total_amount}, deadline={order.payment_deadline}"
        )
        return snapshot

    # ==================== 幂等键 ====================

    def _live_key(self, record_key: str, now: datetime) -> Optional[IdempotencyKey]:
        """查询未过期的幂等键；过期时间在数据库端比较"""
        return self.db.execute(
            select(IdempotencyKey)
            .where(
                IdempotencyKey.key == record_key,
                IdempotencyKey.expires_at >= now,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _claim_key(self, record_key: str, now: datetime) -> IdempotencyKey:
        """先提交一条 PROCESSING 记录占住幂等键，并发的相同请求撞主键后直接拒绝"""
        claim = IdempotencyKey(
            key=record_key,
            status=IdempotencyStatus.PROCESSING,
            expires_at=now + IDEMPOTENCY_TTL,
        )
        try:
            with unit_of_work(self.db, "占用幂等键"):
                # 已过期的同名键视为不存在
                self.db.execute(
                    delete(IdempotencyKey)
                    .where(
                        IdempotencyKey.key == record_key,
                        IdempotencyKey.expires_at < now,
                    )
                    .execution_options(**SYNC_FETCH)
                )
                self.db.add(claim)
        except PersistenceError as e:
            if isinstance(e.__cause__, IntegrityError):
                raise DuplicateRequestError() from e
            raise
        return claim

    def _release_key(self, record_key: str) -> None:
        """结算失败时删除占位记录，允许客户端用同一个键重试"""
        try:
            with unit_of_work(self.db, "释放幂等键"):
                self.db.execute(
                    delete(IdempotencyKey)
                    .where(
                        IdempotencyKey.key == record_key,
                        IdempotencyKey.status == IdempotencyStatus.PROCESSING,
                    )
                    .execution_options(**SYNC_FETCH)
                )
        except PersistenceError:
            logger.error(f"释放幂等键失败，需等待其过期: key={record_key}", exc_info=True)

    def _create_order(self, owner_id: str, now: datetime) -> Order:
        rows = self.db.execute(
            select(
                CartLineItem,
                ProductVariant,
                Product.name,
                (CartLineItem.expires_at < now).label("lapsed"),
            )
            .join(ProductVariant, ProductVariant.id == CartLineItem.variant_id)
            .join(Product, Product.id == ProductVariant.product_id)
            .where(
                CartLineItem.owner_id == owner_id,
                CartLineItem.order_id.is_(None),
            )
            .order_by(CartLineItem.id)
        ).all()

        if not rows:
            raise EmptyCartError()

        lapsed = [line.variant_id for line, _, _, is_lapsed in rows if is_lapsed]
        if lapsed:
            logger.info(f"结算失败，预占已过期: owner={owner_id}, variants={lapsed}")
            raise StockConflictError(lapsed)

        deadline = now + self.payment_window
        order = Order(
            order_no=generate_order_no(now),
            owner_id=owner_id,
            status=OrderStatus.PENDING_PAYMENT,
            total_amount=Decimal("0.00"),
            payment_deadline=deadline,
        )
        self.db.add(order)
        self.db.flush()

        total = Decimal("0.00")
        for line, variant, product_name, _ in rows:
            # 结算时再校验一次：行必须仍未下单且未过期，否则可能已被清理任务释放
            attached = self.db.execute(
                update(CartLineItem)
                .where(
                    CartLineItem.id == line.id,
                    CartLineItem.order_id.is_(None),
                    CartLineItem.expires_at >= now,
                )
                .values(order_id=order.id, expires_at=deadline)
                .returning(CartLineItem.quantity)
                .execution_options(**SYNC_FETCH)
            ).first()

            if attached is None:
                raise StockConflictError([line.variant_id])

            order.items.append(
                OrderItem(
                    variant_id=variant.id,
                    sku=variant.sku,
                    product_name=product_name,
                    quantity=attached.quantity,
                    unit_price=variant.price,
                )
            )
            total += variant.price * attached.quantity

        order.total_amount = total
        self.db.flush()
        return order

    # ==================== 状态流转 ====================

    def mark_paid(
        self,
        order_no: str,
        provider: str,
        provider_payment_id: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """支付回调：待支付 → 已支付，并确认扣减预占库存

        已支付的订单重复回调返回 already_finalized=True。
        """
        now = now or utcnow()
        with unit_of_work(self.db, "确认支付"):
            order = self._get_order(order_no)
            transitioned = self._transition(
                order,
                OrderStatus.PAID,
                paid_at=now,
                payment_provider=provider,
                provider_payment_id=provider_payment_id,
            )

            if not transitioned:
                if order.status == OrderStatus.PAID:
                    logger.info(f"订单已支付，忽略重复回调: order_no={order_no}")
                    return {"already_finalized": True, "order": self._order_to_dict(order)}
                raise InvalidOrderTransitionError(
                    f"订单 {order_no} 当前状态为 {order.status.value}，无法确认支付"
                )

            for line in self.ledger.order_lines(order.id):
                self.ledger.confirm(line.id, order_no, operator=provider)

        self._after_commit()
        logger.info(f"订单支付成功: order_no={order_no}, provider={provider}")
        return {"already_finalized": False, "order": self._order_to_dict(order)}

    def cancel(self, order_no: str, owner_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """用户取消待支付订单，释放预占库存"""
        now = now or utcnow()
        with unit_of_work(self.db, "取消订单"):
            order = self._get_order(order_no, owner_id)
            if not self._transition(order, OrderStatus.CANCELLED, cancelled_at=now):
                raise InvalidOrderTransitionError(
                    f"订单 {order_no} 当前状态为 {order.status.value}，无法取消"
                )
            released = self.ledger.release_order_lines(
                order.id, order_no, operator=owner_id, source="cancel"
            )

        self._after_commit()
        logger.info(f"订单已取消: order_no={order_no}, released_lines={released}")
        return self._order_to_dict(order)

    def _transition(self, order: Order, target: OrderStatus, **values) -> bool:
        """条件更新订单状态，只允许从待支付流转；返回是否生效"""
        row = self.db.execute(
            update(Order)
            .where(
                Order.id == order.id,
                Order.status == OrderStatus.PENDING_PAYMENT,
            )
            .values(status=target, **values)
            .returning(Order.id)
            .execution_options(**SYNC_FETCH)
        ).first()

        if row is None:
            self.db.refresh(order)
            return False
        return True

    # ==================== 查询 ====================

    def get_order(self, order_no: str, owner_id: str) -> Dict[str, Any]:
        return self._order_to_dict(self._get_order(order_no, owner_id))

    def list_orders(self, owner_id: str) -> List[Dict[str, Any]]:
        orders = self.db.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.owner_id == owner_id)
            .order_by(Order.id.desc())
        ).scalars().all()
        return [self._order_to_dict(o) for o in orders]

    def _get_order(self, order_no: str, owner_id: Optional[str] = None) -> Order:
        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.order_no == order_no)
        )
        if owner_id is not None:
            # 别人的订单一律按不存在处理
            stmt = stmt.where(Order.owner_id == owner_id)
        order = self.db.execute(stmt).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError()
        return order

    @staticmethod
    def _order_to_dict(order: Order) -> Dict[str, Any]:
        return {
            "order_no": order.order_no,
            "owner_id": order.owner_id,
            "status": order.status.value,
            "total_amount": order.total_amount,
            "payment_deadline": order.payment_deadline,
            "paid_at": order.paid_at,
            "cancelled_at": order.cancelled_at,
            "expired_at": order.expired_at,
            "items": [
                {
                    "variant_id": item.variant_id,
                    "sku": item.sku,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                }
                for item in order.items
            ],
        }

    def _after_commit(self) -> None:
        self.stock_cache.invalidate(self.ledger.touched_variants)
        self.ledger.touched_variants.clear()
