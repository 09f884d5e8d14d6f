"""库存预占台账

购物车的每一行就是一条预占记录：加购时从规格的可售库存中扣出，
移除、取消、过期时原数归还，支付成功时确认扣减。

并发控制完全交给数据库：
- 扣减使用单条条件更新 ``available_stock >= :delta``，不满足即失败，库存永不为负；
- 释放使用 ``DELETE ... RETURNING``，只有真正删掉行的那一次调用会归还库存，
  重复释放是空操作；
- 同一购物车行的并发写入在保存点内完成，冲突时重新读取再写，最后写入者生效。

不追踪库存的规格（``track_inventory = False``）只受单品数量上限约束，
计数不变，但照常记录库存日志。

台账只 flush 不 commit，事务边界由调用方的服务控制。
"""

from datetime import datetime, timedelta
import logging
from typing import Callable, List, Optional, Set

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    VariantNotFoundError,
    ConcurrentModificationError,
)
from app.core.timeutils import utcnow
from app.models.cart_line_item import CartLineItem
from app.models.product_variant import ProductVariant
from app.models.inventory_logs import InventoryLog, ChangeType

logger = logging.getLogger(__name__)

SYNC_FETCH = {"synchronize_session": "fetch"}

# 同一购物车行连续冲突的最大重试次数
MAX_ATTEMPTS = 3


class StaleLineError(Exception):
    """购物车行在读取之后已被其他请求修改"""

    def __init__(self, line_item_id: int):
        super().__init__(f"cart line {line_item_id} changed since read")
        self.line_item_id = line_item_id


class ReservationLedger:
    """库存预占台账"""

    def __init__(
        self,
        db: Session,
        ttl_minutes: Optional[int] = None,
        max_quantity: Optional[int] = None,
    ):
        self.db = db
        self.ttl = timedelta(minutes=ttl_minutes or settings.RESERVATION_TTL_MINUTES)
        self.max_quantity = max_quantity or settings.MAX_ITEM_QUANTITY
        # 本次事务中库存发生变化的规格，提交后用于失效缓存
        self.touched_variants: Set[int] = set()

    # ==================== 查询 ====================

    def open_line(self, owner_id: str, variant_id: int) -> Optional[CartLineItem]:
        """查询购物车中尚未下单的行"""
        return self.db.execute(
            select(CartLineItem).where(
                CartLineItem.owner_id == owner_id,
                CartLineItem.variant_id == variant_id,
                CartLineItem.order_id.is_(None),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def open_lines(self, owner_id: str) -> List[CartLineItem]:
        return self.db.execute(
            select(CartLineItem)
            .where(
                CartLineItem.owner_id == owner_id,
                CartLineItem.order_id.is_(None),
            )
            .order_by(CartLineItem.id)
        ).scalars().all()

    # ==================== 预占 ====================

    def reserve(
        self,
        owner_id: str,
        variant_id: int,
        quantity: int,
        now: Optional[datetime] = None,
    ) -> CartLineItem:
        """在现有数量基础上追加预占"""
        if quantity <= 0:
            raise InvalidQuantityError("购买数量必须大于 0")

        line = self.open_line(owner_id, variant_id)
        return self._apply(owner_id, variant_id, lambda current: current + quantity, now, line)

    def set_quantity(
        self,
        owner_id: str,
        variant_id: int,
        quantity: int,
        now: Optional[datetime] = None,
        line: Optional[CartLineItem] = None,
    ) -> Optional[CartLineItem]:
        """把购物车行调整为指定数量，只对差额做预占或释放

        数量为 0 等同于移除，返回 None。
        """
        if quantity < 0:
            raise InvalidQuantityError("购买数量不能为负数")
        if line is None:
            line = self.open_line(owner_id, variant_id)
        return self._apply(owner_id, variant_id, lambda current: quantity, now, line)

    def _apply(
        self,
        owner_id: str,
        variant_id: int,
        target_of: Callable[[int], int],
        now: Optional[datetime],
        line: Optional[CartLineItem],
    ) -> Optional[CartLineItem]:
        """按读到的行计算目标数量并条件写入

        写入在保存点内完成：行在读取之后被其他请求插入或修改时，
        保存点回滚（连同已扣的库存），重新读取后按最新数量再算一次，
        同一行上的并发请求以最后一次写入为准。
        """
        now = now or utcnow()
        for attempt in range(1, MAX_ATTEMPTS + 1):
            current = line.quantity if line else 0
            quantity = target_of(current)
            if quantity > self.max_quantity:
                raise InvalidQuantityError(f"单个商品最多购买 {self.max_quantity} 件")

            if quantity == 0:
                if line is not None:
                    self.release(line.id, CartLineItem.order_id.is_(None), operator=owner_id, source="cart")
                return None

            try:
                with self.db.begin_nested():
                    if line is None:
                        return self._insert_line(owner_id, variant_id, quantity, now)
                    return self._update_line(line, current, quantity, now)
            except (IntegrityError, StaleLineError):
                logger.info(
                    f"购物车行已被并发修改，重新读取: owner={owner_id}, "
                    f"variant_id={variant_id}, attempt={attempt}"
                )
                # 保存点回滚不会刷新内存中已同步的库存计数
                self.db.expire_all()
                line = self.open_line(owner_id, variant_id)

        raise ConcurrentModificationError()

    def _insert_line(
        self,
        owner_id: str,
        variant_id: int,
        quantity: int,
        now: datetime,
    ) -> CartLineItem:
        self._take_stock(variant_id, quantity, operator=owner_id)
        line = CartLineItem(
            owner_id=owner_id,
            variant_id=variant_id,
            quantity=quantity,
            expires_at=now + self.ttl,
        )
        self.db.add(line)
        # 唯一索引 (owner_id, variant_id) WHERE order_id IS NULL 在此处拦截重复插入
        self.db.flush()
        logger.info(f"新增购物车行: owner={owner_id}, variant_id={variant_id}, quantity={quantity}")
        return line

    def _update_line(
        self,
        line: CartLineItem,
        current: int,
        quantity: int,
        now: datetime,
    ) -> CartLineItem:
        delta = quantity - current
        if delta > 0:
            self._take_stock(line.variant_id, delta, operator=line.owner_id)
        elif delta < 0:
            self._give_back(line.variant_id, -delta, operator=line.owner_id, source="cart")

        updated = self.db.execute(
            update(CartLineItem)
            .where(
                CartLineItem.id == line.id,
                CartLineItem.quantity == current,
                CartLineItem.order_id.is_(None),
            )
            .values(quantity=quantity, expires_at=now + self.ttl)
            .returning(CartLineItem.id)
            .execution_options(**SYNC_FETCH)
        ).first()

        if updated is None:
            raise StaleLineError(line.id)

        logger.info(
            f"更新购物车行: owner={line.owner_id}, variant_id={line.variant_id}, "
            f"quantity={current}->{quantity}"
        )
        return line

    # ==================== 释放 / 确认 ====================

    def release(
        self,
        line_item_id: int,
        *conditions,
        operator: Optional[str] = None,
        source: str = "cart",
        order_no: Optional[str] = None,
    ) -> int:
        """删除购物车行并把数量归还给可售库存

        额外的 conditions 会并入删除条件（清理任务用它限定"仍未下单且已过期"）。
        返回归还的数量；行已不存在时返回 0，不做任何修改。
        """
        row = self.db.execute(
            delete(CartLineItem)
            .where(CartLineItem.id == line_item_id, *conditions)
            .returning(CartLineItem.variant_id, CartLineItem.quantity)
            .execution_options(**SYNC_FETCH)
        ).first()

        if row is None:
            logger.debug(f"预占已释放或不存在，跳过: line_item_id={line_item_id}")
            return 0

        self._give_back(
            row.variant_id,
            row.quantity,
            operator=operator,
            source=source,
            order_no=order_no,
        )
        return row.quantity

    def release_for_owner(self, owner_id: str, variant_id: int) -> int:
        line = self.open_line(owner_id, variant_id)
        if line is None:
            return 0
        return self.release(line.id, CartLineItem.order_id.is_(None), operator=owner_id, source="cart")

    def release_all(self, owner_id: str) -> int:
        """清空购物车，返回释放的行数"""
        released = 0
        for line in self.open_lines(owner_id):
            if self.release(line.id, CartLineItem.order_id.is_(None), operator=owner_id, source="cart"):
                released += 1
        return released

    def order_lines(self, order_id: int) -> List[CartLineItem]:
        return self.db.execute(
            select(CartLineItem)
            .where(CartLineItem.order_id == order_id)
            .order_by(CartLineItem.id)
        ).scalars().all()

    def release_order_lines(self, order_id: int, order_no: str, operator: str, source: str) -> int:
        """释放订单关联的全部预占，返回释放的行数"""
        released = 0
        for line in self.order_lines(order_id):
            if self.release(
                line.id,
                CartLineItem.order_id == order_id,
                operator=operator,
                source=source,
                order_no=order_no,
            ):
                released += 1
        return released

    def confirm(self, line_item_id: int, order_no: str, operator: str) -> int:
        """支付成功：预占转为实际扣减，并删除购物车行"""
        row = self.db.execute(
            delete(CartLineItem)
            .where(CartLineItem.id == line_item_id)
            .returning(CartLineItem.variant_id, CartLineItem.quantity)
            .execution_options(**SYNC_FETCH)
        ).first()

        if row is None:
            return 0

        stock = self.db.execute(
            update(ProductVariant)
            .where(
                ProductVariant.id == row.variant_id,
                ProductVariant.track_inventory.is_(True),
            )
            .values(reserved_stock=ProductVariant.reserved_stock - row.quantity)
            .returning(ProductVariant.available_stock)
            .execution_options(**SYNC_FETCH)
        ).first()
        available = stock.available_stock if stock else self._untracked_available(row.variant_id)

        self._log(
            row.variant_id,
            ChangeType.CONFIRM,
            quantity=0,  # 状态变更不改变可售数量
            before=available,
            after=available,
            operator=operator,
            source="payment",
            order_no=order_no,
        )
        logger.info(f"确认扣减: order_no={order_no}, variant_id={row.variant_id}, quantity={row.quantity}")
        return row.quantity

    def merge_line(
        self,
        line: CartLineItem,
        target_owner: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """把一条购物车行并入另一个购物车（登录后合并游客购物车）

        目标购物车已有同规格时数量相加，超出上限的部分归还库存。
        """
        now = now or utcnow()
        expires_at = now + self.ttl
        target = self.open_line(target_owner, line.variant_id)

        if target is None:
            moved = self.db.execute(
                update(CartLineItem)
                .where(CartLineItem.id == line.id, CartLineItem.order_id.is_(None))
                .values(owner_id=target_owner, expires_at=expires_at)
                .returning(CartLineItem.id)
                .execution_options(**SYNC_FETCH)
            ).first()
            return moved is not None

        row = self.db.execute(
            delete(CartLineItem)
            .where(CartLineItem.id == line.id, CartLineItem.order_id.is_(None))
            .returning(CartLineItem.quantity)
            .execution_options(**SYNC_FETCH)
        ).first()
        if row is None:
            return False

        combined = target.quantity + row.quantity
        merged = min(combined, self.max_quantity)
        if combined > merged:
            self._give_back(line.variant_id, combined - merged, operator=target_owner, source="cart_merge")

        updated = self.db.execute(
            update(CartLineItem)
            .where(CartLineItem.id == target.id, CartLineItem.quantity == target.quantity)
            .values(quantity=merged, expires_at=expires_at)
            .returning(CartLineItem.id)
            .execution_options(**SYNC_FETCH)
        ).first()
        if updated is None:
            raise ConcurrentModificationError()
        return True

    # ==================== 库存计数 ====================

    def _take_stock(self, variant_id: int, quantity: int, operator: Optional[str]) -> None:
        """原子条件扣减：可售库存不足时一行都不更新"""
        row = self.db.execute(
            update(ProductVariant)
            .where(
                ProductVariant.id == variant_id,
                ProductVariant.is_active.is_(True),
                ProductVariant.track_inventory.is_(True),
                ProductVariant.available_stock >= quantity,
            )
            .values(
                available_stock=ProductVariant.available_stock - quantity,
                reserved_stock=ProductVariant.reserved_stock + quantity,
            )
            .returning(ProductVariant.available_stock)
            .execution_options(**SYNC_FETCH)
        ).first()

        if row is not None:
            before, after = row.available_stock + quantity, row.available_stock
        else:
            current = self.db.execute(
                select(
                    ProductVariant.available_stock,
                    ProductVariant.is_active,
                    ProductVariant.track_inventory,
                ).where(ProductVariant.id == variant_id)
            ).first()
            if current is None or not current.is_active:
                raise VariantNotFoundError()
            if current.track_inventory:
                logger.info(
                    f"库存不足: variant_id={variant_id}, requested={quantity}, "
                    f"available={current.available_stock}"
                )
                raise InsufficientStockError(variant_id, quantity, current.available_stock)
            before = after = current.available_stock

        self._log(
            variant_id,
            ChangeType.RESERVE,
            quantity=-quantity,
            before=before,
            after=after,
            operator=operator,
            source="cart",
        )
        logger.info(f"预占库存成功: variant_id={variant_id}, quantity={quantity}, operator={operator}")

    def _give_back(
        self,
        variant_id: int,
        quantity: int,
        operator: Optional[str],
        source: str,
        order_no: Optional[str] = None,
    ) -> None:
        row = self.db.execute(
            update(ProductVariant)
            .where(
                ProductVariant.id == variant_id,
                ProductVariant.track_inventory.is_(True),
            )
            .values(
                available_stock=ProductVariant.available_stock + quantity,
                reserved_stock=ProductVariant.reserved_stock - quantity,
            )
            .returning(ProductVariant.available_stock)
            .execution_options(**SYNC_FETCH)
        ).first()

        if row is not None:
            before, after = row.available_stock - quantity, row.available_stock
        else:
            untracked = self._untracked_available(variant_id)
            if untracked is None:
                # 规格已被物理删除，没有可归还的对象
                logger.warning(f"释放库存时规格不存在: variant_id={variant_id}, quantity={quantity}")
                return
            before = after = untracked

        self._log(
            variant_id,
            ChangeType.RELEASE,
            quantity=quantity,
            before=before,
            after=after,
            operator=operator,
            source=source,
            order_no=order_no,
        )
        logger.info(f"释放库存成功: variant_id={variant_id}, quantity={quantity}, source={source}")

    def _untracked_available(self, variant_id: int) -> Optional[int]:
        """不追踪库存的规格返回其可售数（仅用于日志），其余返回 None"""
        return self.db.execute(
            select(ProductVariant.available_stock).where(
                ProductVariant.id == variant_id,
                ProductVariant.track_inventory.is_(False),
            )
        ).scalar_one_or_none()

    def _log(
        self,
        variant_id: int,
        change_type: ChangeType,
        quantity: int,
        before: int,
        after: int,
        operator: Optional[str],
        source: str,
        order_no: Optional[str] = None,
    ) -> None:
        self.db.add(
            InventoryLog(
                variant_id=variant_id,
                order_no=order_no,
                change_type=change_type,
                quantity=quantity,
                before_available=before,
                after_available=after,
                operator=operator,
                source=source,
            )
        )
        self.touched_variants.add(variant_id)
