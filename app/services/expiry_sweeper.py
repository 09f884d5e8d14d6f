"""过期订单 / 过期预占清理

由外部调度触发（HTTP cron、Celery beat、命令行），本身不负责调度。
每次调用都是幂等的对账：
1. 待支付且已过支付截止时间的订单 → expired，归还其关联的全部预占；
   每个订单一个事务，不会出现只释放了一半的订单。
2. 未挂订单且已过期的购物车行 → 删除并归还库存。
3. 已过期的结算幂等键 → 删除。

并发/重复调用安全：状态流转和删除都是带条件的单条语句，
同一订单或同一行只会被处理一次。
"""

from dataclasses import dataclass, asdict
from datetime import datetime
import logging
from typing import Dict, Optional

from redis import Redis
from redlock import Redlock
from sqlalchemy import select, update, delete, func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.timeutils import utcnow
from app.models.cart_line_item import CartLineItem
from app.models.idempotency_keys import IdempotencyKey
from app.models.order import Order, OrderStatus
from app.services.base import unit_of_work
from app.services.reservation_ledger import ReservationLedger, SYNC_FETCH
from app.services.stock_cache import StockCache

logger = logging.getLogger(__name__)

SWEEPER_OPERATOR = "system_cleanup"
SWEEPER_SOURCE = "cleanup_job"


@dataclass
class SweepResult:
    deleted_orders: int = 0
    deleted_reservations: int = 0
    skipped: bool = False

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class ExpirySweeper:
    """过期清理器"""

    LOCK_KEY = "lock:sweeper"
    LOCK_TTL_MS = 60000

    def __init__(
        self,
        db: Session,
        redis: Redis = None,
        rlock: Redlock = None,
        batch_size: Optional[int] = None,
    ):
        self.db = db
        self.rlock = rlock
        self.batch_size = batch_size or settings.SWEEP_BATCH_SIZE
        self.ledger = ReservationLedger(db)
        self.stock_cache = StockCache(redis)

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """执行一次清理，返回回收的订单数与预占行数"""
        now = now or utcnow()
        lock = None

        # 分布式锁只用于避免多个调度同时空转，正确性不依赖它
        if self.rlock:
            lock = self.rlock.lock(self.LOCK_KEY, self.LOCK_TTL_MS)
            if not lock:
                logger.info("已有清理任务在执行，本次跳过")
                return SweepResult(skipped=True)

        try:
            result = SweepResult()
            result.deleted_orders, order_lines = self._expire_orders(now)
            result.deleted_reservations = order_lines + self._release_lapsed_lines(now)
            purged_keys = self._purge_idempotency_keys(now)
            logger.info(
                f"清理任务完成: 过期订单 {result.deleted_orders} 个, "
                f"释放预占 {result.deleted_reservations} 条, 清除幂等键 {purged_keys} 个"
            )
            return result
        finally:
            self.stock_cache.invalidate(self.ledger.touched_variants)
            self.ledger.touched_variants.clear()
            if self.rlock and lock:
                self.rlock.unlock(lock)

    def _expire_orders(self, now: datetime):
        expired_orders = 0
        released_lines = 0

        while True:
            # skip_locked：多个清理进程并发时互不等待
            batch = self.db.execute(
                select(Order.id, Order.order_no)
                .where(
                    Order.status == OrderStatus.PENDING_PAYMENT,
                    Order.payment_deadline < now,
                )
                .order_by(Order.payment_deadline)
                .limit(self.batch_size)
                .with_for_update(skip_locked=True)
            ).all()

            if not batch:
                self.db.rollback()
                break

            logger.info(f"本批次发现 {len(batch)} 个超时未支付订单")

            for order_id, order_no in batch:
                with unit_of_work(self.db, f"过期订单 {order_no}"):
                    flipped = self.db.execute(
                        update(Order)
                        .where(
                            Order.id == order_id,
                            Order.status == OrderStatus.PENDING_PAYMENT,
                            Order.payment_deadline < now,
                        )
                        .values(status=OrderStatus.EXPIRED, expired_at=now)
                        .returning(Order.id)
                        .execution_options(**SYNC_FETCH)
                    ).first()

                    if flipped is None:
                        # 已被支付回调或用户取消抢先处理
                        continue

                    released_lines += self.ledger.release_order_lines(
                        order_id,
                        order_no,
                        operator=SWEEPER_OPERATOR,
                        source=SWEEPER_SOURCE,
                    )
                    expired_orders += 1
                    logger.info(f"订单已过期: order_no={order_no}")

            if len(batch) < self.batch_size:
                break

        return expired_orders, released_lines

    def _release_lapsed_lines(self, now: datetime) -> int:
        released = 0

        while True:
            line_ids = self.db.execute(
                select(CartLineItem.id)
                .where(
                    CartLineItem.order_id.is_(None),
                    CartLineItem.expires_at < now,
                )
                .order_by(CartLineItem.id)
                .limit(self.batch_size)
                .with_for_update(skip_locked=True)
            ).scalars().all()

            if not line_ids:
                self.db.rollback()
                break

            with unit_of_work(self.db, "释放过期预占"):
                for line_id in line_ids:
                    if self.ledger.release(
                        line_id,
                        CartLineItem.order_id.is_(None),
                        CartLineItem.expires_at < now,
                        operator=SWEEPER_OPERATOR,
                        source=SWEEPER_SOURCE,
                    ):
                        released += 1

            logger.info(f"已完成批次清理，累计释放 {released} 条过期预占")

            if len(line_ids) < self.batch_size:
                break

        return released

    def _purge_idempotency_keys(self, now: datetime) -> int:
        with unit_of_work(self.db, "清除过期幂等键"):
            purged = self.db.execute(
                delete(IdempotencyKey)
                .where(IdempotencyKey.expires_at < now)
                .execution_options(**SYNC_FETCH)
            ).rowcount
        return purged

    def count_pending(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """试运行：只统计待清理数量，不做修改"""
        now = now or utcnow()
        orders = self.db.execute(
            select(func.count(Order.id)).where(
                Order.status == OrderStatus.PENDING_PAYMENT,
                Order.payment_deadline < now,
            )
        ).scalar_one()
        lines = self.db.execute(
            select(func.count(CartLineItem.id)).where(
                CartLineItem.order_id.is_(None),
                CartLineItem.expires_at < now,
            )
        ).scalar_one()
        return {"deleted_orders": orders, "deleted_reservations": lines}
