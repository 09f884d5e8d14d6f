"""过期清理单元测试"""
import pytest
from sqlalchemy import select

from app.models import Order, OrderStatus, IdempotencyKey, IdempotencyStatus
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.expiry_sweeper import ExpirySweeper, SweepResult


class TestExpirySweeper:
    """清理器测试类"""

    @pytest.fixture
    def cart(self, db_session):
        return CartService(db_session)

    @pytest.fixture
    def checkout(self, db_session):
        return CheckoutService(db_session, payment_window_minutes=20)

    @pytest.fixture
    def sweeper(self, db_session, mock_redis):
        return ExpirySweeper(db_session, mock_redis, batch_size=2)

    def _order_status(self, db_session, order_no):
        return db_session.execute(
            select(Order.status).where(Order.order_no == order_no)
        ).scalar_one()

    def test_expires_overdue_order(self, sweeper, cart, checkout, db_session, make_variant, stock_of, minutes, now):
        """截止后 5 分钟清理：订单过期、库存归还；再次清理无事可做"""
        variant = make_variant(stock=5)
        cart.add_item("user:1", variant.id, 2, now)
        order = checkout.checkout("user:1", now=now)

        result = sweeper.sweep(now + minutes(25))

        assert result.deleted_orders == 1
        assert result.deleted_reservations == 1
        assert self._order_status(db_session, order["order_no"]) == OrderStatus.EXPIRED
        assert stock_of(variant.id) == (5, 0)

        again = sweeper.sweep(now + minutes(26))
        assert (again.deleted_orders, again.deleted_reservations) == (0, 0)
        assert stock_of(variant.id) == (5, 0)

    def test_order_within_window_untouched(self, sweeper, cart, checkout, db_session, make_variant, stock_of, minutes, now):
        variant = make_variant(stock=5)
        cart.add_item("user:1", variant.id, 2, now)
        order = checkout.checkout("user:1", now=now)

        result = sweeper.sweep(now + minutes(5))

        assert (result.deleted_orders, result.deleted_reservations) == (0, 0)
        assert self._order_status(db_session, order["order_no"]) == OrderStatus.PENDING_PAYMENT
        assert stock_of(variant.id) == (3, 2)

    def test_paid_order_not_expired(self, sweeper, cart, checkout, db_session, make_variant, stock_of, minutes, now):
        variant = make_variant(stock=5)
        cart.add_item("user:1", variant.id, 2, now)
        order = checkout.checkout("user:1", now=now)
        checkout.mark_paid(order["order_no"], "stripe", "pi_1", now + minutes(1))

        result = sweeper.sweep(now + minutes(30))

        assert result.deleted_orders == 0
        assert self._order_status(db_session, order["order_no"]) == OrderStatus.PAID
        assert stock_of(variant.id) == (3, 0)

    def test_releases_lapsed_cart_lines_in_batches(self, sweeper, cart, make_variant, stock_of, minutes, now):
        variants = [make_variant(stock=4) for _ in range(3)]
        for i, variant in enumerate(variants):
            cart.add_item(f"guest:{i}", variant.id, 1, now - minutes(20))
        fresh = make_variant(stock=4)
        cart.add_item("guest:fresh", fresh.id, 1, now)

        result = sweeper.sweep(now)

        assert result.deleted_orders == 0
        assert result.deleted_reservations == 3
        for variant in variants:
            assert stock_of(variant.id) == (4, 0)
        assert stock_of(fresh.id) == (3, 1)

    def test_count_pending_does_not_modify(self, sweeper, cart, checkout, make_variant, stock_of, minutes, now):
        bread = make_variant(stock=5)
        cake = make_variant(stock=5)
        cart.add_item("user:1", bread.id, 1, now)
        checkout.checkout("user:1", now=now)
        cart.add_item("guest:x", cake.id, 1, now - minutes(20))

        pending = sweeper.count_pending(now + minutes(25))

        assert pending == {"deleted_orders": 1, "deleted_reservations": 1}
        assert stock_of(bread.id) == (4, 1)
        assert stock_of(cake.id) == (4, 1)

    def test_purges_expired_idempotency_keys(self, sweeper, db_session, minutes, now):
        db_session.add_all([
            IdempotencyKey(key="checkout:user:1:old", status=IdempotencyStatus.SUCCESS, expires_at=now - minutes(1)),
            IdempotencyKey(key="checkout:user:1:new", status=IdempotencyStatus.SUCCESS, expires_at=now + minutes(60)),
        ])
        db_session.commit()

        sweeper.sweep(now)

        keys = db_session.execute(select(IdempotencyKey.key)).scalars().all()
        assert keys == ["checkout:user:1:new"]

    def test_skips_when_lock_held(self, db_session, mock_redlock, now):
        mock_redlock.lock.return_value = False
        sweeper = ExpirySweeper(db_session, rlock=mock_redlock)

        result = sweeper.sweep(now)

        assert result.skipped is True
        mock_redlock.unlock.assert_not_called()

    def test_releases_lock_after_sweep(self, db_session, mock_redlock, now):
        sweeper = ExpirySweeper(db_session, rlock=mock_redlock)

        result = sweeper.sweep(now)

        assert result == SweepResult()
        mock_redlock.lock.assert_called_once_with("lock:sweeper", 60000)
        mock_redlock.unlock.assert_called_once_with(mock_redlock.lock.return_value)
