"""测试配置和 fixtures"""
from datetime import timedelta
from decimal import Decimal

import pytest
from unittest.mock import Mock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from redis import Redis
from redlock import Redlock

import app.models  # noqa: F401  注册全部表
from app.db.base import Base
from app.core.config import settings
from app.core.dependencies import get_db, get_redis, get_redlock
from app.core.timeutils import utcnow
from app.models import Product, ProductStatus, ProductVariant

CRON_SECRET = "test-cron-secret"
ADMIN_ID = "admin-1"


def sqlite_engine(url, begin="BEGIN", **connect_args):
    """事务交给 SQLAlchemy 控制，使 SAVEPOINT 在 pysqlite 下按预期工作"""
    options = {"connect_args": {"check_same_thread": False, **connect_args}}
    if url == "sqlite:///:memory:":
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=False, **options)

    @event.listens_for(engine, "connect")
    def _disable_driver_transaction(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin)

    return engine


@pytest.fixture
def db_engine():
    """内存 SQLite，所有会话共享同一个连接"""
    engine = sqlite_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """文件 SQLite，每个线程独立连接；写事务以 BEGIN IMMEDIATE 排队"""
    engine = sqlite_engine(f"sqlite:///{tmp_path / 'storefront.db'}", begin="BEGIN IMMEDIATE", timeout=30)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db_session(db_engine):
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mock_redis():
    """创建模拟 Redis 客户端"""
    redis_mock = Mock(spec=Redis)
    redis_mock.get.return_value = None
    redis_mock.setex.return_value = True
    redis_mock.delete.return_value = 1
    return redis_mock


@pytest.fixture
def mock_redlock():
    """创建模拟 Redlock 分布式锁"""
    redlock_mock = Mock(spec=Redlock)
    lock_mock = Mock()
    redlock_mock.lock.return_value = lock_mock
    redlock_mock.unlock.return_value = True
    return redlock_mock


@pytest.fixture
def now():
    return utcnow()


@pytest.fixture
def make_variant(db_session):
    """创建一个已上架商品及其规格，返回规格"""
    counter = {"n": 0}

    def _make(stock=5, price="4.50", status=ProductStatus.PUBLISHED, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        product = Product(
            slug=f"sourdough-{n}",
            name=f"酸面包 {n}",
            base_price=Decimal(price),
            status=status,
        )
        db_session.add(product)
        db_session.flush()
        variant = ProductVariant(
            product_id=product.id,
            sku=f"SD-{n}",
            price=Decimal(price),
            available_stock=stock,
            reserved_stock=0,
            is_active=is_active,
        )
        db_session.add(variant)
        db_session.commit()
        return variant

    return _make


@pytest.fixture
def stock_of(db_session):
    """直接从数据库读取 (可售, 已预占)"""
    def _stock(variant_id):
        row = db_session.execute(
            select(ProductVariant.available_stock, ProductVariant.reserved_stock)
            .where(ProductVariant.id == variant_id)
        ).one()
        return row.available_stock, row.reserved_stock

    return _stock


@pytest.fixture
def minutes():
    return lambda n: timedelta(minutes=n)


@pytest.fixture
def client(db_session, monkeypatch):
    """测试客户端：数据库走测试会话，Redis / Redlock 不可用"""
    from app.main import app

    def override_get_db():
        yield db_session

    monkeypatch.setattr(settings, "CRON_SECRET", CRON_SECRET)
    monkeypatch.setattr(settings, "ADMIN_USER_IDS", ADMIN_ID)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: None
    app.dependency_overrides[get_redlock] = lambda: None
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
