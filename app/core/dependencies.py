"""依赖注入配置模块"""

from fastapi import Depends

# 数据库会话依赖
from app.db.session import SessionLocal
from sqlalchemy.orm import Session

# Redis 依赖
from app.core.redis import redis_client, redlock

from app.services.cart_service import CartService
from app.services.catalog_service import CatalogService
from app.services.checkout_service import CheckoutService
from app.services.customer_service import CustomerService
from app.services.expiry_sweeper import ExpirySweeper
from app.services.variation_service import VariationService


def get_redis():
    """获取同步 Redis 客户端；连接错误由 StockCache 捕获后降级"""
    return redis_client

def get_redlock():
    """获取 Redlock 分布式锁实例，未配置服务器时返回 None"""
    if not getattr(redlock, "servers", None):
        return None
    return redlock

def get_db() -> Session:
    """获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_cart_service(
    db: Session = Depends(get_db),
    redis = Depends(get_redis),
) -> CartService:
    return CartService(db=db, redis=redis)


def get_checkout_service(
    db: Session = Depends(get_db),
    redis = Depends(get_redis),
) -> CheckoutService:
    return CheckoutService(db=db, redis=redis)


def get_catalog_service(
    db: Session = Depends(get_db),
    redis = Depends(get_redis),
) -> CatalogService:
    return CatalogService(db=db, redis=redis)


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    return CustomerService(db=db)


def get_variation_service(db: Session = Depends(get_db)) -> VariationService:
    return VariationService(db=db)


def get_expiry_sweeper(
    db: Session = Depends(get_db),
    redis = Depends(get_redis),
    rlock = Depends(get_redlock)
) -> ExpirySweeper:
    """获取清理器实例（依赖注入）"""
    return ExpirySweeper(db=db, redis=redis, rlock=rlock)

