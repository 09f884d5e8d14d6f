"""结算相关的 Celery 任务"""

from celery_app import app
from app.db.session import SessionLocal
from app.core.dependencies import get_redis, get_redlock
from app.services.expiry_sweeper import ExpirySweeper
import logging

logger = logging.getLogger(__name__)

@app.task(name='tasks.checkout.sweep_expired_checkouts')
def sweep_expired_checkouts(batch_size: int = 500):
    """回收超时未支付订单与过期的购物车预占

    Args:
        batch_size: 批处理大小，默认500条

    Returns:
        {"deleted_orders": ..., "deleted_reservations": ..., "skipped": ...}
    """
    db = SessionLocal()
    try:
        sweeper = ExpirySweeper(db, get_redis(), get_redlock(), batch_size=batch_size)
        result = sweeper.sweep()
        logger.info(f"清理任务结果: {result.to_dict()}")
        return result.to_dict()
    except Exception as e:
        logger.error(f"清理过期订单任务执行失败: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

# 导出任务
__all__ = [
    'sweep_expired_checkouts',
]
