"""定时任务入口

外部调度（Vercel Cron / Kubernetes CronJob 等）每 5 分钟调用一次，
通过 ``Authorization: Bearer <CRON_SECRET>`` 鉴权。
"""

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse
import logging

from app.core.dependencies import get_expiry_sweeper
from app.core.security import require_shared_secret
from app.core.timeutils import utcnow
from app.services.expiry_sweeper import ExpirySweeper
from app.schemas.base import ErrorResponse
from app.schemas.cleanup import CleanupResponse

logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/cron",
    tags=["定时任务"],
    responses={
        401: {"model": ErrorResponse, "description": "密钥缺失或错误"},
        500: {"description": "清理失败"},
    }
)


@router.get(
    "/cleanup",
    response_model=CleanupResponse,
    dependencies=[Depends(require_shared_secret)],
    summary="清理过期订单与预占",
)
async def cleanup(sweeper: ExpirySweeper = Depends(get_expiry_sweeper)):
    """可以被重复或并发调用，多次调用结果一致"""
    try:
        result = sweeper.sweep()
    except Exception as e:
        logger.error(f"[Cron] Cleanup failed: {str(e)}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Cleanup failed"})

    logger.info(
        f"[Cron] Cleanup: {result.deleted_orders} expired orders, "
        f"{result.deleted_reservations} expired reservations"
    )
    return {
        "success": True,
        "deletedOrders": result.deleted_orders,
        "deletedReservations": result.deleted_reservations,
        "timestamp": utcnow(),
    }
