"""清理任务响应模型"""

from datetime import datetime

from pydantic import BaseModel, Field


class CleanupResponse(BaseModel):
    """定时清理响应（字段名与调度方约定，保持驼峰）"""
    success: bool = True
    deletedOrders: int = Field(..., ge=0, description="本次过期的订单数")
    deletedReservations: int = Field(..., ge=0, description="本次释放的预占行数")
    timestamp: datetime
