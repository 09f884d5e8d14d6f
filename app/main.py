from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy import text

from app.db.session import engine
from app.core.redis import async_redis
from app.core.exceptions import StorefrontError
from app.routers import (
    admin_customer_router,
    admin_router,
    admin_variation_router,
    cart_router,
    catalog_router,
    cron_router,
    order_router,
)
from app.schemas.base import HealthCheckResponse, APIInfoResponse

import uvicorn

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")

    # 数据库连接检查
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
    except Exception as e:
        logger.error("❌ Database connection failed: %s", e)
        raise

    # Redis 只用于库存展示缓存，不可用时降级
    try:
        await async_redis.ping()
        logger.info("✅ Redis connected successfully")
    except Exception as e:
        logger.warning(f"⚠️  Redis connection failed: {e}")
        logger.warning("⚠️  Application will run without Redis caching")

    yield

    logger.info("Shutting down application...")

app = FastAPI(
    title="烘焙商城 API",
    description="烘焙商城核心服务：购物车库存预占、结算下单、过期订单清理",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境中应该指定具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(cron_router.router, prefix="/api")
app.include_router(catalog_router.router, prefix="/api/v1")
app.include_router(cart_router.router, prefix="/api/v1")
app.include_router(order_router.router, prefix="/api/v1")
app.include_router(order_router.payment_router, prefix="/api/v1")
app.include_router(admin_router.router, prefix="/api/v1")
app.include_router(admin_customer_router.router, prefix="/api/v1")
app.include_router(admin_variation_router.router, prefix="/api/v1")

# 全局异常处理
@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error(f"Storefront error: {exc.code} - {exc.message}")
    else:
        logger.info(f"Business error: {exc.code} - {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": "请求参数验证失败",
            "code": "validation_error",
            "details": jsonable_errors(exc)
        }
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail
        }
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "服务器内部错误"
        }
    )


def jsonable_errors(exc: RequestValidationError):
    # ctx 里可能带有异常对象，无法直接序列化
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]

@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """健康检查接口"""
    return HealthCheckResponse()

@app.get("/", response_model=APIInfoResponse)
async def read_root():
    """API 根路径"""
    return APIInfoResponse()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
