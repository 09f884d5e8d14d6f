import os
from typing import List, Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # 数据库配置
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "123456")
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "mydb")
    DATABASE_URL: Optional[str] = None

    # Redis 配置
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_HOSTS: str = ""

    # 定时清理与支付回调共用的密钥（为空时拒绝所有调用）
    CRON_SECRET: str = ""
    # 管理员用户ID列表，逗号分隔
    ADMIN_USER_IDS: str = ""

    # 购物车 / 结算
    RESERVATION_TTL_MINUTES: int = 15
    PAYMENT_WINDOW_MINUTES: int = 20
    MAX_ITEM_QUANTITY: int = 10
    SWEEP_BATCH_SIZE: int = 500
    STOCK_CACHE_TTL_SECONDS: int = 300

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://"
            f"{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def admin_user_ids(self) -> List[str]:
        return [uid.strip() for uid in self.ADMIN_USER_IDS.split(",") if uid.strip()]

settings = Settings()
