"""展示用库存缓存

只用于商品页展示可售数量；预占、结算等判断一律直接读数据库。
"""

import logging
from typing import Iterable, Optional

from redis import Redis
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger(__name__)


class StockCache:
    KEY_PATTERN = "stock:available:{}"

    def __init__(self, redis: Redis = None, ttl: Optional[int] = None):
        self.redis = redis
        self.ttl = ttl or settings.STOCK_CACHE_TTL_SECONDS

    def key(self, variant_id: int) -> str:
        return self.KEY_PATTERN.format(variant_id)

    def get(self, variant_id: int) -> Optional[int]:
        if not self.redis:
            return None
        try:
            cached = self.redis.get(self.key(variant_id))
        except RedisError as e:
            logger.warning(f"读取库存缓存失败: variant_id={variant_id}, error={e}")
            return None
        if cached is None:
            return None
        logger.debug(f"Cache hit for variant {variant_id}")
        return int(cached)

    def set(self, variant_id: int, available: int) -> None:
        if not self.redis:
            return
        try:
            self.redis.setex(self.key(variant_id), self.ttl, available)
            logger.debug(f"Cache set for variant {variant_id}: {available}")
        except RedisError as e:
            logger.warning(f"写入库存缓存失败: variant_id={variant_id}, error={e}")

    def invalidate(self, variant_ids: Iterable[int]) -> None:
        """库存变更提交后调用"""
        keys = [self.key(vid) for vid in sorted(set(variant_ids))]
        if not self.redis or not keys:
            return
        try:
            self.redis.delete(*keys)
            logger.debug(f"Cache invalidated for variants {keys}")
        except RedisError as e:
            logger.warning(f"失效库存缓存失败: keys={keys}, error={e}")
