import redis.asyncio as aioredis
import json
from typing import Optional, Union
from app.core.config import settings
import structlog

"redis连接管理器，负责订单事件的发布"

logger = structlog.get_logger()


class RedisManager:
    """Redis连接管理器"""

    def __init__(self):
        self.redis_pool: Optional[aioredis.Redis] = None

    async def init_redis(self) -> None:
        """初始化Redis连接池"""
        try:
            self.redis_pool = aioredis.from_url(
                settings.redis_url_computed,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
                retry_on_timeout=True
            )
            # 测试连接
            await self.redis_pool.ping()
            logger.info("Redis连接初始化成功")
        except Exception as e:
            logger.error("Redis连接初始化失败", error=str(e))
            raise

    async def close_redis(self) -> None:
        """关闭Redis连接"""
        if self.redis_pool:
            await self.redis_pool.aclose()
            logger.info("Redis连接已关闭")

    async def ping(self) -> bool:
        """检查连接是否可用"""
        if not self.redis_pool:
            return False
        try:
            return bool(await self.redis_pool.ping())
        except Exception as e:
            logger.error("Redis ping失败", error=str(e))
            return False

    async def publish(self, channel: str, message: Union[str, dict]) -> int:
        """发布消息到频道，返回接收到消息的订阅者数量"""
        if not self.redis_pool:
            raise RuntimeError("Redis未初始化，请先调用 init_redis()")

        if isinstance(message, dict):
            message = json.dumps(message, ensure_ascii=False, default=str)

        return await self.redis_pool.publish(channel, message)


# 全局Redis管理器实例
redis_manager = RedisManager()
