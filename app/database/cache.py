"""
Redis 共享客户端

整个进程只维护一个连接；Redis 不可用时返回 None，调用方按缓存未命中处理
"""
import asyncio
from typing import Optional

import redis.asyncio as aioredis
from loguru import logger

from app.config.settings import settings

_client: Optional[aioredis.Redis] = None
_lock = asyncio.Lock()


async def get_redis() -> Optional[aioredis.Redis]:
    """获取（必要时创建）共享 Redis 客户端，失败时返回 None"""
    global _client

    if _client is not None:
        return _client

    async with _lock:
        if _client is not None:
            return _client

        try:
            client = aioredis.from_url(
                settings.redis_url,
                password=settings.redis_password or None,
                socket_timeout=settings.redis_socket_timeout,
                decode_responses=True,
            )
            await client.ping()
        except Exception as e:
            logger.warning(f"Redis 连接失败，统计将直接查询数据库: {e}")
            return None

        _client = client
        logger.info(f"✅ Redis 已连接: {settings.redis_host}:{settings.redis_port}/{settings.redis_db}")
        return _client


async def close_redis() -> None:
    """关闭共享 Redis 客户端"""
    global _client
    if _client is not None:
        try:
            await _client.aclose()
            logger.info("Redis 连接已关闭")
        finally:
            _client = None
