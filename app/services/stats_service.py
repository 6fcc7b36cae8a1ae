"""
聊天统计服务

Cache-aside：先读 Redis，未命中（或 Redis 出错）时查数据库再回写。
缓存条目按固定 TTL 过期，新消息不会主动失效缓存。
"""

import calendar
from datetime import datetime, timedelta, UTC
from typing import Optional, List
from zoneinfo import ZoneInfo

from pydantic import BaseModel
from sqlmodel import Session
from loguru import logger

from app.config.settings import settings
from app.database.cache import get_redis
from app.services.message_store import MessageStore, MessageFilters

PERIODS = ("today", "week", "month", "all")

PERIOD_NAMES = {
    "all": "все время",
    "today": "сегодня",
    "week": "неделю",
    "month": "месяц",
}


class TopUser(BaseModel):
    user_id: int
    count: int
    username: Optional[str] = None
    first_name: Optional[str] = None


class StatsResult(BaseModel):
    """群聊总体统计"""
    top_users: List[TopUser]
    total_messages: int
    total_users: int


class UserStatsResult(BaseModel):
    """单个用户统计"""
    user_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    message_count: int
    period: str


def make_cache_key(chat_id: int, period: str, user_id: Optional[int] = None) -> str:
    """生成统计缓存键"""
    if user_id:
        return f"stats:chat:{chat_id}:user:{user_id}:period:{period}"
    return f"stats:chat:{chat_id}:period:{period}"


def _subtract_month(value: datetime) -> datetime:
    """往前推一个自然月，日期超出目标月天数时取月末"""
    year, month = (value.year - 1, 12) if value.month == 1 else (value.year, value.month - 1)
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def get_date_range(
    period: str,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None
) -> MessageFilters:
    """
    计算统计周期对应的时间范围

    Args:
        period: today / week / month / all
        now: 当前时间（默认取 UTC 当前时间）
        tz: 计算"今天"起点所用的时区（默认取配置）

    Returns:
        只含时间条件的 MessageFilters；all 或未知周期不限制时间
    """
    tz = tz or ZoneInfo(settings.timezone)
    now = now or datetime.now(UTC)

    if period == "today":
        local_now = now.astimezone(tz)
        # 数据库中统一存 UTC
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(UTC)
    elif period == "week":
        start = now - timedelta(days=7)
    elif period == "month":
        start = _subtract_month(now)
    else:
        return MessageFilters()

    return MessageFilters(start_date=start, end_date=now)


class StatsService:
    """带 Redis 缓存的统计服务"""

    def __init__(self, engine=None, ttl: Optional[int] = None, top_limit: int = 10):
        self._engine = engine
        self.ttl = ttl or settings.cache_ttl
        self.top_limit = top_limit

    @property
    def engine(self):
        if self._engine is None:
            from app.database.connection import engine
            self._engine = engine
        return self._engine

    async def _cache_get(self, key: str) -> Optional[str]:
        try:
            client = await get_redis()
            if client is None:
                return None
            return await client.get(key)
        except Exception as e:
            logger.warning(f"读取统计缓存失败 {key}: {e}")
            return None

    async def _cache_set(self, key: str, payload: str) -> None:
        try:
            client = await get_redis()
            if client is None:
                return
            await client.set(key, payload, ex=self.ttl)
            logger.debug(f"💾 统计已写入缓存: {key}, TTL={self.ttl}s")
        except Exception as e:
            logger.warning(f"写入统计缓存失败 {key}: {e}")

    async def get_chat_stats(self, chat_id: int, period: str = "all") -> StatsResult:
        """获取群聊统计（排行 + 总数）"""
        cache_key = make_cache_key(chat_id, period)

        cached = await self._cache_get(cache_key)
        if cached:
            try:
                result = StatsResult.model_validate_json(cached)
                logger.info(f"📦 统计命中缓存: chat={chat_id}, period={period}")
                return result
            except ValueError:
                logger.warning(f"统计缓存内容无法解析，重新计算: {cache_key}")

        filters = get_date_range(period)
        filters.chat_id = chat_id

        with Session(self.engine) as session:
            top_rows = MessageStore.top_users_by_message_count(session, self.top_limit, filters)
            total_messages, total_users = MessageStore.aggregate_stats(session, filters)

        logger.info(
            f"📊 统计已计算: chat={chat_id}, period={period}, "
            f"{total_messages} 条消息 / {total_users} 位用户"
        )

        result = StatsResult(
            top_users=[TopUser(**vars(row)) for row in top_rows],
            total_messages=total_messages,
            total_users=total_users,
        )
        await self._cache_set(cache_key, result.model_dump_json())
        return result

    async def get_user_stats(
        self,
        chat_id: int,
        telegram_user_id: int,
        period: str = "all"
    ) -> Optional[UserStatsResult]:
        """获取单个用户在群内的发言数，用户不存在时返回 None"""
        cache_key = make_cache_key(chat_id, period, telegram_user_id)

        cached = await self._cache_get(cache_key)
        if cached:
            try:
                result = UserStatsResult.model_validate_json(cached)
                logger.info(f"📦 用户统计命中缓存: user={telegram_user_id}, period={period}")
                return result
            except ValueError:
                logger.warning(f"用户统计缓存内容无法解析，重新计算: {cache_key}")

        filters = get_date_range(period)
        filters.chat_id = chat_id

        with Session(self.engine) as session:
            user = MessageStore.find_user_by_telegram_id(session, telegram_user_id)
            if not user:
                return None
            message_count = MessageStore.count_messages_by_user(session, user.id, filters)
            result = UserStatsResult(
                user_id=user.id,
                username=user.username,
                first_name=user.first_name,
                message_count=message_count,
                period=period,
            )

        await self._cache_set(cache_key, result.model_dump_json())
        return result


# 全局实例
stats_service = StatsService()
