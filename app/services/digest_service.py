"""
群聊每日摘要

取某个自然日（今天 / 昨天）的群消息，交给 LLM 生成
Summary / Action items / Context 三段式摘要
"""
from datetime import datetime, timedelta, UTC
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from loguru import logger
from sqlmodel import Session

from app.config.settings import settings
from app.services.llm.base import BaseLLMProvider
from app.services.llm.errors import (
    DigestFailedError,
    LLMErrorKind,
    LLMProviderError,
    user_message_for,
)
from app.services.llm.fallback import AllCandidatesFailed, first_success
from app.services.llm.parser import parse_digest_response
from app.services.llm.prompts import DIGEST_SYSTEM_PROMPT, build_digest_prompt
from app.services.llm.registry import get_providers
from app.services.llm.results import DigestResult
from app.services.message_store import MessageStore

DIGEST_PERIODS = {
    "today": "сегодня",
    "yesterday": "вчера",
}


def get_day_window(
    period: str = "today",
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None
) -> Tuple[datetime, datetime]:
    """
    计算自然日窗口（按配置时区），返回 UTC 时间

    today: 今天零点 -> 现在
    yesterday: 昨天零点 -> 今天零点
    """
    tz = tz or ZoneInfo(settings.timezone)
    now = now or datetime.now(UTC)

    midnight = now.astimezone(tz).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "yesterday":
        start = (midnight - timedelta(days=1)).astimezone(UTC)
        return start, midnight.astimezone(UTC)
    return midnight.astimezone(UTC), now


class DigestService:
    """群聊摘要服务"""

    def __init__(
        self,
        engine=None,
        providers: Optional[Dict[str, BaseLLMProvider]] = None,
        order: Optional[str] = None
    ):
        self._engine = engine
        self.providers = providers
        self.order = order

    @property
    def engine(self):
        if self._engine is None:
            from app.database.connection import engine
            self._engine = engine
        return self._engine

    def _load_texts(self, chat_id: int, start: datetime, end: datetime, limit: int) -> List[str]:
        with Session(self.engine) as session:
            messages = MessageStore.query_chat_messages(session, chat_id, start, end, limit)
            return [message.text for message in messages if message.text]

    async def generate_digest(
        self,
        chat_id: int,
        period: str = "today",
        max_messages: Optional[int] = None
    ) -> Optional[DigestResult]:
        """
        生成群聊摘要

        Returns:
            DigestResult；窗口内没有消息时返回 None

        Raises:
            DigestFailedError: 没有可用的提供方或全部失败
        """
        if period not in DIGEST_PERIODS:
            period = "today"
        max_messages = max_messages or settings.digest_max_messages

        start, end = get_day_window(period)
        texts = self._load_texts(chat_id, start, end, max_messages)
        if not texts:
            logger.info(f"📭 群 {chat_id} 在 {period} 没有消息，跳过摘要")
            return None

        logger.info(f"🧾 生成摘要: chat={chat_id}, period={period}, {len(texts)} 条消息")
        prompt = build_digest_prompt(texts, DIGEST_PERIODS[period])

        candidates = []
        for provider in get_providers(self.order or settings.digest_provider_order, self.providers):
            if provider.is_available():
                candidates.append(provider)
            else:
                logger.info(f"⏭️ {provider.display_name} 未配置，跳过")

        if not candidates:
            kind = LLMErrorKind.NOT_CONFIGURED
            raise DigestFailedError(kind, user_message_for(kind))

        async def attempt(provider: BaseLLMProvider) -> str:
            try:
                return await provider.complete(prompt, system_prompt=DIGEST_SYSTEM_PROMPT, allow_retry=False)
            except LLMProviderError as e:
                logger.warning(f"⚠️ {provider.display_name} 摘要失败 ({e.kind.value}): {e.message}")
                raise

        try:
            provider, raw = await first_success(
                candidates,
                attempt,
                should_continue=lambda e: isinstance(e, LLMProviderError)
            )
        except AllCandidatesFailed as e:
            errors = [error for _, error in e.errors]
            last = errors[-1]
            logger.error(f"❌ 摘要生成失败: {last!r}")
            raise DigestFailedError(last.kind, last.message, errors) from last

        logger.info(f"✅ 摘要生成完成，使用 {provider.display_name}")
        return parse_digest_response(raw)


# 全局实例
digest_service = DigestService()
