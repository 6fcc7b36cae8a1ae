"""
LLM 提供方基类

所有提供方共用同一个用户分析流程（analyze_user），子类只需实现一次文本补全
"""
from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger
from sqlmodel import Session

from app.services.llm.parser import parse_analysis_response
from app.services.llm.prompts import ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt
from app.services.llm.results import AnalysisResult
from app.services.message_store import MessageStore

# 单次分析最多读取的消息数
MAX_ANALYSIS_MESSAGES = 30


def average_length(texts) -> int:
    """平均消息长度，四舍五入到整数"""
    if not texts:
        return 0
    return int(sum(len(text) for text in texts) / len(texts) + 0.5)


class BaseLLMProvider(ABC):
    """LLM 提供方基类"""

    name: str = ""
    display_name: str = ""

    def __init__(self, engine=None):
        self._engine = engine

    @property
    def engine(self):
        if self._engine is None:
            from app.database.connection import engine
            self._engine = engine
        return self._engine

    @abstractmethod
    def is_available(self) -> bool:
        """凭据是否已配置"""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        allow_retry: bool = True
    ) -> str:
        """
        发送一次补全请求

        Raises:
            LLMProviderError: 任何失败，kind 在这里确定
        """

    async def analyze_user(
        self,
        telegram_user_id: int,
        limit: int = MAX_ANALYSIS_MESSAGES
    ) -> Optional[AnalysisResult]:
        """
        分析用户沟通风格

        Returns:
            AnalysisResult；用户不存在时返回 None；没有消息时返回占位结果且不发请求
        """
        limit = min(limit, MAX_ANALYSIS_MESSAGES)

        with Session(self.engine) as session:
            user = MessageStore.find_user_by_telegram_id(session, telegram_user_id)
            if not user:
                return None
            username, first_name = user.username, user.first_name
            messages = MessageStore.query_messages_by_user(session, user.id, limit=limit)
            # 提示词中按时间正序排列
            texts = [message.text for message in reversed(messages)]

        if not texts:
            logger.info(f"用户 {telegram_user_id} 没有消息，跳过 {self.display_name} 调用")
            return AnalysisResult.insufficient_data()

        prompt = build_analysis_prompt(texts, username, first_name)
        logger.info(f"🤖 {self.display_name} 分析用户 {telegram_user_id}: {len(texts)} 条消息")

        raw = await self.complete(prompt, system_prompt=ANALYSIS_SYSTEM_PROMPT)
        return parse_analysis_response(raw, len(texts), average_length(texts))
