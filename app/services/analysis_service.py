"""
用户风格分析编排

按配置顺序依次尝试各 LLM 提供方，第一个成功的结果即为最终结果
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger

from app.config.settings import settings
from app.services.llm.base import BaseLLMProvider, MAX_ANALYSIS_MESSAGES
from app.services.llm.errors import (
    AnalysisFailedError,
    LLMErrorKind,
    LLMProviderError,
    user_message_for,
)
from app.services.llm.fallback import AllCandidatesFailed, first_success
from app.services.llm.registry import get_providers
from app.services.llm.results import AnalysisResult


@dataclass
class AnalysisOutcome:
    analysis: AnalysisResult
    # 实际给出结果的提供方显示名
    provider: str


def _is_provider_error(error: BaseException) -> bool:
    return isinstance(error, LLMProviderError)


class AnalysisService:
    """多提供方降级的用户分析"""

    def __init__(
        self,
        providers: Optional[Dict[str, BaseLLMProvider]] = None,
        default_order: Optional[str] = None
    ):
        self.providers = providers
        self.default_order = default_order

    def resolve(self, order: Union[str, Iterable[str], None] = None) -> List[BaseLLMProvider]:
        """按顺序取出已配置的提供方，未配置的记录日志后跳过"""
        order = order or self.default_order or settings.analyze_provider_order
        available = []
        for provider in get_providers(order, self.providers):
            if provider.is_available():
                available.append(provider)
            else:
                logger.info(f"⏭️ {provider.display_name} 未配置，跳过")
        return available

    async def analyze(
        self,
        telegram_user_id: int,
        order: Union[str, Iterable[str], None] = None,
        limit: Optional[int] = None
    ) -> Optional[AnalysisOutcome]:
        """
        分析用户沟通风格

        Returns:
            AnalysisOutcome；用户不存在时返回 None

        Raises:
            AnalysisFailedError: 没有可用的提供方或全部失败
        """
        limit = limit or settings.analyze_message_limit or MAX_ANALYSIS_MESSAGES
        candidates = self.resolve(order)

        if not candidates:
            kind = LLMErrorKind.NOT_CONFIGURED
            logger.error("❌ 没有任何已配置的 LLM 提供方")
            raise AnalysisFailedError(kind, user_message_for(kind))

        async def attempt(provider: BaseLLMProvider) -> Optional[AnalysisResult]:
            logger.info(f"🤖 尝试使用 {provider.display_name} 分析用户 {telegram_user_id}")
            try:
                return await provider.analyze_user(telegram_user_id, limit)
            except LLMProviderError as e:
                logger.warning(f"⚠️ {provider.display_name} 分析失败 ({e.kind.value}): {e.message}")
                raise

        try:
            provider, analysis = await first_success(candidates, attempt, should_continue=_is_provider_error)
        except AllCandidatesFailed as e:
            raise self._failure(e.errors, candidates) from e.last_error

        if analysis is None:
            return None

        logger.info(f"✅ 用户 {telegram_user_id} 分析完成，使用 {provider.display_name}")
        return AnalysisOutcome(analysis=analysis, provider=provider.display_name)

    @staticmethod
    def _failure(errors, candidates: List[BaseLLMProvider]) -> AnalysisFailedError:
        """所有提供方都失败后，选出要报告给用户的错误"""
        provider_errors = [error for _, error in errors]

        # 余额不足且没有其他可用提供方时，优先报告余额问题
        balance_error = next(
            (e for e in provider_errors if e.kind == LLMErrorKind.INSUFFICIENT_BALANCE),
            None
        )
        if balance_error and len(candidates) == 1:
            return AnalysisFailedError(
                LLMErrorKind.INSUFFICIENT_BALANCE,
                f"{balance_error.message}, альтернативные API недоступны",
                provider_errors,
            )

        last = provider_errors[-1]
        logger.error(f"❌ 所有提供方均失败，最后错误: {last!r}")
        return AnalysisFailedError(last.kind, last.message, provider_errors)


# 全局实例
analysis_service = AnalysisService()
