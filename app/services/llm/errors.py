"""
LLM 提供方调用的错误类型

错误类型在看到 HTTP 状态码或 SDK 异常的地方确定，随异常一起传递，
调用方不需要解析错误文本
"""

from enum import Enum
from typing import Optional


class LLMErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    RATE_LIMITED = "rate_limited"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    AUTH = "auth"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    MODEL_NOT_FOUND = "model_not_found"
    EMPTY_RESPONSE = "empty_response"
    API_ERROR = "api_error"
    TRANSPORT = "transport"


class LLMProviderError(Exception):
    """单个提供方调用失败"""

    def __init__(
        self,
        kind: LLMErrorKind,
        provider: str,
        message: str,
        status: Optional[int] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.message = message
        self.status = status

    def __repr__(self) -> str:
        return f"LLMProviderError(kind={self.kind.value}, provider={self.provider}, status={self.status})"


def kind_from_status(status: int) -> LLMErrorKind:
    """HTTP 状态码映射为错误类型"""
    if status == 429:
        return LLMErrorKind.RATE_LIMITED
    if status in (400, 413):
        return LLMErrorKind.PAYLOAD_TOO_LARGE
    if status in (401, 403):
        return LLMErrorKind.AUTH
    if status == 402:
        return LLMErrorKind.INSUFFICIENT_BALANCE
    if status == 404:
        return LLMErrorKind.MODEL_NOT_FOUND
    return LLMErrorKind.API_ERROR


# 面向聊天用户的提示文案
USER_MESSAGES = {
    LLMErrorKind.RATE_LIMITED: "⚠️ Превышен лимит запросов к API. Подождите минуту и попробуйте снова.",
    LLMErrorKind.PAYLOAD_TOO_LARGE: "⚠️ Слишком много данных для анализа. Попробуйте пользователя с меньшим количеством сообщений.",
    LLMErrorKind.AUTH: "⚠️ Проблема с доступом к API. Проверьте настройки.",
    LLMErrorKind.NOT_CONFIGURED: "⚠️ Ни один LLM‑провайдер не настроен. Проверьте ключи API.",
    LLMErrorKind.INSUFFICIENT_BALANCE: "⚠️ Недостаточно средств на счету LLM‑провайдера, альтернативные API недоступны.",
}

DEFAULT_USER_MESSAGE = "❌ Произошла ошибка при анализе пользователя."


def user_message_for(kind: Optional[LLMErrorKind]) -> str:
    return USER_MESSAGES.get(kind, DEFAULT_USER_MESSAGE)


class AnalysisFailedError(Exception):
    """分析顺序中的所有提供方都失败（或没有配置任何提供方）"""

    def __init__(self, kind: Optional[LLMErrorKind], message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors = errors or []


class DigestFailedError(Exception):
    """摘要顺序中的所有提供方都失败（或没有配置任何提供方）"""

    def __init__(self, kind: Optional[LLMErrorKind], message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.errors = errors or []
