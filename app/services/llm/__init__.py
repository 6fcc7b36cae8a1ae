from app.services.llm.base import BaseLLMProvider
from app.services.llm.errors import (
    LLMErrorKind,
    LLMProviderError,
    AnalysisFailedError,
    DigestFailedError,
    user_message_for,
)
from app.services.llm.results import AnalysisResult, DigestResult
from app.services.llm.registry import PROVIDERS, get_provider, get_providers, parse_order

__all__ = [
    "BaseLLMProvider",
    "LLMErrorKind",
    "LLMProviderError",
    "AnalysisFailedError",
    "DigestFailedError",
    "user_message_for",
    "AnalysisResult",
    "DigestResult",
    "PROVIDERS",
    "get_provider",
    "get_providers",
    "parse_order",
]
