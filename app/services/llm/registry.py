"""
LLM 提供方注册表
"""
from typing import Dict, Iterable, List, Optional, Union

from loguru import logger

from app.services.llm.base import BaseLLMProvider
from app.services.llm.deepseek import DeepSeekProvider
from app.services.llm.gemini import GeminiProvider
from app.services.llm.qwen import QwenProvider

# 全局实例
gemini_provider = GeminiProvider()
deepseek_provider = DeepSeekProvider()
qwen_provider = QwenProvider()

PROVIDERS: Dict[str, BaseLLMProvider] = {
    provider.name: provider
    for provider in (gemini_provider, deepseek_provider, qwen_provider)
}


def parse_order(value: str) -> List[str]:
    """'deepseek, qwen,gemini' -> ['deepseek', 'qwen', 'gemini']"""
    return [name.strip().lower() for name in value.split(",") if name.strip()]


def get_provider(name: str, providers: Optional[Dict[str, BaseLLMProvider]] = None) -> Optional[BaseLLMProvider]:
    return (providers if providers is not None else PROVIDERS).get(name.strip().lower())


def get_providers(
    order: Union[str, Iterable[str]],
    providers: Optional[Dict[str, BaseLLMProvider]] = None
) -> List[BaseLLMProvider]:
    """按顺序返回提供方实例，未知名称记录日志后忽略"""
    names = parse_order(order) if isinstance(order, str) else list(order)
    result = []
    for name in names:
        provider = get_provider(name, providers)
        if provider is None:
            logger.warning(f"未知的 LLM 提供方: {name}")
            continue
        result.append(provider)
    return result
