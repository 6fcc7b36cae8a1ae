"""
Qwen 提供方（DashScope OpenAI 兼容模式）
"""
from typing import Optional

import httpx
from openai import AsyncOpenAI, APIConnectionError, APIError, APIStatusError
from loguru import logger

from app.config.settings import settings
from app.services.llm.base import BaseLLMProvider
from app.services.llm.errors import LLMErrorKind, LLMProviderError, kind_from_status


def _content_text(content) -> str:
    """content 可能是字符串，也可能是多段结构，多段时直接拼接文本"""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            text = part
        elif isinstance(part, dict):
            text = part.get("text")
        else:
            text = getattr(part, "text", None)
        if text:
            parts.append(text)
    return "".join(parts)


class QwenProvider(BaseLLMProvider):
    name = "qwen"
    display_name = "Qwen"

    def __init__(self, engine=None, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(engine)
        self.http_client = http_client
        self._client: Optional[AsyncOpenAI] = None

    def is_available(self) -> bool:
        return settings.is_qwen_configured

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=settings.dashscope_api_key,
                base_url=settings.dashscope_base_url,
                timeout=settings.llm_request_timeout,
                # 降级由编排层负责，SDK 不自行重试
                max_retries=0,
                http_client=self.http_client,
            )
            logger.info(f"Qwen client initialized with base_url: {settings.dashscope_base_url}, model: {settings.dashscope_model}")
        return self._client

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        allow_retry: bool = True
    ) -> str:
        if not self.is_available():
            raise LLMProviderError(LLMErrorKind.NOT_CONFIGURED, self.name, "DASHSCOPE_API_KEY не настроен")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=settings.dashscope_model,
                messages=messages,
                temperature=0.7,
            )
        except APIStatusError as e:
            raise LLMProviderError(
                kind_from_status(e.status_code),
                self.name,
                f"Qwen API ошибка: {e.status_code} - {e.message}",
                status=e.status_code,
            ) from e
        except APIConnectionError as e:
            raise LLMProviderError(LLMErrorKind.TRANSPORT, self.name, f"Qwen недоступен: {e}") from e
        except APIError as e:
            # 响应体无法解析等
            raise LLMProviderError(LLMErrorKind.API_ERROR, self.name, f"Qwen API ошибка: {e}") from e

        try:
            text = _content_text(response.choices[0].message.content) if response.choices else ""
        except (AttributeError, TypeError) as e:
            raise LLMProviderError(LLMErrorKind.API_ERROR, self.name, "Qwen вернул некорректный ответ") from e
        if not text.strip():
            raise LLMProviderError(LLMErrorKind.EMPTY_RESPONSE, self.name, "Qwen вернул пустой ответ")
        return text
