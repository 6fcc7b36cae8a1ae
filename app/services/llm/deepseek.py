"""
DeepSeek 提供方（OpenAI 兼容的 chat/completions 接口，单次请求不重试）
"""
from typing import Optional

import httpx
from loguru import logger

from app.config.settings import settings
from app.services.llm.base import BaseLLMProvider
from app.services.llm.errors import LLMErrorKind, LLMProviderError


class DeepSeekProvider(BaseLLMProvider):
    name = "deepseek"
    display_name = "DeepSeek"

    def __init__(self, engine=None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(engine)
        self.transport = transport

    def is_available(self) -> bool:
        return settings.is_deepseek_configured

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        allow_retry: bool = True
    ) -> str:
        if not self.is_available():
            raise LLMProviderError(LLMErrorKind.NOT_CONFIGURED, self.name, "DEEPSEEK_API_KEY не настроен")

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        url = f"{settings.deepseek_api_url.rstrip('/')}/v1/chat/completions"
        headers = {"Authorization": f"Bearer {settings.deepseek_api_key}"}
        payload = {
            "model": settings.deepseek_model,
            "messages": messages,
            "temperature": 0.7,
            "max_tokens": 1000,
        }

        try:
            async with httpx.AsyncClient(timeout=settings.llm_request_timeout, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise LLMProviderError(LLMErrorKind.TRANSPORT, self.name, f"DeepSeek недоступен: {e}") from e

        if response.status_code == 402:
            logger.warning("DeepSeek 余额不足")
            raise LLMProviderError(
                LLMErrorKind.INSUFFICIENT_BALANCE,
                self.name,
                "Недостаточно средств на балансе DeepSeek API",
                status=402,
            )
        if response.status_code != 200:
            raise LLMProviderError(
                LLMErrorKind.API_ERROR,
                self.name,
                f"DeepSeek API ошибка: {response.status_code} - {response.text}",
                status=response.status_code,
            )

        try:
            choices = response.json().get("choices") or []
            content = choices[0].get("message", {}).get("content") if choices else None
        except (ValueError, AttributeError, TypeError) as e:
            raise LLMProviderError(
                LLMErrorKind.API_ERROR,
                self.name,
                f"DeepSeek вернул некорректный ответ: {response.text[:200]}",
                status=response.status_code,
            ) from e
        if not isinstance(content, str) or not content.strip():
            raise LLMProviderError(LLMErrorKind.EMPTY_RESPONSE, self.name, "DeepSeek вернул пустой ответ")
        return content
