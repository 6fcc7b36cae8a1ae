"""
Google Gemini 提供方

通过 REST generateContent 接口调用；按模型优先级列表逐个尝试，
模型不存在（404）时换下一个，限流（429）时在同一模型上指数退避重试
"""
from typing import List, Optional

import httpx
from loguru import logger

from app.config.settings import settings
from app.services.llm.base import BaseLLMProvider
from app.services.llm.errors import LLMErrorKind, LLMProviderError, kind_from_status
from app.services.llm.fallback import AllCandidatesFailed, first_success, retry_with_backoff

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

# 聊天记录里常有脏话，只拦截高风险内容
SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_ONLY_HIGH"}
    for category in SAFETY_CATEGORIES
]

STATUS_MESSAGES = {
    429: "Превышен лимит запросов к API. Подождите минуту и попробуйте снова.",
    400: "Запрос слишком большой. Попробуйте проанализировать пользователя с меньшим количеством сообщений.",
    403: "Проблема с доступом к API. Проверьте API ключ.",
}


def _is_rate_limited(error: BaseException) -> bool:
    return isinstance(error, LLMProviderError) and error.kind == LLMErrorKind.RATE_LIMITED


def _is_model_not_found(error: BaseException) -> bool:
    return isinstance(error, LLMProviderError) and error.kind == LLMErrorKind.MODEL_NOT_FOUND


class GeminiProvider(BaseLLMProvider):
    name = "gemini"
    display_name = "Gemini"

    def __init__(self, engine=None, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(engine)
        self.transport = transport

    def is_available(self) -> bool:
        return settings.is_gemini_configured

    @property
    def models(self) -> List[str]:
        return settings.gemini_model_list

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        allow_retry: bool = True
    ) -> str:
        if not self.is_available():
            raise LLMProviderError(LLMErrorKind.NOT_CONFIGURED, self.name, "GEMINI_API_KEY не настроен")

        models = self.models

        # 摘要场景：只在第一个模型上尝试一次
        if not allow_retry:
            if not models:
                raise LLMProviderError(LLMErrorKind.MODEL_NOT_FOUND, self.name, "Список моделей Gemini пуст")
            return await self._generate(models[0], prompt, system_prompt)

        async def try_model(model: str) -> str:
            return await retry_with_backoff(
                lambda: self._generate(model, prompt, system_prompt),
                should_retry=_is_rate_limited,
                max_attempts=settings.gemini_max_retries,
                base_delay=settings.gemini_retry_base_delay,
            )

        try:
            model, text = await first_success(models, try_model, should_continue=_is_model_not_found)
        except AllCandidatesFailed as e:
            raise LLMProviderError(
                LLMErrorKind.MODEL_NOT_FOUND,
                self.name,
                f"Ни одна из моделей Gemini недоступна: {', '.join(models)}",
                status=404,
            ) from e.last_error

        logger.info(f"✅ Gemini 模型 {model} 调用成功")
        return text

    async def _generate(self, model: str, prompt: str, system_prompt: Optional[str]) -> str:
        """对单个模型发起一次 generateContent 请求"""
        url = f"{settings.gemini_base_url.rstrip('/')}/models/{model}:generateContent"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "safetySettings": SAFETY_SETTINGS,
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        try:
            async with httpx.AsyncClient(timeout=settings.llm_request_timeout, transport=self.transport) as client:
                response = await client.post(url, params={"key": settings.gemini_api_key}, json=payload)
        except httpx.HTTPError as e:
            raise LLMProviderError(LLMErrorKind.TRANSPORT, self.name, f"Gemini недоступен: {e}") from e

        if response.status_code != 200:
            status = response.status_code
            if status == 404:
                logger.warning(f"Gemini 模型 {model} 不存在，尝试下一个")
            message = STATUS_MESSAGES.get(status, f"Gemini API ошибка: {status} - {response.text}")
            raise LLMProviderError(kind_from_status(status), self.name, message, status=status)

        try:
            data = response.json()
            candidates = data.get("candidates") or []
            parts = candidates[0].get("content", {}).get("parts", []) if candidates else []
            text = "".join(part.get("text", "") for part in parts)
        except (ValueError, AttributeError, TypeError) as e:
            raise LLMProviderError(
                LLMErrorKind.API_ERROR,
                self.name,
                f"Gemini вернул некорректный ответ: {response.text[:200]}",
                status=response.status_code,
            ) from e

        if not text.strip():
            raise LLMProviderError(LLMErrorKind.EMPTY_RESPONSE, self.name, "Gemini вернул пустой ответ")
        return text
