"""
提示词构建

用户分析和群聊摘要共用同一截断规则：文本超长时按条数保留最近的 60% 消息，
不在消息中间截断
"""
import math
from typing import List, Optional
from loguru import logger

ANALYSIS_MAX_LENGTH = 6000
DIGEST_MAX_LENGTH = 8000
KEEP_RATIO = 0.6

ANALYSIS_SYSTEM_PROMPT = (
    "Ты помощник, который анализирует сообщения из Telegram-чата "
    "и отвечает коротко и структурированно на русском языке."
)

DIGEST_SYSTEM_PROMPT = (
    "Ты помощник, который делает структурированный дайджест группового чата на русском языке."
)

ANALYSIS_TEMPLATE = """Проанализируй стиль общения {display_name} по сообщениям:

{messages}

Формат ответа (только текст, без markdown):
Стиль: [формальный/неформальный, дружелюбный/строгий]
Темы: [основные темы через запятую]
Активность: [время суток активности, если видно]
Тональность: [позитивная/нейтральная/негативная]
Особенности: [частые слова, эмодзи, выражения]

Кратко и конкретно."""

DIGEST_TEMPLATE = """Ты помощник, который делает дайджест группового чата Telegram.
Ниже — сообщения за период: {period_label}.

Твоя задача:
1) Кратко пересказать, что обсуждали (2–4 предложения).
2) Выделить список action items / задач (по пунктам).
3) Описать основные темы и общее настроение участников.

Формат ответа (строго придерживайся структуры, без markdown, только текст):

Summary:
- [краткий пересказ в 2–4 предложениях]

Action items:
- [задача 1]
- [задача 2]
- [и т.д.; если задач нет, напиши один пункт "Нет явных задач"]

Context:
- Темы: [перечисли основные темы через запятую]
- Тон: [кратко опиши общее настроение: позитивное / нейтральное / напряжённое и т.п.]

Сообщения чата:
{messages}"""


def display_name(username: Optional[str], first_name: Optional[str]) -> str:
    """@username > first_name > 默认称呼"""
    if username:
        return f"@{username}"
    return first_name or "Пользователь"


def truncate_messages(
    texts: List[str],
    max_length: int,
    keep_ratio: float = KEEP_RATIO
) -> List[str]:
    """
    拼接后超过 max_length 时只保留最后 ceil(N * keep_ratio) 条

    Args:
        texts: 按时间升序排列的消息文本
        max_length: 拼接后允许的最大字符数
        keep_ratio: 保留比例

    Returns:
        可能被截断的消息列表（只截一次，不保证最终长度不超限）
    """
    joined_length = len("\n".join(texts))
    if joined_length <= max_length:
        return texts

    keep = math.ceil(len(texts) * keep_ratio)
    truncated = texts[-keep:] if keep else []
    truncated_length = len("\n".join(truncated))
    logger.info(
        f"⚠️ 文本过长已截断: {len(texts)} -> {len(truncated)} 条, "
        f"{joined_length} -> {truncated_length} 字符"
    )
    return truncated


def build_analysis_prompt(
    texts: List[str],
    username: Optional[str],
    first_name: Optional[str],
    max_length: int = ANALYSIS_MAX_LENGTH
) -> str:
    """构建用户沟通风格分析提示词（texts 按时间升序）"""
    kept = truncate_messages(texts, max_length)
    return ANALYSIS_TEMPLATE.format(
        display_name=display_name(username, first_name),
        messages="\n".join(kept),
    )


def build_digest_prompt(
    texts: List[str],
    period_label: str,
    max_length: int = DIGEST_MAX_LENGTH
) -> str:
    """构建群聊摘要提示词（texts 按时间升序）"""
    kept = truncate_messages(texts, max_length)
    return DIGEST_TEMPLATE.format(period_label=period_label, messages="\n".join(kept))
