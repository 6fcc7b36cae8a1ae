from typing import List
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

INSUFFICIENT_DATA = "Недостаточно данных"
DEFAULT_PERIOD = "все время"
NO_TASKS = "Нет явных задач."


class _CamelModel(BaseModel):
    # 看板 JSON 使用 camelCase
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisResult(_CamelModel):
    """用户沟通风格分析结果（不落库）"""
    style: str
    topics: str
    average_length: str
    activity: str
    tone: str
    features: str
    message_count: int
    period: str = DEFAULT_PERIOD

    @classmethod
    def insufficient_data(cls) -> "AnalysisResult":
        """没有任何消息时返回的占位结果"""
        return cls(
            style=INSUFFICIENT_DATA,
            topics="Нет сообщений для анализа",
            average_length="0",
            activity=INSUFFICIENT_DATA,
            tone=INSUFFICIENT_DATA,
            features="Нет данных",
            message_count=0,
        )


class DigestResult(_CamelModel):
    """群聊摘要结果（不落库）"""
    summary: str
    action_items: List[str]
    topics: str
    tone: str
