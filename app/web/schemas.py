"""
仪表盘 API 请求/响应模型

Python 中字段为 snake_case，JSON 中为 camelCase
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.services.llm.results import AnalysisResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TopUserItem(CamelModel):
    username: Optional[str] = None
    first_name: Optional[str] = None
    message_count: int


class UserActivityItem(CamelModel):
    id: int
    telegram_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    message_count: int
    first_message: Optional[str] = None
    last_message: Optional[str] = None


class DailyCount(CamelModel):
    date: str
    count: int


class RecentAnalysis(CamelModel):
    username: str
    analyzed_at: str


class OverviewResponse(CamelModel):
    total_messages: int
    total_users: int
    top_users: List[TopUserItem]
    all_users: List[UserActivityItem]
    messages_by_day: List[DailyCount]
    recent_analyses: List[RecentAnalysis]


class AnalyzeRequest(BaseModel):
    username: Optional[str] = None
    provider: Optional[str] = None


class AnalyzeResponse(CamelModel):
    analysis: AnalysisResult
    provider: str


class CompareRequest(BaseModel):
    usernames: List[str] = []
    provider: Optional[str] = None


class CompareItem(AnalyzeResponse):
    username: str


class CompareResponse(CamelModel):
    results: List[CompareItem]
