"""
仪表盘上显示的最近分析记录

只保存在进程内存中，重启后列表为空
"""
from collections import deque
from datetime import datetime, UTC
from typing import List, Optional

from app.config.settings import settings
from app.web.schemas import RecentAnalysis


class RecentAnalyses:
    """有上限的最近分析列表，最新的在前"""

    def __init__(self, limit: int = 10):
        self._items: deque[RecentAnalysis] = deque(maxlen=limit)

    def add(self, username: str, analyzed_at: Optional[datetime] = None) -> None:
        analyzed_at = analyzed_at or datetime.now(UTC)
        # deque 已满时 appendleft 会从右侧丢弃最旧的记录
        self._items.appendleft(RecentAnalysis(username=username, analyzed_at=analyzed_at.isoformat()))

    def items(self) -> List[RecentAnalysis]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


recent_analyses = RecentAnalyses(settings.recent_analyses_limit)
