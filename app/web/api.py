"""
仪表盘 HTTP API

GET  /api/overview  仪表盘的消息和用户统计
POST /api/analyze   按用户名分析单个用户的沟通风格
POST /api/compare   并排分析两个用户
"""
import asyncio
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.config.settings import settings
from app.database.connection import get_session
from app.services.analysis_service import AnalysisService, analysis_service
from app.services.llm.errors import AnalysisFailedError
from app.services.llm.registry import PROVIDERS
from app.services.message_store import MessageStore
from app.web.recent import RecentAnalyses, recent_analyses
from app.web.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    CompareItem,
    CompareRequest,
    CompareResponse,
    DailyCount,
    OverviewResponse,
    TopUserItem,
    UserActivityItem,
)

TOP_USERS_LIMIT = 8
DAYS_WINDOW = 30


class ApiError(Exception):
    """以 {"error": message} 和指定状态码返回"""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


app = FastAPI(title="Chat Analytics Dashboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Некорректный запрос"})


def get_analysis_service() -> AnalysisService:
    return analysis_service


def get_recent_analyses() -> RecentAnalyses:
    return recent_analyses


def clean_username(username: Optional[str]) -> str:
    """校验用户名，去掉开头的 @"""
    if not username or not isinstance(username, str):
        raise ApiError(400, "Username обязателен")
    cleaned = username.strip().lstrip("@").strip()
    if not cleaned:
        raise ApiError(400, "Username не может быть пустым")
    return cleaned


def resolve_order(provider: Optional[str]) -> str:
    """已知的提供方名称单独使用，其他值按自动顺序"""
    if provider and provider.strip().lower() in PROVIDERS:
        return provider.strip().lower()
    return settings.dashboard_provider_order


async def run_analysis(
    username: str,
    provider: Optional[str],
    session: Session,
    service: AnalysisService,
    recent: RecentAnalyses,
) -> AnalyzeResponse:
    user = MessageStore.find_user_by_username(session, username)
    if not user:
        raise ApiError(404, f"Пользователь @{username} не найден в базе данных")
    telegram_id = user.telegram_id

    try:
        outcome = await service.analyze(telegram_id, order=resolve_order(provider))
    except AnalysisFailedError as e:
        raise ApiError(500, f"Ошибка при анализе: {e.message}")
    except Exception as e:
        logger.exception(f"Unexpected error while analysing @{username}")
        raise ApiError(500, f"Ошибка при анализе: {e}")

    if outcome is None:
        raise ApiError(404, f"Пользователь @{username} не найден в базе данных")

    recent.add(username)
    logger.info(f"Dashboard analysis of @{username} done via {outcome.provider}")
    return AnalyzeResponse(analysis=outcome.analysis, provider=outcome.provider)


@app.get("/api/overview", response_model=OverviewResponse, response_model_by_alias=True)
def overview(
    session: Session = Depends(get_session),
    recent: RecentAnalyses = Depends(get_recent_analyses),
) -> OverviewResponse:
    try:
        total_messages, total_users = MessageStore.aggregate_stats(session)
        top_rows = MessageStore.top_users_by_message_count(session, TOP_USERS_LIMIT)
        activity_rows = MessageStore.list_users_with_activity(session)
        daily = MessageStore.daily_message_counts(session, DAYS_WINDOW)
    except SQLAlchemyError:
        logger.exception("Failed to build dashboard overview")
        raise ApiError(500, "Не удалось получить статистику")

    return OverviewResponse(
        total_messages=total_messages,
        total_users=total_users,
        top_users=[
            TopUserItem(username=row.username, first_name=row.first_name, message_count=row.count)
            for row in top_rows
        ],
        all_users=[
            UserActivityItem(
                id=row.id,
                telegram_id=row.telegram_id,
                username=row.username,
                first_name=row.first_name,
                last_name=row.last_name,
                message_count=row.message_count,
                first_message=row.first_message.isoformat() if row.first_message else None,
                last_message=row.last_message.isoformat() if row.last_message else None,
            )
            for row in activity_rows
        ],
        messages_by_day=[DailyCount(date=day, count=count) for day, count in daily],
        recent_analyses=recent.items(),
    )


@app.post("/api/analyze", response_model=AnalyzeResponse, response_model_by_alias=True)
async def analyze(
    body: AnalyzeRequest,
    session: Session = Depends(get_session),
    service: AnalysisService = Depends(get_analysis_service),
    recent: RecentAnalyses = Depends(get_recent_analyses),
) -> AnalyzeResponse:
    username = clean_username(body.username)
    return await run_analysis(username, body.provider, session, service, recent)


@app.post("/api/compare", response_model=CompareResponse, response_model_by_alias=True)
async def compare(
    body: CompareRequest,
    session: Session = Depends(get_session),
    service: AnalysisService = Depends(get_analysis_service),
    recent: RecentAnalyses = Depends(get_recent_analyses),
) -> CompareResponse:
    if len(body.usernames) != 2:
        raise ApiError(400, "Для сравнения нужно указать ровно два username")
    usernames = [clean_username(name) for name in body.usernames]

    results = await asyncio.gather(
        *(run_analysis(name, body.provider, session, service, recent) for name in usernames),
        return_exceptions=True,
    )
    # 按请求顺序，第一个失败决定响应
    for result in results:
        if isinstance(result, Exception):
            raise result

    return CompareResponse(
        results=[
            CompareItem(username=name, analysis=result.analysis, provider=result.provider)
            for name, result in zip(usernames, results)
        ]
    )
