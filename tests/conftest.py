"""Shared fixtures: in-memory database, fake Redis and stub LLM providers."""

import os

# Settings are read at import time, so the environment has to be ready first.
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-token")
os.environ.setdefault("DATABASE_PASSWORD", "test")
os.environ["TIMEZONE"] = "UTC"
for _key in ("GEMINI_API_KEY", "DEEPSEEK_API_KEY", "DASHSCOPE_API_KEY"):
    os.environ[_key] = ""

from datetime import datetime, UTC
from typing import Optional

import fakeredis.aioredis
import pytest
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.models import User, Message
from app.services.llm.base import BaseLLMProvider


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def add_user(session):
    def _add(telegram_id: int, username: Optional[str] = None, first_name: Optional[str] = None) -> User:
        user = User(telegram_id=telegram_id, username=username, first_name=first_name)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _add


@pytest.fixture
def add_message(session):
    counter = {"next_id": 1000}

    def _add(
        user: User,
        text: str,
        chat_id: int = -100,
        created_at: Optional[datetime] = None,
        telegram_message_id: Optional[int] = None,
    ) -> Message:
        if telegram_message_id is None:
            counter["next_id"] += 1
            telegram_message_id = counter["next_id"]
        message = Message(
            user_id=user.id,
            telegram_message_id=telegram_message_id,
            chat_id=chat_id,
            text=text,
            created_at=created_at or datetime.now(UTC),
        )
        session.add(message)
        session.commit()
        session.refresh(message)
        return message

    return _add


@pytest.fixture
def fake_redis(monkeypatch):
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)

    async def _get_redis():
        return client

    monkeypatch.setattr("app.services.stats_service.get_redis", _get_redis)
    return client


class StubProvider(BaseLLMProvider):
    """Provider whose completion is scripted by the test."""

    def __init__(
        self,
        name: str,
        engine=None,
        available: bool = True,
        response: str = "",
        error: Optional[Exception] = None,
    ):
        super().__init__(engine)
        self.name = name
        self.display_name = name.capitalize()
        self.available = available
        self.response = response
        self.error = error
        self.calls = []

    def is_available(self) -> bool:
        return self.available

    async def complete(self, prompt, *, system_prompt=None, allow_retry=True):
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "allow_retry": allow_retry})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def make_provider(engine):
    def _make(name: str, **kwargs) -> StubProvider:
        return StubProvider(name, engine=engine, **kwargs)

    return _make


@pytest.fixture
def analysis_reply() -> str:
    return (
        "Стиль: неформальный, дружелюбный\n"
        "Темы: работа, кино\n"
        "Активность: вечер\n"
        "Тональность: позитивная\n"
        "Особенности: много эмодзи"
    )
