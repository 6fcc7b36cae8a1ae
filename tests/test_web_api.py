from datetime import datetime, UTC

import pytest
from fastapi.testclient import TestClient

from app.database.connection import get_session
from app.services.analysis_service import AnalysisService
from app.services.llm.errors import LLMErrorKind, LLMProviderError
from app.web.api import app, get_analysis_service, get_recent_analyses
from app.web.recent import RecentAnalyses


@pytest.fixture
def providers(make_provider, analysis_reply):
    return {
        "deepseek": make_provider("deepseek", response=analysis_reply),
        "qwen": make_provider("qwen", response=analysis_reply),
        "gemini": make_provider("gemini", available=False),
    }


@pytest.fixture
def recent():
    return RecentAnalyses(limit=10)


@pytest.fixture
def client(engine, providers, recent):
    from sqlmodel import Session

    def _session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_analysis_service] = lambda: AnalysisService(
        providers=providers, default_order="deepseek,qwen,gemini"
    )
    app.dependency_overrides[get_recent_analyses] = lambda: recent
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(add_user, add_message):
    alice = add_user(1, "alice", "Alice")
    bob = add_user(2, "bob", "Bob")
    add_user(3, "silent")
    for text in ("раз", "два", "три"):
        add_message(alice, text)
    add_message(bob, "привет")


def test_overview(client, seeded):
    response = client.get("/api/overview")

    assert response.status_code == 200
    data = response.json()
    assert data["totalMessages"] == 4
    assert data["totalUsers"] == 2
    assert data["topUsers"][0] == {"username": "alice", "firstName": "Alice", "messageCount": 3}
    assert [u["username"] for u in data["allUsers"]] == ["alice", "bob", "silent"]
    assert data["allUsers"][2]["messageCount"] == 0
    assert data["allUsers"][2]["lastMessage"] is None
    assert data["allUsers"][0]["firstMessage"]
    assert data["messagesByDay"] == [{"date": datetime.now(UTC).date().isoformat(), "count": 4}]
    assert data["recentAnalyses"] == []


def test_overview_on_empty_database(client):
    data = client.get("/api/overview").json()

    assert data["totalMessages"] == 0
    assert data["topUsers"] == []
    assert data["messagesByDay"] == []


@pytest.mark.parametrize(
    "body, error",
    [
        ({}, "Username обязателен"),
        ({"username": ""}, "Username обязателен"),
        ({"username": " @ "}, "Username не может быть пустым"),
    ],
)
def test_analyze_validation(client, body, error):
    response = client.post("/api/analyze", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": error}


def test_analyze_unknown_user(client, seeded):
    response = client.post("/api/analyze", json={"username": "@nobody"})

    assert response.status_code == 404
    assert response.json() == {"error": "Пользователь @nobody не найден в базе данных"}


def test_analyze_success_is_recorded(client, seeded, recent, providers):
    response = client.post("/api/analyze", json={"username": "@alice"})

    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "Deepseek"
    assert data["analysis"]["messageCount"] == 3
    assert data["analysis"]["averageLength"] == "3 символов"
    assert [r.username for r in recent.items()] == ["alice"]
    assert client.get("/api/overview").json()["recentAnalyses"][0]["username"] == "alice"


def test_analyze_with_requested_provider(client, seeded, providers):
    response = client.post("/api/analyze", json={"username": "bob", "provider": "qwen"})

    assert response.status_code == 200
    assert response.json()["provider"] == "Qwen"
    assert providers["deepseek"].calls == []


def test_analyze_total_failure(client, seeded, providers):
    for name in ("deepseek", "qwen"):
        providers[name].error = LLMProviderError(LLMErrorKind.API_ERROR, name, f"{name} down")

    response = client.post("/api/analyze", json={"username": "alice"})

    assert response.status_code == 500
    assert response.json() == {"error": "Ошибка при анализе: qwen down"}


def test_compare_two_users(client, seeded, recent):
    response = client.post("/api/compare", json={"usernames": ["@alice", "bob"]})

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["username"] for r in results] == ["alice", "bob"]
    assert [r["analysis"]["messageCount"] for r in results] == [3, 1]
    assert len(recent) == 2


def test_compare_with_unknown_user(client, seeded):
    response = client.post("/api/compare", json={"usernames": ["alice", "ghost"]})

    assert response.status_code == 404
    assert "ghost" in response.json()["error"]


def test_compare_requires_two_usernames(client, seeded):
    response = client.post("/api/compare", json={"usernames": ["alice"]})

    assert response.status_code == 400


def test_recent_analyses_is_bounded_and_newest_first():
    recent = RecentAnalyses(limit=2)
    for name in ("a", "b", "c"):
        recent.add(name)

    assert [r.username for r in recent.items()] == ["c", "b"]
