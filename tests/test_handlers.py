from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from telegram.error import BadRequest

from app.handlers import ai as ai_handlers
from app.handlers import stats as stats_handlers
from app.handlers.ai import format_analysis
from app.handlers.digest_handlers import format_digest
from app.handlers.stats import format_chat_stats, format_user_stats, period_keyboard
from app.services.llm.results import AnalysisResult, DigestResult
from app.services.stats_service import StatsResult, TopUser, UserStatsResult
from app.utils.user_resolver import TargetUserNotFound, UserResolver, is_real_reply


def make_message(from_id=10, reply_from_id=None, thread_id=None, reply_id=5):
    reply = None
    if reply_from_id is not None:
        reply = SimpleNamespace(
            from_user=SimpleNamespace(id=reply_from_id),
            message_thread_id=thread_id,
            id=reply_id,
        )
    return SimpleNamespace(from_user=SimpleNamespace(id=from_id), reply_to_message=reply)


def test_chat_stats_text_with_medals():
    stats = StatsResult(
        top_users=[
            TopUser(user_id=1, count=5, username="alice"),
            TopUser(user_id=2, count=3, first_name="Боб"),
            TopUser(user_id=3, count=2),
            TopUser(user_id=4, count=1, username="dan"),
        ],
        total_messages=11,
        total_users=4,
    )

    text = format_chat_stats(stats, "week")

    assert text.startswith("📊 Статистика чата за неделю:")
    assert "🥇 @alice - 5 сообщений" in text
    assert "🥈 Боб - 3 сообщений" in text
    assert "🥉 Неизвестный - 2 сообщений" in text
    assert "4. @dan - 1 сообщений" in text
    assert text.endswith("📈 Всего: 11 сообщений от 4 пользователей")


def test_chat_stats_text_for_empty_chat():
    text = format_chat_stats(StatsResult(top_users=[], total_messages=0, total_users=0), "today")

    assert "Пока нет сообщений в этом чате." in text


def test_user_stats_text():
    stats = UserStatsResult(user_id=1, username="alice", message_count=7, period="all")

    assert format_user_stats(stats, "all") == (
        "👤 Статистика пользователя @alice за все время:\n\n📝 Сообщений: 7"
    )


def test_period_keyboard_callback_data():
    keyboard = period_keyboard(-100, "uperiod")
    data = [button.callback_data for row in keyboard.inline_keyboard for button in row]

    assert "stats:uperiod:-100:today" in data
    assert "stats:uperiod:-100:all" in data
    assert data[-1] == "stats:menu:-100"


def test_analysis_text_names_provider():
    text = format_analysis(AnalysisResult.insufficient_data(), "alice", None, "Qwen")

    assert text.startswith("🔍 Анализ пользователя @alice")
    assert "📊 На основе 0 сообщений за все время." in text
    assert text.endswith("🤖 Анализ выполнен через Qwen API")


def test_digest_text_is_markdown_v2_safe():
    digest = DigestResult(summary="Итоги (кратко).", action_items=["Сделать v1.2"], topics="a-b", tone="ок!")

    text = format_digest(digest, "сегодня")

    assert "📝 *Краткий пересказ*\nИтоги \\(кратко\\)\\." in text
    assert "• Сделать v1\\.2" in text
    assert "• Темы: a\\-b" in text
    assert "• Тон: ок\\!" in text


def test_resolver_prefers_reply_target(session):
    message = make_message(reply_from_id=77)

    assert UserResolver.resolve(message, ["@someone"], session) == 77


def test_resolver_ignores_forum_topic_pseudo_reply(session):
    message = make_message(reply_from_id=77, thread_id=5, reply_id=5)

    assert is_real_reply(message) is False
    assert UserResolver.resolve(message, [], session) == 10


def test_resolver_looks_up_username(session, add_user):
    add_user(55, "carol")

    assert UserResolver.resolve(make_message(), ["@carol"], session) == 55


def test_resolver_unknown_username(session):
    with pytest.raises(TargetUserNotFound) as excinfo:
        UserResolver.resolve(make_message(), ["@ghost"], session)
    assert excinfo.value.username == "ghost"


def test_resolver_defaults_to_issuer(session):
    assert UserResolver.resolve(make_message(from_id=9), [], session) == 9


@pytest.mark.asyncio
async def test_stats_callback_ignores_not_modified(monkeypatch):
    stats = StatsResult(top_users=[], total_messages=0, total_users=0)
    monkeypatch.setattr(stats_handlers.stats_service, "get_chat_stats", AsyncMock(return_value=stats))
    query = SimpleNamespace(
        data="stats:period:-100:week",
        answer=AsyncMock(),
        edit_message_text=AsyncMock(side_effect=BadRequest("Message is not modified: specified new message content")),
        message=SimpleNamespace(reply_text=AsyncMock()),
        from_user=SimpleNamespace(id=1),
    )
    update = SimpleNamespace(callback_query=query)

    await stats_handlers.stats_callback(update, None)

    stats_handlers.stats_service.get_chat_stats.assert_awaited_once_with(-100, "week")
    assert query.edit_message_text.await_count == 1
    query.message.reply_text.assert_not_called()


@pytest.mark.asyncio
async def test_analyze_command_replies_when_lookup_fails(monkeypatch, engine):
    def broken_resolve(message, args, session):
        raise RuntimeError("database is down")

    monkeypatch.setattr(ai_handlers, "engine", engine)
    monkeypatch.setattr(ai_handlers.UserResolver, "resolve", staticmethod(broken_resolve))
    message = SimpleNamespace(
        from_user=SimpleNamespace(id=1),
        chat=SimpleNamespace(id=-100),
        reply_to_message=None,
        reply_text=AsyncMock(),
    )
    update = SimpleNamespace(message=message)

    await ai_handlers.analyze_command(update, SimpleNamespace(args=[]))

    message.reply_text.assert_awaited_once_with("Произошла ошибка при обработке команды.")
