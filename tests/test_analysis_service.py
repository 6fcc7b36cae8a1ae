import pytest

from app.services.analysis_service import AnalysisService
from app.services.llm.errors import AnalysisFailedError, LLMErrorKind, LLMProviderError


def provider_error(kind, name="stub"):
    return LLMProviderError(kind, name, f"{name} failed with {kind.value}")


@pytest.fixture
def alice(add_user, add_message):
    user = add_user(1, "alice")
    add_message(user, "привет всем")
    add_message(user, "как дела?")
    return user


def service_for(*providers, order=None):
    return AnalysisService(
        providers={p.name: p for p in providers},
        default_order=order or ",".join(p.name for p in providers),
    )


@pytest.mark.asyncio
async def test_unavailable_providers_are_skipped(alice, make_provider, analysis_reply):
    deepseek = make_provider("deepseek", available=False)
    qwen = make_provider("qwen", response=analysis_reply)

    outcome = await service_for(deepseek, qwen).analyze(1)

    assert outcome.provider == "Qwen"
    assert outcome.analysis.style == "неформальный, дружелюбный"
    assert outcome.analysis.message_count == 2
    assert deepseek.calls == []


@pytest.mark.asyncio
async def test_falls_back_after_provider_error(alice, make_provider, analysis_reply):
    deepseek = make_provider("deepseek", error=provider_error(LLMErrorKind.API_ERROR))
    qwen = make_provider("qwen", response=analysis_reply)
    gemini = make_provider("gemini", response=analysis_reply)

    outcome = await service_for(deepseek, qwen, gemini).analyze(1)

    assert outcome.provider == "Qwen"
    assert len(deepseek.calls) == 1
    assert gemini.calls == []


@pytest.mark.asyncio
async def test_explicit_order_is_respected(alice, make_provider, analysis_reply):
    deepseek = make_provider("deepseek", response=analysis_reply)
    qwen = make_provider("qwen", response=analysis_reply)

    outcome = await service_for(deepseek, qwen).analyze(1, order="qwen,deepseek")

    assert outcome.provider == "Qwen"
    assert deepseek.calls == []


@pytest.mark.asyncio
async def test_all_failures_report_last_error(alice, make_provider):
    deepseek = make_provider("deepseek", error=provider_error(LLMErrorKind.INSUFFICIENT_BALANCE))
    qwen = make_provider("qwen", error=provider_error(LLMErrorKind.AUTH))

    with pytest.raises(AnalysisFailedError) as excinfo:
        await service_for(deepseek, qwen).analyze(1)

    assert excinfo.value.kind == LLMErrorKind.AUTH
    assert len(excinfo.value.errors) == 2


@pytest.mark.asyncio
async def test_insufficient_balance_wins_when_no_alternative(alice, make_provider):
    deepseek = make_provider("deepseek", error=provider_error(LLMErrorKind.INSUFFICIENT_BALANCE))
    qwen = make_provider("qwen", available=False)
    gemini = make_provider("gemini", available=False)

    with pytest.raises(AnalysisFailedError) as excinfo:
        await service_for(deepseek, qwen, gemini).analyze(1)

    assert excinfo.value.kind == LLMErrorKind.INSUFFICIENT_BALANCE


@pytest.mark.asyncio
async def test_nothing_configured(alice, make_provider):
    with pytest.raises(AnalysisFailedError) as excinfo:
        await service_for(make_provider("deepseek", available=False)).analyze(1)

    assert excinfo.value.kind == LLMErrorKind.NOT_CONFIGURED


@pytest.mark.asyncio
async def test_unknown_user_returns_none(engine, make_provider, analysis_reply):
    deepseek = make_provider("deepseek", response=analysis_reply)

    assert await service_for(deepseek).analyze(999) is None
    assert deepseek.calls == []


@pytest.mark.asyncio
async def test_user_without_messages_gets_placeholder(add_user, make_provider, analysis_reply):
    add_user(2, "quiet")
    deepseek = make_provider("deepseek", response=analysis_reply)

    outcome = await service_for(deepseek).analyze(2)

    assert outcome.analysis.message_count == 0
    assert deepseek.calls == []


@pytest.mark.asyncio
async def test_message_limit_caps_prompt(add_user, add_message, make_provider, analysis_reply):
    user = add_user(3, "chatty")
    for i in range(40):
        add_message(user, f"сообщение {i}")
    deepseek = make_provider("deepseek", response=analysis_reply)

    outcome = await service_for(deepseek).analyze(3, limit=100)

    assert outcome.analysis.message_count == 30
