import pytest

from app.services.llm.prompts import (
    build_analysis_prompt,
    build_digest_prompt,
    display_name,
    truncate_messages,
)


@pytest.mark.parametrize(
    "username, first_name, expected",
    [
        ("alice", "Alice", "@alice"),
        (None, "Alice", "Alice"),
        (None, None, "Пользователь"),
    ],
)
def test_display_name(username, first_name, expected):
    assert display_name(username, first_name) == expected


def test_short_input_is_not_truncated():
    texts = ["a", "b", "c"]

    assert truncate_messages(texts, max_length=100) == texts


@pytest.mark.parametrize("count, kept", [(10, 6), (7, 5), (5, 3)])
def test_long_input_keeps_most_recent_share(count, kept):
    texts = [f"{i:03d}" + "x" * 1000 for i in range(count)]

    result = truncate_messages(texts, max_length=1000)

    assert result == texts[-kept:]


def test_analysis_prompt_lists_messages_in_order():
    prompt = build_analysis_prompt(["первое", "второе"], "alice", None)

    assert "@alice" in prompt
    assert prompt.index("первое") < prompt.index("второе")
    for label in ("Стиль:", "Темы:", "Активность:", "Тональность:", "Особенности:"):
        assert label in prompt


def test_digest_prompt_mentions_period_and_sections():
    prompt = build_digest_prompt(["привет"], "вчера")

    assert "вчера" in prompt
    assert "Summary:" in prompt
    assert "Action items:" in prompt
    assert "Context:" in prompt
    assert prompt.rstrip().endswith("привет")
