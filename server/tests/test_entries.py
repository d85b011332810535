"""
tests/test_entries.py - Entry submission and moderation
========================================================
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from sillydebates.database.models import DebateStatus, Entry
from sillydebates.errors import DependencyFailure, InvalidState, NotFound, ValidationError
from sillydebates.services.ai import AIService, ModerationResult


@pytest.mark.asyncio
async def test_submit_entry_to_active_debate(entries, seed, ai):
    user_id = await seed.user("Alice")
    debate_id = await seed.debate(topic="What's the best pizza topping?")

    entry = await entries.submit_entry(user_id, "  Pineapple, obviously  ")

    assert entry.content == "Pineapple, obviously"
    assert entry.debate_id == debate_id
    assert entry.approved is True
    assert entry.vote_count == 0
    assert entry.user.name == "Alice"
    ai.moderate.assert_awaited_once_with("Pineapple, obviously", "What's the best pizza topping?")


@pytest.mark.asyncio
async def test_user_may_submit_several_entries(entries, seed):
    user_id = await seed.user("Alice")
    await seed.debate()

    first = await entries.submit_entry(user_id, "Pineapple")
    second = await entries.submit_entry(user_id, "Anchovies")

    assert first.id != second.id


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "     ", None, 42])
async def test_blank_or_missing_content_is_rejected(entries, seed, ai, content):
    user_id = await seed.user("Alice")
    await seed.debate()

    with pytest.raises(ValidationError):
        await entries.submit_entry(user_id, content)
    ai.moderate.assert_not_awaited()


@pytest.mark.asyncio
async def test_length_limit(entries, seed):
    user_id = await seed.user("Alice")
    await seed.debate()

    entry = await entries.submit_entry(user_id, "x" * 280)
    assert len(entry.content) == 280

    with pytest.raises(ValidationError):
        await entries.submit_entry(user_id, "x" * 281)


@pytest.mark.asyncio
async def test_no_active_debate(entries, seed):
    user_id = await seed.user("Alice")
    await seed.debate(status=DebateStatus.CLOSED)

    with pytest.raises(NotFound):
        await entries.submit_entry(user_id, "Pineapple")


@pytest.mark.asyncio
async def test_explicit_debate_must_be_active(entries, seed):
    user_id = await seed.user("Alice")
    closed_id = await seed.debate(day_number=1, status=DebateStatus.CLOSED)
    active_id = await seed.debate(day_number=2)

    with pytest.raises(InvalidState):
        await entries.submit_entry(user_id, "Pineapple", debate_id=closed_id)
    with pytest.raises(NotFound):
        await entries.submit_entry(user_id, "Pineapple", debate_id=9999)

    entry = await entries.submit_entry(user_id, "Pineapple", debate_id=active_id)
    assert entry.debate_id == active_id


@pytest.mark.asyncio
async def test_moderation_rejection_stores_nothing(entries, seed, ai, session_factory):
    user_id = await seed.user("Alice")
    await seed.debate()
    ai.moderate.return_value = ModerationResult(approved=False, reason="Off topic")

    with pytest.raises(ValidationError) as exc_info:
        await entries.submit_entry(user_id, "Buy my crypto")

    assert exc_info.value.extra == {"reason": "Off topic"}
    async with session_factory() as session:
        assert await session.get(Entry, 1) is None


@pytest.fixture
def mock_mode_ai():
    return AIService(api_key="", model_name="gemini-test", timeout=1.0)


@pytest.mark.asyncio
async def test_moderation_fails_open_on_error(mock_mode_ai):
    mock_mode_ai._generate = AsyncMock(side_effect=DependencyFailure("AI moderation timed out"))

    result = await mock_mode_ai.moderate("Pineapple", "Best topping?")

    assert result.approved is True


@pytest.mark.asyncio
async def test_moderation_fails_open_on_garbage(mock_mode_ai):
    mock_mode_ai._generate = AsyncMock(return_value="I think it's fine?")

    result = await mock_mode_ai.moderate("Pineapple", "Best topping?")

    assert result.approved is True


@pytest.mark.asyncio
async def test_moderation_parses_rejection(mock_mode_ai):
    mock_mode_ai._generate = AsyncMock(
        return_value="Sure:\n" + json.dumps({"approved": False, "reason": "Profanity"})
    )

    result = await mock_mode_ai.moderate("...", "Best topping?")

    assert result == ModerationResult(approved=False, reason="Profanity")


@pytest.mark.asyncio
async def test_mock_mode_approves(mock_mode_ai):
    result = await mock_mode_ai.moderate("Pineapple", "Best topping?")
    assert result.approved is True
