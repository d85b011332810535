"""
tests/test_lifecycle.py - Opening and closing daily debates
============================================================
"""

from __future__ import annotations

import asyncio

import pytest

from sillydebates.database.models import Debate, DebateStatus, User
from sillydebates.errors import Conflict, DependencyFailure, InvalidState, LimitExceeded, NotFound
from sillydebates.lifecycle.manager import DebateLifecycleManager


@pytest.mark.asyncio
async def test_open_first_debate(lifecycle, ai, seed):
    debate = await lifecycle.open_new_debate()

    assert debate.day_number == 1
    assert debate.status == DebateStatus.ACTIVE
    assert debate.topic == "What's the best pizza topping?"
    ai.generate_topic.assert_awaited_once_with([])
    stored = await seed.get(Debate, debate.id)
    assert stored.closed_at is None
    assert stored.winning_entry_id is None


@pytest.mark.asyncio
async def test_open_continues_day_numbers_and_avoids_old_topics(lifecycle, ai, seed):
    for day in (1, 2, 3):
        await seed.debate(day_number=day, status=DebateStatus.CLOSED, topic=f"Old topic {day}")

    debate = await lifecycle.open_new_debate()

    assert debate.day_number == 4
    ai.generate_topic.assert_awaited_once_with(["Old topic 3", "Old topic 2", "Old topic 1"])


@pytest.mark.asyncio
async def test_open_refuses_second_active_debate(lifecycle, ai, seed):
    existing = await seed.debate(day_number=1)

    with pytest.raises(Conflict) as exc_info:
        await lifecycle.open_new_debate()

    assert exc_info.value.extra["debate"]["id"] == existing
    ai.generate_topic.assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_opens_create_one_debate(lifecycle, session_factory):
    results = await asyncio.gather(
        lifecycle.open_new_debate(),
        lifecycle.open_new_debate(),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, Debate)) == 1
    assert sum(1 for r in results if isinstance(r, Conflict)) == 1
    status = await lifecycle.debate_status()
    assert status["total_debates"] == 1


@pytest.mark.asyncio
async def test_open_respects_challenge_length(session_factory, ai, archive, seed):
    manager = DebateLifecycleManager(session_factory, ai, archive, challenge_days=3)
    for day in (1, 2, 3):
        await seed.debate(day_number=day, status=DebateStatus.CLOSED)

    with pytest.raises(LimitExceeded):
        await manager.open_new_debate()
    ai.generate_topic.assert_not_awaited()


@pytest.mark.asyncio
async def test_close_without_active_debate(lifecycle, seed):
    await seed.debate(status=DebateStatus.CLOSED)
    with pytest.raises(NotFound):
        await lifecycle.close_active_debate()


@pytest.mark.asyncio
async def test_close_with_no_entries(lifecycle, ai, archive, seed):
    author = await seed.user("Alice")
    debate_id = await seed.debate()

    summary = await lifecycle.close_active_debate()

    assert summary.debate_id == debate_id
    assert summary.winner is None
    assert summary.commentary is None
    assert summary.total_entries == 0
    assert summary.total_votes == 0
    ai.generate_commentary.assert_not_awaited()
    debate = await seed.get(Debate, debate_id)
    assert debate.status == DebateStatus.CLOSED
    assert debate.closed_at is not None
    assert debate.winning_entry_id is None
    assert (await seed.get(User, author)).wins_count == 0
    exported = archive.export.await_args.args[0]
    assert exported.winner is None
    assert exported.runner_up is None


async def _vote_n(ledger, seed, entry_id, n, prefix):
    for i in range(n):
        await ledger.cast_vote(await seed.user(f"{prefix}{i}"), entry_id)


@pytest.mark.asyncio
async def test_close_picks_most_votes_and_credits_winner(lifecycle, ledger, ai, archive, seed):
    alice = await seed.user("Alice")
    bob = await seed.user("Bob")
    debate_id = await seed.debate(topic="Best topping?")
    first = await seed.entry(debate_id, alice, "Pineapple", minutes=0)
    second = await seed.entry(debate_id, bob, "Anchovies", minutes=5)
    await _vote_n(ledger, seed, first, 1, "a")
    await _vote_n(ledger, seed, second, 2, "b")

    summary = await lifecycle.close_active_debate()

    assert summary.winner.entry_id == second
    assert summary.winner.user_name == "Bob"
    assert summary.winner.votes == 2
    assert summary.total_entries == 2
    assert summary.total_votes == 3
    assert summary.commentary == "A landslide victory for pineapple!"
    assert summary.archived is True
    ai.generate_commentary.assert_awaited_once_with("Best topping?", "Anchovies", "Bob", 2)
    assert (await seed.get(User, bob)).wins_count == 1
    assert (await seed.get(User, alice)).wins_count == 0

    debate = await seed.get(Debate, debate_id)
    assert debate.status == DebateStatus.CLOSED
    assert debate.winning_entry_id == second
    assert debate.winner_commentary == "A landslide victory for pineapple!"

    exported = archive.export.await_args.args[0]
    assert exported.day_number == 1
    assert exported.winner.entry == "Anchovies"
    assert exported.runner_up.entry == "Pineapple"
    assert [e.votes for e in exported.top_entries] == [2, 1]


@pytest.mark.asyncio
async def test_tie_goes_to_earliest_entry(lifecycle, ledger, seed):
    alice = await seed.user("Alice")
    bob = await seed.user("Bob")
    debate_id = await seed.debate()
    late = await seed.entry(debate_id, bob, "Late", minutes=30)
    early = await seed.entry(debate_id, alice, "Early", minutes=10)
    await _vote_n(ledger, seed, late, 3, "l")
    await _vote_n(ledger, seed, early, 3, "e")

    summary = await lifecycle.close_active_debate()

    assert summary.winner.entry_id == early
    assert (await seed.get(User, alice)).wins_count == 1


@pytest.mark.asyncio
async def test_commentary_failure_does_not_block_close(lifecycle, ledger, ai, seed):
    alice = await seed.user("Alice")
    debate_id = await seed.debate()
    entry_id = await seed.entry(debate_id, alice)
    await _vote_n(ledger, seed, entry_id, 1, "v")
    ai.generate_commentary.side_effect = DependencyFailure("AI commentary timed out after 20s")

    summary = await lifecycle.close_active_debate()

    assert summary.commentary is None
    assert summary.winner.entry_id == entry_id
    debate = await seed.get(Debate, debate_id)
    assert debate.status == DebateStatus.CLOSED
    assert debate.winning_entry_id == entry_id
    assert debate.winner_commentary is None
    assert (await seed.get(User, alice)).wins_count == 1


@pytest.mark.asyncio
async def test_unexpected_commentary_error_does_not_block_close(lifecycle, ledger, ai, seed):
    alice = await seed.user("Alice")
    debate_id = await seed.debate()
    entry_id = await seed.entry(debate_id, alice)
    await _vote_n(ledger, seed, entry_id, 1, "v")
    ai.generate_commentary.side_effect = RuntimeError("connection reset")

    summary = await lifecycle.close_active_debate()

    assert summary.commentary is None
    assert summary.winner.entry_id == entry_id
    debate = await seed.get(Debate, debate_id)
    assert debate.status == DebateStatus.CLOSED
    assert debate.winning_entry_id == entry_id
    assert (await seed.get(User, alice)).wins_count == 1


@pytest.mark.asyncio
async def test_archive_failure_does_not_undo_close(lifecycle, archive, seed):
    alice = await seed.user("Alice")
    debate_id = await seed.debate()
    await seed.entry(debate_id, alice)
    archive.export.side_effect = RuntimeError("Spaces is down")

    summary = await lifecycle.close_active_debate()

    assert summary.archived is False
    assert (await seed.get(Debate, debate_id)).status == DebateStatus.CLOSED


@pytest.mark.asyncio
async def test_commentary_dropped_when_leader_changes(lifecycle, ledger, ai, seed):
    alice = await seed.user("Alice")
    bob = await seed.user("Bob")
    debate_id = await seed.debate()
    leading = await seed.entry(debate_id, alice, "Pineapple", minutes=0)
    trailing = await seed.entry(debate_id, bob, "Anchovies", minutes=1)
    await _vote_n(ledger, seed, leading, 1, "a")

    async def late_surge(*args):
        await _vote_n(ledger, seed, trailing, 2, "late")
        return "Pineapple takes it!"

    ai.generate_commentary.side_effect = late_surge

    summary = await lifecycle.close_active_debate()

    assert summary.winner.entry_id == trailing
    assert summary.commentary is None
    assert (await seed.get(User, bob)).wins_count == 1
    assert (await seed.get(User, alice)).wins_count == 0


@pytest.mark.asyncio
async def test_close_happens_once(lifecycle, ledger, seed):
    alice = await seed.user("Alice")
    debate_id = await seed.debate()
    entry_id = await seed.entry(debate_id, alice)

    await lifecycle.close_active_debate()
    with pytest.raises(NotFound):
        await lifecycle.close_active_debate()
    with pytest.raises(InvalidState):
        await ledger.cast_vote(await seed.user("Late"), entry_id)
    assert (await seed.get(User, alice)).wins_count == 1


@pytest.mark.asyncio
async def test_full_day_cycle(lifecycle, ai, seed):
    await lifecycle.open_new_debate()
    await lifecycle.close_active_debate()
    ai.generate_topic.return_value = "Is cereal a soup?"

    debate = await lifecycle.open_new_debate()

    assert debate.day_number == 2
    ai.generate_topic.assert_awaited_with(["What's the best pizza topping?"])


@pytest.mark.asyncio
async def test_preview_close(lifecycle, ledger, seed):
    assert (await lifecycle.preview_close())["has_active_debate"] is False

    alice = await seed.user("Alice")
    debate_id = await seed.debate()
    entry_id = await seed.entry(debate_id, alice, "Pineapple")
    await _vote_n(ledger, seed, entry_id, 2, "v")

    preview = await lifecycle.preview_close()

    assert preview["has_active_debate"] is True
    assert preview["debate"]["total_votes"] == 2
    assert preview["debate"]["potential_winner"]["entry"] == "Pineapple"
    assert (await seed.get(Debate, debate_id)).status == DebateStatus.ACTIVE


@pytest.mark.asyncio
async def test_debate_status(lifecycle, seed):
    await seed.debate(day_number=1, status=DebateStatus.CLOSED)
    await seed.debate(day_number=2)

    status = await lifecycle.debate_status()

    assert status["has_active_debate"] is True
    assert status["active_debate"]["day_number"] == 2
    assert status["total_debates"] == 2
    assert status["next_day_number"] == 3
