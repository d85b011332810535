"""
tests/conftest.py - Shared Test Fixtures
=========================================

Each test gets its own SQLite file opened through aiosqlite. The pool holds a
single connection, so concurrent transactions queue behind each other much as
row locks serialize them on PostgreSQL, while coroutines still interleave at
every await.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from sillydebates.database.database import create_all_tables, create_session_factory
from sillydebates.database.models import Debate, DebateStatus, Entry, User, Vote
from sillydebates.lifecycle.manager import DebateLifecycleManager
from sillydebates.services.ai import AIService, ModerationResult
from sillydebates.services.archive import SpacesArchive
from sillydebates.voting.entries import EntryService
from sillydebates.voting.ledger import VotingLedger

BASE_TIME = datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'debates.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
    )
    await create_all_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def ai():
    """AIService stand-in with cheerful defaults."""
    fake = AsyncMock(spec=AIService)
    fake.generate_topic.return_value = "What's the best pizza topping?"
    fake.moderate.return_value = ModerationResult(approved=True, reason="Looks fun")
    fake.generate_commentary.return_value = "A landslide victory for pineapple!"
    fake.chat.return_value = "Day 1 asked about pizza toppings."
    return fake


@pytest.fixture
def archive():
    fake = AsyncMock(spec=SpacesArchive)
    fake.export.return_value = True
    return fake


@pytest.fixture
def ledger(session_factory):
    return VotingLedger(session_factory)


@pytest.fixture
def entries(session_factory, ai):
    return EntryService(session_factory, ai, max_length=280)


@pytest.fixture
def lifecycle(session_factory, ai, archive):
    return DebateLifecycleManager(
        session_factory, ai, archive, challenge_days=30, archive_timeout=1.0
    )


class Seed:
    """Direct inserts for arranging test state; each call commits and
    releases its connection."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, obj):
        async with self.session_factory() as session:
            session.add(obj)
            await session.commit()
            return obj.id

    async def user(self, name: str = "Alice", auth_id: str = None) -> int:
        return await self._add(User(auth_id=auth_id or f"auth0|{name.lower()}", name=name))

    async def debate(
        self,
        day_number: int = 1,
        status: DebateStatus = DebateStatus.ACTIVE,
        topic: str = None,
    ) -> int:
        return await self._add(
            Debate(
                topic=topic or f"Topic for day {day_number}",
                day_number=day_number,
                status=status,
                created_at=BASE_TIME + timedelta(days=day_number),
                closed_at=BASE_TIME + timedelta(days=day_number, hours=23)
                if status == DebateStatus.CLOSED
                else None,
            )
        )

    async def entry(
        self,
        debate_id: int,
        user_id: int,
        content: str = "Pineapple",
        minutes: int = 0,
    ) -> int:
        return await self._add(
            Entry(
                debate_id=debate_id,
                user_id=user_id,
                content=content,
                approved=True,
                created_at=BASE_TIME + timedelta(minutes=minutes),
            )
        )

    async def get(self, model, item_id):
        async with self.session_factory() as session:
            return await session.get(model, item_id)

    async def vote_count(self, entry_id: int) -> int:
        async with self.session_factory() as session:
            entry = await session.get(Entry, entry_id)
            return entry.vote_count

    async def live_votes(self, entry_id: int) -> int:
        async with self.session_factory() as session:
            return await session.scalar(
                select(func.count(Vote.id)).where(Vote.entry_id == entry_id)
            )

    async def votes_by_user(self, debate_id: int, user_id: int) -> list[int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Vote.entry_id)
                .join(Entry, Entry.id == Vote.entry_id)
                .where(Entry.debate_id == debate_id, Vote.user_id == user_id)
            )
            return list(result.scalars().all())


@pytest.fixture
def seed(session_factory):
    return Seed(session_factory)
