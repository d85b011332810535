"""Voting ledger: the only writer of Vote rows and Entry.vote_count.

Every mutation runs in one database transaction so that a vote row and the
counter cached on its entry never drift apart. The unique constraints on
``(entry_id, user_id)`` and ``(debate_id, user_id)`` close the window between
"no existing vote" and the insert; a concurrent duplicate surfaces as an
IntegrityError and is reported as a Conflict.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sillydebates.database.models import Debate, DebateStatus, Entry, Vote
from sillydebates.errors import Conflict, InvalidState, NotFound

logger = logging.getLogger(__name__)

ALREADY_VOTED = "You have already voted for this entry"
VOTE_CHANGED = "Your vote changed concurrently, try again"


def vote_conflict(error: IntegrityError) -> Conflict:
    """Conflict for a unique-constraint violation on Vote.

    Only the per-entry constraint means the same vote already exists; the
    per-debate one means another of the user's votes landed first.
    """
    detail = str(error.orig)
    if "uq_vote_entry_user" in detail or "vote.entry_id" in detail:
        return Conflict(ALREADY_VOTED)
    return Conflict(VOTE_CHANGED)


@dataclass
class VoteResult:
    entry_id: int
    vote_count: int
    has_voted: bool
    vote_id: Optional[int] = None
    previous_entry_id: Optional[int] = None

    @property
    def created(self) -> bool:
        """True for a first vote in the debate, False for a switch or retraction."""
        return self.has_voted and self.previous_entry_id is None


class VotingLedger:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def cast_vote(self, user_id: int, entry_id: int) -> VoteResult:
        """Vote for ``entry_id``, moving the user's vote away from any other
        entry of the same debate."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    entry = await self._load_open_entry(session, entry_id)

                    existing = await session.scalar(
                        select(Vote).where(
                            Vote.entry_id == entry_id, Vote.user_id == user_id
                        )
                    )
                    if existing is not None:
                        raise Conflict(ALREADY_VOTED)

                    previous = await session.scalar(
                        select(Vote)
                        .where(
                            Vote.debate_id == entry.debate_id,
                            Vote.user_id == user_id,
                        )
                        .with_for_update()
                    )
                    previous_entry_id = None
                    if previous is not None:
                        deleted = await session.execute(
                            delete(Vote)
                            .where(Vote.id == previous.id)
                            .execution_options(synchronize_session=False)
                        )
                        if deleted.rowcount != 1:
                            # Another request already moved this vote.
                            raise Conflict(VOTE_CHANGED)
                        session.expunge(previous)
                        await self._adjust_count(session, previous.entry_id, -1)
                        previous_entry_id = previous.entry_id

                    vote = Vote(
                        entry_id=entry_id,
                        user_id=user_id,
                        debate_id=entry.debate_id,
                    )
                    session.add(vote)
                    await session.flush()
                    vote_count = await self._adjust_count(session, entry_id, 1)
                    vote_id = vote.id
        except IntegrityError as e:
            logger.warning(
                f"Concurrent vote rejected for user {user_id} on entry {entry_id}: {e.orig}"
            )
            raise vote_conflict(e)

        if previous_entry_id is not None:
            logger.info(
                f"User {user_id} switched vote from entry {previous_entry_id} to {entry_id}"
            )
        else:
            logger.info(f"User {user_id} voted for entry {entry_id}")
        return VoteResult(
            entry_id=entry_id,
            vote_count=vote_count,
            has_voted=True,
            vote_id=vote_id,
            previous_entry_id=previous_entry_id,
        )

    async def retract_vote(self, user_id: int, entry_id: int) -> VoteResult:
        async with self.session_factory() as session:
            async with session.begin():
                await self._load_open_entry(session, entry_id)

                vote = await session.scalar(
                    select(Vote)
                    .where(Vote.entry_id == entry_id, Vote.user_id == user_id)
                    .with_for_update()
                )
                if vote is None:
                    raise NotFound("You have not voted for this entry")

                deleted = await session.execute(
                    delete(Vote)
                    .where(Vote.id == vote.id)
                    .execution_options(synchronize_session=False)
                )
                if deleted.rowcount != 1:
                    raise NotFound("You have not voted for this entry")
                session.expunge(vote)
                vote_count = await self._adjust_count(session, entry_id, -1)

        logger.info(f"User {user_id} removed vote from entry {entry_id}")
        return VoteResult(entry_id=entry_id, vote_count=vote_count, has_voted=False)

    async def _load_open_entry(self, session: AsyncSession, entry_id: int) -> Entry:
        entry = await session.scalar(select(Entry).where(Entry.id == entry_id))
        if entry is None:
            raise NotFound("Entry not found")

        # Shared lock on the debate row: closing waits for in-flight votes.
        debate = await session.scalar(
            select(Debate)
            .where(Debate.id == entry.debate_id)
            .with_for_update(read=True)
        )
        if debate is None or debate.status != DebateStatus.ACTIVE:
            raise InvalidState("This debate is no longer active")
        return entry

    async def _adjust_count(self, session: AsyncSession, entry_id: int, delta: int) -> int:
        result = await session.execute(
            update(Entry)
            .where(Entry.id == entry_id)
            .values(vote_count=Entry.vote_count + delta)
            .returning(Entry.vote_count)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one()
