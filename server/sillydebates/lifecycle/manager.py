"""Debate lifecycle: ACTIVE --close--> CLOSED, one new debate per day.

Closing happens in two database phases with the AI commentary call between
them, so no transaction stays open across a slow collaborator:

1. snapshot the leading entry (read-only);
2. ask for commentary on that entry (best-effort, bounded by a timeout);
3. in one transaction, lock the debate row, re-select the winner, credit the
   winner's user and mark the debate CLOSED with winner and commentary.

Commentary written for an entry that is no longer leading at step 3 is
dropped. Archival to the knowledge base runs after the commit and can never
undo the close.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from sillydebates.database.models import Debate, DebateStatus, Entry, User
from sillydebates.errors import Conflict, LimitExceeded, NotFound
from sillydebates.knowledge_base import (
    count_entries,
    count_votes,
    display_name,
    entry_view,
    get_active_debate,
    get_next_day_number,
    get_previous_topics,
    ranked_entries,
    winner_view,
)
from sillydebates.services.ai import AIService
from sillydebates.services.archive import ArchivedEntry, DebateArchive, SpacesArchive

logger = logging.getLogger(__name__)


@dataclass
class WinnerDetail:
    entry_id: int
    content: str
    user_id: int
    user_name: str
    votes: int


@dataclass
class ClosedDebateSummary:
    debate_id: int
    topic: str
    day_number: int
    closed_at: datetime
    total_entries: int
    total_votes: int
    winner: Optional[WinnerDetail]
    commentary: Optional[str]
    archived: bool = False
    top_entries: list = field(default_factory=list)


def _archived(entry: Entry) -> ArchivedEntry:
    return ArchivedEntry(
        user_name=display_name(entry.user), entry=entry.content, votes=entry.vote_count
    )


class DebateLifecycleManager:
    def __init__(
        self,
        session_factory: async_sessionmaker,
        ai: AIService,
        archive: SpacesArchive,
        challenge_days: int = 30,
        archive_timeout: float = 30.0,
    ):
        self.session_factory = session_factory
        self.ai = ai
        self.archive = archive
        self.challenge_days = challenge_days
        self.archive_timeout = archive_timeout

    async def open_new_debate(self) -> Debate:
        async with self.session_factory() as session:
            active = await get_active_debate(session)
            if active is not None:
                raise Conflict(
                    "An active debate already exists",
                    extra={"debate": {"id": active.id, "topic": active.topic, "day_number": active.day_number}},
                )
            previous_topics = await get_previous_topics(session)
            day_number = await get_next_day_number(session)

        if self.challenge_days and day_number > self.challenge_days:
            raise LimitExceeded(f"The {self.challenge_days}-day debate challenge has ended!")

        topic = await self.ai.generate_topic(previous_topics)

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    # Re-check inside the creating transaction; the unique day
                    # number rejects a racing opener that passed the same check.
                    if await get_active_debate(session, for_update=True) is not None:
                        raise Conflict("An active debate already exists")
                    if await get_next_day_number(session) != day_number:
                        raise Conflict("Another debate was opened concurrently")
                    debate = Debate(topic=topic, day_number=day_number, status=DebateStatus.ACTIVE)
                    session.add(debate)
        except IntegrityError:
            raise Conflict("Another debate was opened concurrently")

        logger.info(f"Opened debate {debate.id} for day {day_number}: {topic}")
        return debate

    async def _draft_commentary(self, debate_id: int) -> tuple[Optional[int], Optional[str]]:
        """Commentary for the entry currently leading, or ``(None, None)``."""
        async with self.session_factory() as session:
            debate = await session.scalar(select(Debate).where(Debate.id == debate_id))
            leaders = await ranked_entries(session, debate_id, limit=1)
        if not leaders:
            return None, None
        leader = leaders[0]
        try:
            commentary = await self.ai.generate_commentary(
                debate.topic, leader.content, display_name(leader.user), leader.vote_count
            )
        except Exception as e:
            logger.error(f"Failed to generate winner commentary for debate {debate_id}: {e}")
            return leader.id, None
        return leader.id, commentary

    async def close_active_debate(self) -> ClosedDebateSummary:
        async with self.session_factory() as session:
            active = await get_active_debate(session)
        if active is None:
            raise NotFound("No active debate to close")

        drafted_for, commentary = await self._draft_commentary(active.id)

        async with self.session_factory() as session:
            async with session.begin():
                debate = await session.scalar(
                    select(Debate).where(Debate.id == active.id).with_for_update()
                )
                if debate.status != DebateStatus.ACTIVE:
                    raise NotFound("No active debate to close")

                leaders = await ranked_entries(session, debate.id, limit=1)
                winner = leaders[0] if leaders else None
                if winner is not None and winner.id != drafted_for:
                    logger.warning(
                        f"Leader of debate {debate.id} changed while commentary was generated, dropping commentary"
                    )
                    commentary = None
                if winner is None:
                    commentary = None

                if winner is not None:
                    await session.execute(
                        update(User)
                        .where(User.id == winner.user_id)
                        .values(wins_count=User.wins_count + 1)
                        .execution_options(synchronize_session=False)
                    )

                debate.status = DebateStatus.CLOSED
                debate.closed_at = datetime.now(timezone.utc)
                debate.winning_entry_id = winner.id if winner else None
                debate.winner_commentary = commentary

            top_entries = await ranked_entries(session, debate.id, limit=5)
            summary = ClosedDebateSummary(
                debate_id=debate.id,
                topic=debate.topic,
                day_number=debate.day_number,
                closed_at=debate.closed_at,
                total_entries=await count_entries(session, debate.id),
                total_votes=await count_votes(session, debate.id),
                winner=(
                    WinnerDetail(
                        entry_id=winner.id,
                        content=winner.content,
                        user_id=winner.user_id,
                        user_name=display_name(winner.user),
                        votes=winner.vote_count,
                    )
                    if winner
                    else None
                ),
                commentary=commentary,
                top_entries=[entry_view(e) for e in top_entries],
            )

        logger.info(
            f"Closed debate {summary.debate_id} (day {summary.day_number}), winner entry "
            f"{summary.winner.entry_id if summary.winner else None}"
        )
        summary.archived = await self._export(summary, top_entries)
        return summary

    async def _export(self, summary: ClosedDebateSummary, top_entries: list[Entry]) -> bool:
        archive = DebateArchive(
            id=summary.debate_id,
            day_number=summary.day_number,
            date=summary.closed_at.date().isoformat(),
            topic=summary.topic,
            total_entries=summary.total_entries,
            total_votes=summary.total_votes,
            winner=(
                ArchivedEntry(
                    user_name=summary.winner.user_name,
                    entry=summary.winner.content,
                    votes=summary.winner.votes,
                )
                if summary.winner
                else None
            ),
            runner_up=_archived(top_entries[1]) if len(top_entries) > 1 else None,
            commentary=summary.commentary,
            top_entries=[_archived(e) for e in top_entries],
        )
        try:
            return await asyncio.wait_for(self.archive.export(archive), timeout=self.archive_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Knowledge base export of day {summary.day_number} timed out (non-fatal)")
        except Exception as e:
            logger.error(
                f"Failed to sync day {summary.day_number} to knowledge base (non-fatal): {type(e).__name__} - {e}"
            )
        return False

    async def preview_close(self) -> dict:
        async with self.session_factory() as session:
            active = await get_active_debate(session)
            if active is None:
                return {"has_active_debate": False, "message": "No active debate to close"}
            top_entries = await ranked_entries(session, active.id, limit=5)
            return {
                "has_active_debate": True,
                "debate": {
                    "id": active.id,
                    "topic": active.topic,
                    "day_number": active.day_number,
                    "created_at": active.created_at,
                    "total_entries": await count_entries(session, active.id),
                    "total_votes": await count_votes(session, active.id),
                    "top_entries": [entry_view(e) for e in top_entries],
                    "potential_winner": winner_view(top_entries[0] if top_entries else None),
                },
            }

    async def debate_status(self) -> dict:
        async with self.session_factory() as session:
            active = await get_active_debate(session)
            total = await session.scalar(select(func.count(Debate.id)))
            return {
                "has_active_debate": active is not None,
                "active_debate": (
                    {
                        "id": active.id,
                        "topic": active.topic,
                        "day_number": active.day_number,
                        "created_at": active.created_at,
                        "entries_count": await count_entries(session, active.id),
                    }
                    if active
                    else None
                ),
                "total_debates": total or 0,
                "next_day_number": await get_next_day_number(session),
            }
