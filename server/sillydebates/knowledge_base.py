"""Read-side queries over debates, entries and votes.

Used for topic seeding, the public debate pages, the leaderboard and the
chatbot's history context. Nothing here writes.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from sillydebates.database.models import Debate, DebateStatus, Entry, User, Vote

ANONYMOUS = "Anonymous"


def display_name(user: Optional[User]) -> str:
    return (user.name if user else None) or ANONYMOUS


def ranking_order():
    """Most votes first; on a tie the entry submitted first ranks higher."""
    return (Entry.vote_count.desc(), Entry.created_at.asc(), Entry.id.asc())


async def get_previous_topics(session: AsyncSession) -> list[str]:
    result = await session.execute(select(Debate.topic).order_by(Debate.day_number.desc()))
    return list(result.scalars().all())


async def get_next_day_number(session: AsyncSession) -> int:
    last = await session.scalar(select(func.max(Debate.day_number)))
    return (last or 0) + 1


async def get_active_debate(session: AsyncSession, for_update: bool = False) -> Optional[Debate]:
    stmt = select(Debate).where(Debate.status == DebateStatus.ACTIVE).order_by(Debate.id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def ranked_entries(
    session: AsyncSession, debate_id: int, limit: int = None
) -> list[Entry]:
    stmt = (
        select(Entry)
        .options(selectinload(Entry.user))
        .where(Entry.debate_id == debate_id, Entry.approved.is_(True))
        .order_by(*ranking_order())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_entries(session: AsyncSession, debate_id: int) -> int:
    return await session.scalar(
        select(func.count(Entry.id)).where(Entry.debate_id == debate_id)
    )


async def count_votes(session: AsyncSession, debate_id: int) -> int:
    """Live Vote rows in a debate, counted directly rather than summing the
    cached per-entry counters."""
    return await session.scalar(
        select(func.count(Vote.id)).where(Vote.debate_id == debate_id)
    )


def entry_view(entry: Entry) -> dict:
    return {
        "id": entry.id,
        "content": entry.content,
        "vote_count": entry.vote_count,
        "created_at": entry.created_at,
        "user": {"id": entry.user.id, "name": entry.user.name},
    }


async def get_today_debate(session: AsyncSession, user_id: int = None) -> Optional[dict]:
    debate = await get_active_debate(session)
    if debate is None:
        return None

    entries = await ranked_entries(session, debate.id)
    voted_entry_ids = set()
    if user_id is not None:
        result = await session.execute(
            select(Vote.entry_id).where(Vote.debate_id == debate.id, Vote.user_id == user_id)
        )
        voted_entry_ids = set(result.scalars().all())

    own_entries = [e for e in entries if user_id is not None and e.user_id == user_id]
    return {
        "id": debate.id,
        "topic": debate.topic,
        "day_number": debate.day_number,
        "status": debate.status.value,
        "created_at": debate.created_at,
        "entries": [
            {
                **entry_view(entry),
                "has_voted": entry.id in voted_entry_ids,
                "is_own_entry": user_id is not None and entry.user_id == user_id,
            }
            for entry in entries
        ],
        "user_has_submitted": bool(own_entries),
        "user_entry_id": own_entries[0].id if own_entries else None,
    }


def winner_view(entry: Optional[Entry]) -> Optional[dict]:
    if entry is None:
        return None
    return {
        "id": entry.id,
        "entry": entry.content,
        "user_name": display_name(entry.user),
        "votes": entry.vote_count,
    }


def _debate_summary(debate: Debate, total_entries: int, total_votes: int) -> dict:
    return {
        "id": debate.id,
        "day_number": debate.day_number,
        "topic": debate.topic,
        "status": debate.status.value,
        "created_at": debate.created_at,
        "closed_at": debate.closed_at,
        "total_entries": total_entries,
        "total_votes": total_votes,
        "winner": winner_view(debate.winning_entry),
        "commentary": debate.winner_commentary,
    }


def _with_winner():
    return selectinload(Debate.winning_entry).selectinload(Entry.user)


async def get_debate_detail(session: AsyncSession, debate_id: int) -> Optional[dict]:
    debate = await session.scalar(
        select(Debate).options(_with_winner()).where(Debate.id == debate_id)
    )
    if debate is None:
        return None
    summary = _debate_summary(
        debate,
        await count_entries(session, debate.id),
        await count_votes(session, debate.id),
    )
    summary["top_entries"] = [
        entry_view(e) for e in await ranked_entries(session, debate.id, limit=5)
    ]
    return summary


async def get_leaderboard(session: AsyncSession, limit: int = 10) -> list[dict]:
    result = await session.execute(
        select(User)
        .where(User.wins_count > 0)
        .order_by(User.wins_count.desc(), User.id.asc())
        .limit(limit)
    )
    return [
        {"id": user.id, "name": display_name(user), "wins": user.wins_count}
        for user in result.scalars().all()
    ]


async def get_debate_history(session: AsyncSession) -> dict:
    result = await session.execute(
        select(Debate).options(_with_winner()).order_by(Debate.day_number.desc())
    )
    debates = list(result.scalars().all())

    entry_counts = dict(
        (await session.execute(
            select(Entry.debate_id, func.count(Entry.id)).group_by(Entry.debate_id)
        )).all()
    )
    vote_counts = dict(
        (await session.execute(
            select(Vote.debate_id, func.count(Vote.id)).group_by(Vote.debate_id)
        )).all()
    )

    return {
        "debates": [
            _debate_summary(d, entry_counts.get(d.id, 0), vote_counts.get(d.id, 0))
            for d in debates
        ],
        "stats": {
            "total_debates": sum(1 for d in debates if d.status == DebateStatus.CLOSED),
            "total_entries": sum(entry_counts.values()),
            "total_votes": sum(vote_counts.values()),
            "top_winners": await get_leaderboard(session),
        },
    }


def build_context_string(history: dict) -> str:
    """Render :func:`get_debate_history` output as text for the chatbot."""
    stats = history["stats"]
    parts = [
        "## Overall Statistics",
        f"- Total debates completed: {stats['total_debates']}",
        f"- Total entries submitted: {stats['total_entries']}",
        f"- Total votes cast: {stats['total_votes']}",
    ]
    if stats["top_winners"]:
        parts.append("\n## Top Winners (Most Debate Wins)")
        for i, winner in enumerate(stats["top_winners"], start=1):
            parts.append(f"{i}. {winner['name']}: {winner['wins']} wins")

    if history["debates"]:
        parts.append("\n## Debate History")
        for d in history["debates"]:
            parts.append(f'\n### Day {d["day_number"]}: "{d["topic"]}"')
            parts.append(f"- Status: {d['status']}")
            parts.append(f"- Entries: {d['total_entries']}, Votes: {d['total_votes']}")
            if d["winner"]:
                w = d["winner"]
                parts.append(f'- Winner: {w["user_name"]} with "{w["entry"]}" ({w["votes"]} votes)')
            if d["commentary"]:
                parts.append(f'- AI Commentary: "{d["commentary"]}"')
    return "\n".join(parts)
