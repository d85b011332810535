import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from sillydebates.database.models import Debate, DebateStatus, Entry
from sillydebates.errors import InvalidState, NotFound, ValidationError
from sillydebates.knowledge_base import get_active_debate
from sillydebates.services.ai import AIService

logger = logging.getLogger(__name__)


class EntryService:
    """Validates, moderates and stores user submissions for a debate."""

    def __init__(self, session_factory: async_sessionmaker, ai: AIService, max_length: int = 280):
        self.session_factory = session_factory
        self.ai = ai
        self.max_length = max_length

    def clean_content(self, content) -> str:
        if not isinstance(content, str):
            raise ValidationError("Entry content is required")
        content = content.strip()
        if not content:
            raise ValidationError("Entry content cannot be empty")
        if len(content) > self.max_length:
            raise ValidationError(
                f"Entry content must be {self.max_length} characters or less"
            )
        return content

    async def _resolve_debate(self, debate_id: int = None) -> Debate:
        async with self.session_factory() as session:
            if debate_id is None:
                debate = await get_active_debate(session)
                if debate is None:
                    raise NotFound("No active debate found")
                return debate
            debate = await session.scalar(select(Debate).where(Debate.id == debate_id))
        if debate is None:
            raise NotFound("Debate not found")
        if debate.status != DebateStatus.ACTIVE:
            raise InvalidState("This debate is no longer accepting entries")
        return debate

    async def submit_entry(self, user_id: int, content, debate_id: int = None) -> Entry:
        content = self.clean_content(content)
        debate = await self._resolve_debate(debate_id)

        moderation = await self.ai.moderate(content, debate.topic)
        if not moderation.approved:
            logger.info(f"Entry from user {user_id} rejected by moderation: {moderation.reason}")
            raise ValidationError(
                "Entry was not approved by moderation",
                extra={"reason": moderation.reason},
            )

        async with self.session_factory() as session:
            async with session.begin():
                # The debate may have closed while moderation ran.
                current = await session.scalar(
                    select(Debate).where(Debate.id == debate.id).with_for_update(read=True)
                )
                if current.status != DebateStatus.ACTIVE:
                    raise InvalidState("This debate is no longer accepting entries")
                entry = Entry(
                    content=content,
                    debate_id=debate.id,
                    user_id=user_id,
                    approved=True,
                )
                session.add(entry)
            await session.refresh(entry, attribute_names=["user"])

        logger.info(f"Entry {entry.id} submitted by user {user_id} for debate {debate.id}")
        return entry
