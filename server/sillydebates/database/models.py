import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DebateStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class User(Base):
    __tablename__ = "user"

    id = Column(Integer, primary_key=True)
    auth_id = Column(String, unique=True, nullable=False)
    name = Column(String)
    wins_count = Column(Integer, nullable=False, default=0)

    entries = relationship("Entry", back_populates="user")


class Debate(Base):
    __tablename__ = "debate"

    id = Column(Integer, primary_key=True)
    topic = Column(String, nullable=False)
    day_number = Column(Integer, unique=True, nullable=False)
    status = Column(
        Enum(DebateStatus, name="debate_status"),
        nullable=False,
        default=DebateStatus.ACTIVE,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    winning_entry_id = Column(
        Integer,
        ForeignKey("entry.id", use_alter=True, name="debate_winning_entry_id_fkey"),
        nullable=True,
    )
    winner_commentary = Column(Text, nullable=True)

    entries = relationship(
        "Entry", back_populates="debate", foreign_keys="Entry.debate_id"
    )
    winning_entry = relationship("Entry", foreign_keys=[winning_entry_id], post_update=True)


class Entry(Base):
    __tablename__ = "entry"

    id = Column(Integer, primary_key=True)
    content = Column(String(280), nullable=False)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    debate_id = Column(Integer, ForeignKey("debate.id"), nullable=False, index=True)
    approved = Column(Boolean, nullable=False, default=True)
    # Cache of live Vote rows; only the voting ledger writes it.
    vote_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="entries")
    debate = relationship("Debate", back_populates="entries", foreign_keys=[debate_id])
    votes = relationship("Vote", back_populates="entry")


class Vote(Base):
    __tablename__ = "vote"
    __table_args__ = (
        UniqueConstraint("entry_id", "user_id", name="uq_vote_entry_user"),
        UniqueConstraint("debate_id", "user_id", name="uq_vote_debate_user"),
    )

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey("entry.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    # Copied from the entry so one-vote-per-debate is a storage constraint too.
    debate_id = Column(Integer, ForeignKey("debate.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    entry = relationship("Entry", back_populates="votes")
