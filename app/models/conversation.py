"""Conversation and Message SQLModel definitions.

Models:
- Conversation: Chat conversation owned by exactly one user
- Message: Individual chat turn inside a conversation
"""
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DDL, event
from sqlmodel import Field, Relationship, SQLModel

MAX_CONVERSATIONS_PER_USER = 3
MESSAGE_ROLES = ("user", "assistant")


class ConversationLimitExceeded(ValueError):
    """Raised by the store when a user already owns the maximum number of conversations."""

    def __init__(self, limit: int = MAX_CONVERSATIONS_PER_USER):
        self.limit = limit
        super().__init__(
            f"Conversation limit reached: maximum {limit} conversations per user"
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(SQLModel, table=True):
    """
    Conversation entity.

    Ownership: Each conversation belongs to exactly one user via user_id,
    the identity provider's subject id. All queries MUST filter by user_id.
    """
    __tablename__ = "conversations"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True, nullable=False, max_length=255)
    title: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow, index=True)

    messages: List["Message"] = Relationship(
        back_populates="conversation",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Message(SQLModel, table=True):
    """
    Message entity for conversations.

    Role: "user" or "assistant". Immutable once stored.
    """
    __tablename__ = "messages"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    conversation_id: uuid.UUID = Field(
        foreign_key="conversations.id", ondelete="CASCADE", index=True, nullable=False
    )
    role: str = Field(max_length=20)
    content: str = Field()
    created_at: datetime = Field(default_factory=_utcnow)

    conversation: Optional[Conversation] = Relationship(back_populates="messages")


QUOTA_VIOLATION = "conversation_limit_exceeded"

# Quota enforced by a BEFORE INSERT trigger, atomic with the insert itself.
# SQLite serializes writers; Postgres takes a per-owner advisory lock first.
_SQLITE_QUOTA_TRIGGER = DDL(
    "CREATE TRIGGER IF NOT EXISTS conversations_quota "
    "BEFORE INSERT ON conversations "
    "WHEN (SELECT COUNT(*) FROM conversations WHERE user_id = NEW.user_id) "
    f">= {MAX_CONVERSATIONS_PER_USER} "
    f"BEGIN SELECT RAISE(ABORT, '{QUOTA_VIOLATION}'); END"
)

_POSTGRES_QUOTA_FUNCTION = DDL(
    "CREATE OR REPLACE FUNCTION enforce_conversation_quota() RETURNS trigger AS $$\n"
    "BEGIN\n"
    "  PERFORM pg_advisory_xact_lock(hashtext(NEW.user_id));\n"
    "  IF (SELECT COUNT(*) FROM conversations WHERE user_id = NEW.user_id) "
    f">= {MAX_CONVERSATIONS_PER_USER} THEN\n"
    f"    RAISE EXCEPTION '{QUOTA_VIOLATION}' USING ERRCODE = 'check_violation';\n"
    "  END IF;\n"
    "  RETURN NEW;\n"
    "END;\n"
    "$$ LANGUAGE plpgsql"
)

_POSTGRES_QUOTA_TRIGGER = DDL(
    "CREATE TRIGGER conversations_quota BEFORE INSERT ON conversations "
    "FOR EACH ROW EXECUTE FUNCTION enforce_conversation_quota()"
)

event.listen(Conversation.__table__, "after_create", _SQLITE_QUOTA_TRIGGER.execute_if(dialect="sqlite"))
event.listen(Conversation.__table__, "after_create", _POSTGRES_QUOTA_FUNCTION.execute_if(dialect="postgresql"))
event.listen(Conversation.__table__, "after_create", _POSTGRES_QUOTA_TRIGGER.execute_if(dialect="postgresql"))


def is_quota_violation(error: Exception) -> bool:
    """True when a database error was raised by the conversation quota trigger."""
    return QUOTA_VIOLATION in str(getattr(error, "orig", error))


class ConversationRead(SQLModel):
    """Public view of a conversation row."""
    id: uuid.UUID
    user_id: str
    title: str
    created_at: datetime
    updated_at: datetime


class MessageRead(SQLModel):
    """Public view of a message row, content already decrypted."""
    id: uuid.UUID
    conversation_id: uuid.UUID
    role: str
    content: str
    created_at: datetime
