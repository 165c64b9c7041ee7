"""
Session message models.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """Who produced a message."""

    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class SessionState(str, Enum):
    """Session lifecycle."""

    OPEN = "open"  # held by a caller, accepts messages
    COMMITTED = "committed"  # flushed to the node store, immutable


class Message(BaseModel):
    """One turn of a conversation."""

    role: MessageRole
    text: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    contexts_used: list[str] = Field(
        default_factory=list, description="Pathways consulted while producing this message"
    )


class SessionInfo(BaseModel):
    """Listing entry for a stored session."""

    session_id: str
    pathway: str
    message_count: int
    created_at: datetime
    updated_at: datetime
