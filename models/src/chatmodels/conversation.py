"""Conversation and message models."""

from datetime import datetime, timezone
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A single message in a conversation. Rows are never updated."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique message ID")
    conversation_id: str = Field(..., description="Parent conversation ID")
    user_id: str = Field(..., description="Author ID")
    role: Role = Field(..., description="Message role")
    content: str = Field(..., description="Message content")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")


class Conversation(BaseModel):
    """A conversation owned by one user."""

    id: str = Field(..., description="Unique conversation ID")
    user_id: str = Field(..., description="Owner ID")
    title: str | None = Field(None, description="Conversation title")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")


class Session(BaseModel):
    """Authenticated identity handed to a chat view."""

    user_id: str | None = Field(None, description="Current user, None when signed out")
