"""API-specific request and response models."""

from pydantic import BaseModel, Field

from chatmodels import Conversation, Message


class OpenViewResponse(BaseModel):
    """Response model for a freshly mounted chat view."""

    view_id: str
    conversation: Conversation
    messages: list[Message] = Field(default_factory=list)


class SendMessageRequest(BaseModel):
    """Request model for sending a message."""

    content: str = Field(..., description="User message")


class SendMessageResponse(BaseModel):
    """Response model for a send. Errors arrive as notice events."""

    sent: bool
    message: Message | None = None
