"""Shared Pydantic models for chatrelay."""

from chatmodels.conversation import Conversation, Message, Session
from chatmodels.relay import ChatTurn, RelayRequest, RelayResponse

__all__ = [
    "Conversation",
    "Message",
    "Session",
    # Relay wire models
    "ChatTurn",
    "RelayRequest",
    "RelayResponse",
]
