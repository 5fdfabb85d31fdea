"""Wire models for the chat relay function."""

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    """One entry of the context window sent to the relay."""

    role: str = Field(..., description="'user', 'assistant' or 'system'")
    content: str


class RelayRequest(BaseModel):
    """Body of a relay call."""

    messages: list[ChatTurn] = Field(..., min_length=1)
    model: str | None = Field(None, description="Upstream model, relay default when omitted")


class RelayResponse(BaseModel):
    """Successful relay reply. Empty content means nothing to display."""

    content: str = ""
    error: str | None = None
