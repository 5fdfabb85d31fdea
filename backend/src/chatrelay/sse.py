"""Server-Sent Events support for chat views."""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncGenerator, TYPE_CHECKING

from fastapi import Request
from fastapi.responses import StreamingResponse

if TYPE_CHECKING:
    from chatrelay.services.views import ChatView, ViewRegistry

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """SSE event types."""

    CONNECTED = "connected"
    MESSAGE = "message"
    NOTICE = "notice"
    HEARTBEAT = "heartbeat"


@dataclass
class SSEEvent:
    """An SSE event to send to clients."""

    event: str
    data: dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])

    def encode(self) -> str:
        """Encode as SSE format."""
        event = self.event.value if isinstance(self.event, Enum) else self.event
        lines = [
            f"id: {self.id}",
            f"event: {event}",
            f"data: {json.dumps(self.data)}",
            "",  # Empty line to end the event
        ]
        return "\n".join(lines) + "\n"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def view_event_stream(
    view: "ChatView",
    registry: "ViewRegistry",
    request: Request,
    heartbeat_interval: int = 30,
) -> AsyncGenerator[str, None]:
    """Stream a view's rendered messages and notices.

    The view is torn down when the client goes away.
    """
    view.streaming = True
    try:
        yield SSEEvent(
            event=EventType.CONNECTED,
            data={"view_id": view.id, "timestamp": _timestamp()},
        ).encode()

        while True:
            if await request.is_disconnected():
                break

            try:
                event = await asyncio.wait_for(
                    view.events.get(),
                    timeout=heartbeat_interval,
                )
                yield event.encode()
            except asyncio.TimeoutError:
                yield SSEEvent(
                    event=EventType.HEARTBEAT,
                    data={"timestamp": _timestamp()},
                ).encode()
    finally:
        logger.info(f"Event stream for view {view.id} ended")
        await registry.close(view.id)


def create_sse_response(generator: AsyncGenerator[str, None]) -> StreamingResponse:
    """Create an SSE StreamingResponse."""
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
