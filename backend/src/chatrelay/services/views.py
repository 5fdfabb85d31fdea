"""Registry of open chat views."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field

from chatmodels import Message, Session
from chatrelay.db import Database
from chatrelay.realtime import MessageFeed
from chatrelay.services.orchestrator import ChatOrchestrator, Notice
from chatrelay.services.relay_client import RelayClient
from chatrelay.sse import EventType, SSEEvent

logger = logging.getLogger(__name__)


class ViewUnavailable(Exception):
    """The view's conversation could not be prepared."""


@dataclass
class ChatView:
    """One mounted chat view and its outgoing event queue."""

    id: str
    user_id: str
    orchestrator: ChatOrchestrator
    events: asyncio.Queue = field(default_factory=asyncio.Queue)
    streaming: bool = False  # An event stream is attached
    last_seen: float = field(default_factory=time.monotonic)

    def touch(self):
        self.last_seen = time.monotonic()


class ViewRegistry:
    """Creates, finds and tears down chat views.

    Views without an attached event stream are reaped after `idle_timeout`
    seconds without a request.
    """

    def __init__(
        self,
        db: Database,
        relay: RelayClient,
        feed: MessageFeed,
        context_window: int = 10,
        model: str | None = None,
        queue_size: int = 256,
        idle_timeout: float = 300.0,
    ):
        self.db = db
        self.relay = relay
        self.feed = feed
        self.context_window = context_window
        self.model = model
        self.queue_size = queue_size
        self.idle_timeout = idle_timeout
        self._views: dict[str, ChatView] = {}

    def __len__(self) -> int:
        return len(self._views)

    async def open(self, user_id: str) -> ChatView:
        """Mount a view for the user and load its conversation."""
        await self.reap()

        view_id = str(uuid.uuid4())
        events: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        notices: list[Notice] = []
        loading = True

        def enqueue(event: SSEEvent):
            try:
                events.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Queue full for view {view_id}, dropping {event.event.value} event")

        def on_message(message: Message):
            if loading:
                return  # History is returned with the open response
            enqueue(SSEEvent(event=EventType.MESSAGE, data=message.model_dump(mode="json")))

        def on_notice(notice: Notice):
            notices.append(notice)
            enqueue(
                SSEEvent(
                    event=EventType.NOTICE,
                    data={
                        "title": notice.title,
                        "description": notice.description,
                        "variant": notice.variant,
                    },
                )
            )

        orchestrator = ChatOrchestrator(
            session=Session(user_id=user_id),
            db=self.db,
            relay=self.relay,
            feed=self.feed,
            context_window=self.context_window,
            model=self.model,
            on_message=on_message,
            on_notice=on_notice,
        )
        if not await orchestrator.initialize():
            await orchestrator.close()
            detail = notices[-1].description if notices else "No conversation"
            raise ViewUnavailable(detail)
        loading = False

        view = ChatView(
            id=view_id,
            user_id=user_id,
            orchestrator=orchestrator,
            events=events,
        )
        self._views[view.id] = view
        logger.info(f"Opened view {view.id} for user {user_id}")
        return view

    def get(self, view_id: str, user_id: str) -> ChatView | None:
        """Find a view owned by the user."""
        view = self._views.get(view_id)
        if view is None or view.user_id != user_id:
            return None
        view.touch()
        return view

    async def close(self, view_id: str):
        """Tear a view down. Unknown ids are ignored."""
        view = self._views.pop(view_id, None)
        if view is None:
            return
        await view.orchestrator.close()
        logger.info(f"Closed view {view_id}")

    async def reap(self, now: float | None = None) -> int:
        """Close views with no event stream that have been idle too long."""
        now = time.monotonic() if now is None else now
        stale = [
            view.id
            for view in self._views.values()
            if not view.streaming and now - view.last_seen > self.idle_timeout
        ]
        for view_id in stale:
            logger.info(f"Reaping idle view {view_id}")
            await self.close(view_id)
        return len(stale)

    async def reap_forever(self, interval: float = 60.0):
        """Periodically reap idle views until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.reap()
            except Exception:
                logger.exception("Failed to reap idle views")

    async def close_all(self):
        for view_id in list(self._views):
            await self.close(view_id)
