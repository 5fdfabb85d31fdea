"""Live feed of inserted message rows, scoped per conversation."""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable

from chatmodels import Message

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Message], Any]


class Subscription:
    """Handle for one feed subscription. Closing twice is harmless."""

    def __init__(self, feed: "MessageFeed", conversation_id: str, handler: MessageHandler):
        self.feed = feed
        self.conversation_id = conversation_id
        self.handler = handler
        self.closed = False

    async def close(self):
        if self.closed:
            return
        self.closed = True
        await self.feed.unsubscribe(self)


class MessageFeed:
    """In-process insert notifications.

    Handlers run in publish order on the publisher's task. A single process
    only; multi-process deployments need Postgres LISTEN/NOTIFY behind this.
    """

    def __init__(self):
        # conversation_id -> subscriptions
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def subscribe(self, conversation_id: str, handler: MessageHandler) -> Subscription:
        """Call handler for every message inserted into the conversation."""
        subscription = Subscription(self, conversation_id, handler)
        async with self._lock:
            self._subscriptions[conversation_id].append(subscription)
        logger.info(f"Subscribed to inserts for conversation {conversation_id}")
        return subscription

    async def unsubscribe(self, subscription: Subscription):
        conversation_id = subscription.conversation_id
        async with self._lock:
            if conversation_id in self._subscriptions:
                try:
                    self._subscriptions[conversation_id].remove(subscription)
                    if not self._subscriptions[conversation_id]:
                        del self._subscriptions[conversation_id]
                except ValueError:
                    pass
        logger.info(f"Unsubscribed from conversation {conversation_id}")

    def subscriber_count(self, conversation_id: str) -> int:
        return len(self._subscriptions.get(conversation_id, []))

    async def publish(self, message: Message):
        """Deliver an inserted row to the conversation's subscribers."""
        async with self._lock:
            subscriptions = list(self._subscriptions.get(message.conversation_id, []))
        for subscription in subscriptions:
            try:
                subscription.handler(message)
            except Exception:
                logger.exception(
                    f"Insert handler failed for conversation {message.conversation_id}"
                )


# Global feed instance
message_feed = MessageFeed()
