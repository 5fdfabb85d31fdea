"""Per-view conversation orchestration.

A ChatOrchestrator backs one open chat view: it finds or creates the
user's conversation, loads its history, follows live inserts and runs the
send sequence (persist user turn, call the relay, persist the reply).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from chatmodels import ChatTurn, Conversation, Message, Session
from chatrelay.db import Database
from chatrelay.realtime import MessageFeed, Subscription
from chatrelay.services.relay_client import RelayClient

logger = logging.getLogger(__name__)


class ViewState(str, Enum):
    """Lifecycle of a chat view."""

    UNINITIALIZED = "uninitialized"
    RESOLVING_IDENTITY = "resolving-identity"
    CONVERSATION_READY = "conversation-ready"
    IDLE = "idle"
    SENDING = "sending"
    CLOSED = "closed"


@dataclass
class Notice:
    """User-facing notification."""

    title: str
    description: str = ""
    variant: str = "destructive"


class ChatOrchestrator:
    """Bridges a chat view to the store, the live feed and the relay."""

    def __init__(
        self,
        session: Session,
        db: Database,
        relay: RelayClient,
        feed: MessageFeed,
        context_window: int = 10,
        model: str | None = None,
        on_message: Callable[[Message], Any] | None = None,
        on_notice: Callable[[Notice], Any] | None = None,
    ):
        self.session = session
        self.db = db
        self.relay = relay
        self.feed = feed
        self.context_window = context_window
        self.model = model
        self.on_message = on_message
        self.on_notice = on_notice

        self.state = ViewState.UNINITIALIZED
        self.conversation: Conversation | None = None
        self.draft = ""
        self._messages: list[Message] = []
        self._seen: set[str] = set()
        self._subscription: Subscription | None = None

    @property
    def messages(self) -> list[Message]:
        """Rendered messages, in arrival order."""
        return list(self._messages)

    @property
    def can_send(self) -> bool:
        return self.state == ViewState.IDLE and bool(self.draft.strip())

    async def initialize(self) -> bool:
        """Prepare the conversation for this view. Returns False if it can't."""
        if self.state != ViewState.UNINITIALIZED:
            return self.conversation is not None

        self.state = ViewState.RESOLVING_IDENTITY
        user_id = self.session.user_id
        if not user_id:
            logger.warning("Chat view opened without a signed-in user")
            return False

        conversation = None
        try:
            conversation = await self.db.get_earliest_conversation(user_id)
        except Exception as e:
            logger.warning(f"Conversation lookup failed for user {user_id}: {e}")

        if conversation is None:
            try:
                conversation = await self.db.create_conversation(user_id)
            except Exception as e:
                logger.error(f"Failed to create conversation for user {user_id}: {e}")
                self._notify(Notice("Failed to create chat", str(e)))
                return False
            logger.info(f"Created conversation {conversation.id} for user {user_id}")

        if self.state == ViewState.CLOSED:
            return False
        self.conversation = conversation
        self.state = ViewState.CONVERSATION_READY

        try:
            history = await self.db.get_messages(conversation.id)
        except Exception as e:
            logger.error(f"Failed to load messages for {conversation.id}: {e}")
            self._notify(Notice("Failed to load messages", str(e)))
            history = []
        for message in history:
            self._append(message)

        subscription = await self.feed.subscribe(conversation.id, self._append)
        if self.state == ViewState.CLOSED:
            # Torn down while loading
            await subscription.close()
            return False
        self._subscription = subscription
        self.state = ViewState.IDLE
        return True

    async def send(self, text: str | None = None) -> Message | None:
        """
        Send a user message and persist the assistant's reply.

        Uses the draft when text is None. Failures become notices.

        Returns:
            The persisted user message, or None if nothing was persisted

        """
        content = (self.draft if text is None else text).strip()
        if self.conversation is None or not content:
            return None
        if self.state != ViewState.IDLE:
            return None

        user_id = self.session.user_id
        conversation_id = self.conversation.id
        prior = list(self._messages)
        user_message = None

        self.state = ViewState.SENDING
        try:
            user_message = await self.db.create_message(
                conversation_id, user_id, "user", content
            )
            self.draft = ""
            self._append(user_message)

            context = self.build_context(prior, user_message)
            reply = await self.relay.generate(context, model=self.model)

            if reply:
                assistant_message = await self.db.create_message(
                    conversation_id, user_id, "assistant", reply
                )
                self._append(assistant_message)
        except Exception as e:
            logger.error(f"Send failed in conversation {conversation_id}: {e}")
            self._notify(Notice("Error", str(e) or "Failed to send message"))
        finally:
            if self.state == ViewState.SENDING:
                self.state = ViewState.IDLE

        return user_message

    def build_context(self, prior: list[Message], new_message: Message) -> list[ChatTurn]:
        """Trailing window of prior messages plus the new one."""
        window = prior[-self.context_window:] if self.context_window > 0 else []
        return [
            ChatTurn(role=m.role, content=m.content) for m in [*window, new_message]
        ]

    async def close(self):
        """Tear the view down and release the live subscription."""
        self.state = ViewState.CLOSED
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None

    def _append(self, message: Message) -> bool:
        if message.id in self._seen:
            return False
        if self.conversation and message.conversation_id != self.conversation.id:
            return False
        self._seen.add(message.id)
        self._messages.append(message)
        if self.on_message:
            self.on_message(message)
        return True

    def _notify(self, notice: Notice):
        if self.on_notice:
            self.on_notice(notice)
