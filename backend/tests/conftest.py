"""Shared fixtures: in-memory store, upstream stub and relay wiring."""

import json
import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from chatmodels import Conversation, Message
from chatrelay.realtime import MessageFeed
from chatrelay.services.relay_client import RelayClient
from generate_chat import server as relay_server
from generate_chat.upstream import CompletionClient

EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeDatabase:
    """In-memory stand-in for chatrelay.db.Database.

    Timestamps advance by one second per row so created_at order is strict.
    Operations listed in `failures` raise instead of writing.
    """

    def __init__(self, feed: MessageFeed | None = None):
        self.feed = feed
        self.conversations: list[Conversation] = []
        self.messages: list[Message] = []
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []
        self._ticks = 0

    def _now(self) -> datetime:
        self._ticks += 1
        return EPOCH + timedelta(seconds=self._ticks)

    def _check(self, operation: str):
        self.calls.append(operation)
        if operation in self.failures:
            raise self.failures[operation]

    async def get_earliest_conversation(self, user_id: str) -> Conversation | None:
        self._check("get_earliest_conversation")
        owned = [c for c in self.conversations if c.user_id == user_id]
        return min(owned, key=lambda c: c.created_at) if owned else None

    async def create_conversation(self, user_id: str, title: str | None = None) -> Conversation:
        self._check("create_conversation")
        conversation = Conversation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title or "New Chat",
            created_at=self._now(),
        )
        self.conversations.append(conversation)
        return conversation

    async def create_message(
        self, conversation_id: str, user_id: str, role: str, content: str
    ) -> Message:
        self._check(f"create_message:{role}")
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            user_id=user_id,
            role=role,
            content=content,
            created_at=self._now(),
        )
        self.messages.append(message)
        if self.feed is not None:
            await self.feed.publish(message)
        return message

    async def get_messages(self, conversation_id: str) -> list[Message]:
        self._check("get_messages")
        rows = [m for m in self.messages if m.conversation_id == conversation_id]
        return sorted(rows, key=lambda m: m.created_at)

    def seed(self, conversation_id: str, user_id: str, count: int):
        """Insert `count` alternating user/assistant rows without publishing."""
        for i in range(count):
            role = "user" if i % 2 == 0 else "assistant"
            self.messages.append(
                Message(
                    id=str(uuid.uuid4()),
                    conversation_id=conversation_id,
                    user_id=user_id,
                    role=role,
                    content=f"{role} message {i}",
                    created_at=self._now(),
                )
            )

    def contents(self, role: str | None = None) -> list[str]:
        return [m.content for m in self.messages if role is None or m.role == role]


class UpstreamStub:
    """Deterministic OpenRouter stand-in for httpx.MockTransport."""

    def __init__(self, reply: str = "Hi there", status_code: int = 200):
        self.reply = reply
        self.status_code = status_code
        self.body: dict | None = None
        self.requests: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        if self.status_code >= 400:
            return httpx.Response(
                self.status_code, json={"error": {"message": "stub failure"}}
            )
        body = self.body
        if body is None:
            body = {"choices": [{"message": {"role": "assistant", "content": self.reply}}]}
        return httpx.Response(self.status_code, json=body)

    @property
    def last_messages(self) -> list[dict]:
        return self.requests[-1]["messages"]


@pytest.fixture
def feed():
    return MessageFeed()


@pytest.fixture
def store(feed):
    return FakeDatabase(feed)


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def relay_client(upstream):
    """RelayClient talking in-process to the relay app, which talks to the stub."""

    def make_client():
        return CompletionClient(
            api_key="sk-test", transport=httpx.MockTransport(upstream.handler)
        )

    relay_server.app.dependency_overrides[relay_server.get_client_factory] = (
        lambda: make_client
    )
    yield RelayClient(
        url="http://relay/generate-chat",
        api_key="",
        transport=httpx.ASGITransport(app=relay_server.app),
    )
    relay_server.app.dependency_overrides.clear()
