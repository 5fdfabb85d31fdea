"""PostgreSQL client for conversations and messages."""

import uuid
import asyncpg
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from chatmodels import Conversation, Message
from chatrelay.config import settings
from chatrelay.realtime import MessageFeed, message_feed


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_conversations_user_id ON conversations(user_id, created_at);

-- Messages are append-only
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id),
    user_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at);
"""


class Database:
    """PostgreSQL database client. Publishes message inserts to the feed."""

    def __init__(self, feed: MessageFeed | None = None, database_url: str | None = None):
        self._pool: asyncpg.Pool | None = None
        self.feed = feed
        self.database_url = database_url or settings.database_url

    async def connect(self):
        """Create connection pool."""
        self._pool = await asyncpg.create_pool(
            self.database_url,
            min_size=2,
            max_size=10,
        )

    async def disconnect(self):
        """Close connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self):
        """Get a connection from the pool."""
        if not self._pool:
            raise RuntimeError("Database not connected")
        async with self._pool.acquire() as conn:
            yield conn

    async def ensure_tables_exist(self):
        """Create tables if they don't exist."""
        async with self.connection() as conn:
            await conn.execute(SCHEMA_SQL)

    # ============= Conversation Operations =============

    async def get_earliest_conversation(self, user_id: str) -> Conversation | None:
        """Get the user's oldest conversation."""
        async with self.connection() as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM conversations
                WHERE user_id = $1
                ORDER BY created_at ASC
                LIMIT 1
                """,
                user_id,
            )
        if not row:
            return None
        return self._row_to_conversation(row)

    async def create_conversation(
        self, user_id: str, title: str | None = None
    ) -> Conversation:
        """Create a new conversation."""
        conversation = Conversation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title or settings.default_conversation_title,
            created_at=datetime.now(timezone.utc),
        )
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO conversations (id, user_id, title, created_at)
                VALUES ($1, $2, $3, $4)
                """,
                conversation.id,
                conversation.user_id,
                conversation.title,
                conversation.created_at,
            )
        return conversation

    def _row_to_conversation(self, row: asyncpg.Record) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            created_at=row["created_at"],
        )

    # ============= Message Operations =============

    async def create_message(
        self, conversation_id: str, user_id: str, role: str, content: str
    ) -> Message:
        """Insert a message and notify feed subscribers of the new row."""
        message = Message(
            id=str(uuid.uuid4()),
            conversation_id=conversation_id,
            user_id=user_id,
            role=role,  # type: ignore
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO messages (id, conversation_id, user_id, role, content, created_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                message.id,
                message.conversation_id,
                message.user_id,
                message.role,
                message.content,
                message.created_at,
            )
        if self.feed is not None:
            await self.feed.publish(message)
        return message

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """Get all messages for a conversation, oldest first."""
        async with self.connection() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM messages
                WHERE conversation_id = $1
                ORDER BY created_at ASC
                """,
                conversation_id,
            )
        return [
            Message(
                id=row["id"],
                conversation_id=row["conversation_id"],
                user_id=row["user_id"],
                role=row["role"],
                content=row["content"],
                created_at=row["created_at"],
            )
            for row in rows
        ]


# Global database instance
db = Database(feed=message_feed)
