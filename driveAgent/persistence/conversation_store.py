"""SQLite-based conversation storage."""

from __future__ import annotations

import logging
import os
import sqlite3
from typing import List, Optional

from .schema import Conversation, ConversationListItem, utcnow

LOGGER = logging.getLogger(__name__)

LIST_LIMIT = 50
PREVIEW_CHARS = 100


class ConversationStore:
    """SQLite store for loading and saving whole conversations.

    Each row holds the conversation serialized as JSON plus the columns needed
    for ownership checks and listing.
    """

    def __init__(self, db_path: str = "data/conversations.db"):
        """Initialize the conversation store.

        Args:
            db_path: Path to SQLite database file
        """
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    data_json TEXT NOT NULL,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    message_count INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_user ON conversations (user_id, updated_at)"
            )
            conn.commit()
        finally:
            conn.close()

    def save(self, conversation: Conversation) -> None:
        """Insert or replace a conversation.

        Args:
            conversation: Conversation to persist; ``updated_at`` is refreshed
        """
        conversation.updated_at = utcnow()
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                """INSERT INTO conversations
                       (id, user_id, title, data_json, is_active, message_count, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       title = excluded.title,
                       data_json = excluded.data_json,
                       is_active = excluded.is_active,
                       message_count = excluded.message_count,
                       updated_at = excluded.updated_at""",
                (
                    conversation.id,
                    conversation.user_id,
                    conversation.title,
                    conversation.model_dump_json(),
                    1 if conversation.is_active else 0,
                    len(conversation.messages),
                    conversation.created_at.isoformat(),
                    conversation.updated_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

        LOGGER.debug(f"Saved conversation {conversation.id} ({len(conversation.messages)} messages)")

    def load(self, conversation_id: str, user_id: str) -> Optional[Conversation]:
        """Load an active conversation owned by ``user_id``.

        Returns:
            The conversation, or None if missing, inactive or owned by someone else
        """
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT data_json FROM conversations WHERE id = ? AND user_id = ? AND is_active = 1",
                (conversation_id, user_id),
            )
            row = cursor.fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return Conversation.model_validate_json(row[0])

    def list_for_user(self, user_id: str, limit: int = LIST_LIMIT) -> List[ConversationListItem]:
        """List the user's active conversations, most recently updated first."""
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                """SELECT data_json FROM conversations
                   WHERE user_id = ? AND is_active = 1
                   ORDER BY updated_at DESC
                   LIMIT ?""",
                (user_id, limit),
            )
            rows = cursor.fetchall()
        finally:
            conn.close()

        items = []
        for (data_json,) in rows:
            conversation = Conversation.model_validate_json(data_json)
            last = conversation.messages[-1] if conversation.messages else None
            items.append(
                ConversationListItem(
                    id=conversation.id,
                    title=conversation.title,
                    last_message=(last.content or "")[:PREVIEW_CHARS] if last else "",
                    message_count=len(conversation.messages),
                    updated_at=conversation.updated_at,
                )
            )
        return items
