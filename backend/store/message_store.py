"""
Message Store: durable conversations and messages.

Owns message ordering (creation time ascending, insertion sequence as the
tie-break) and conversation ownership: a conversation belongs to exactly
one user, and every lookup is scoped by owner so a foreign conversation is
indistinguishable from a missing one.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.conversation import Conversation
from models.message import Message, Role
from sqlite_db import SQLiteDatabase, new_id

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_conversation(row: Dict[str, Any]) -> Conversation:
    return Conversation(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _to_message(row: Dict[str, Any]) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        user_id=row["user_id"],
        role=row["role"],
        content=row["content"],
        created_at=datetime.fromisoformat(row["created_at"]),
    )


class MessageStore:
    """Typed persistence operations over the SQLite database."""

    def __init__(self, db: SQLiteDatabase):
        self._db = db

    # ── Conversations ──────────────────────────────────────────

    async def create_conversation(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        now = _utcnow()
        conversation = Conversation(
            id=new_id(),
            user_id=owner_id,
            title=title,
            created_at=now,
            updated_at=now,
        )
        await self._db.insert("conversations", {
            "id": conversation.id,
            "user_id": owner_id,
            "title": title,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        })
        logger.info(f"Created conversation {conversation.id} for user {owner_id}")
        return conversation

    async def find_conversation(self, conversation_id: str, owner_id: str) -> Optional[Conversation]:
        """Load a conversation only if `owner_id` owns it."""
        row = await self._db.fetch_one(
            "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, owner_id),
        )
        return _to_conversation(row) if row else None

    async def list_conversations(self, owner_id: str, limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
        """List a user's conversations, most recently updated first.

        Returns:
            Dicts with the conversation under "conversation" and its
            message count under "message_count".
        """
        rows = await self._db.fetch_all(
            """
            SELECT c.*, COUNT(m.seq) AS message_count
            FROM conversations c
            LEFT JOIN messages m ON m.conversation_id = c.id
            WHERE c.user_id = ?
            GROUP BY c.id
            ORDER BY c.updated_at DESC
            LIMIT ? OFFSET ?
            """,
            (owner_id, limit, skip),
        )
        return [
            {"conversation": _to_conversation(r), "message_count": r["message_count"]}
            for r in rows
        ]

    async def count_messages(self, conversation_id: str) -> int:
        row = await self._db.fetch_one(
            "SELECT COUNT(*) AS n FROM messages WHERE conversation_id = ?",
            (conversation_id,),
        )
        return row["n"] if row else 0

    async def update_title(self, conversation_id: str, owner_id: str, title: str) -> Optional[Conversation]:
        """Rename a conversation. Returns None when absent or not owned."""
        updated = await self._db.execute(
            "UPDATE conversations SET title = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            (title, _utcnow().isoformat(), conversation_id, owner_id),
        )
        if not updated:
            return None
        return await self.find_conversation(conversation_id, owner_id)

    async def touch_conversation(self, conversation_id: str) -> datetime:
        """Move `updated_at` to now (last write wins)."""
        now = _utcnow()
        await self._db.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (now.isoformat(), conversation_id),
        )
        return now

    async def delete_conversation(self, conversation_id: str, owner_id: str) -> bool:
        """Delete a conversation; its messages go with it (cascade)."""
        deleted = await self._db.execute(
            "DELETE FROM conversations WHERE id = ? AND user_id = ?",
            (conversation_id, owner_id),
        )
        if deleted:
            logger.info(f"Deleted conversation {conversation_id}")
        return bool(deleted)

    # ── Messages ───────────────────────────────────────────────

    async def create_message(self, conversation_id: str, owner_id: str, role: Role, content: str) -> Message:
        message = Message(
            id=new_id(),
            conversation_id=conversation_id,
            user_id=owner_id,
            role=role,
            content=content,
            created_at=_utcnow(),
        )
        await self._db.insert("messages", {
            "id": message.id,
            "conversation_id": conversation_id,
            "user_id": owner_id,
            "role": role,
            "content": content,
            "created_at": message.created_at.isoformat(),
        })
        return message

    async def list_messages(self, conversation_id: str, limit: Optional[int] = None) -> List[Message]:
        """Messages of a conversation in creation order.

        With `limit`, only the newest `limit` messages are returned, still
        oldest first.
        """
        if not limit:
            rows = await self._db.fetch_all(
                "SELECT * FROM messages WHERE conversation_id = ? "
                "ORDER BY created_at ASC, seq ASC",
                (conversation_id,),
            )
            return [_to_message(r) for r in rows]

        rows = await self._db.fetch_all(
            "SELECT * FROM messages WHERE conversation_id = ? "
            "ORDER BY created_at DESC, seq DESC LIMIT ?",
            (conversation_id, limit),
        )
        return [_to_message(r) for r in reversed(rows)]
