from __future__ import annotations

import time

from aide.storage.database import Database
from aide.types import ConversationTurn, Role

DEFAULT_HISTORY_LIMIT = 10


class ConversationStore:
    """Ordered chat turns per conversation, trimmed to the newest ``limit`` rows.

    Trimming happens right after every write. Two concurrent writers for the
    same conversation can leave one row too many or too few until the next
    write; nothing here serializes them.
    """

    def __init__(self, db: Database, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self._db = db
        self.limit = limit

    async def load(self, conversation_id: str) -> list[ConversationTurn]:
        rows = await self._db.fetchall(
            """
            SELECT id, role, content FROM chat_history
            WHERE chat_id = ?
            ORDER BY id DESC
            LIMIT ?
            """,
            (str(conversation_id), self.limit),
        )
        return [
            ConversationTurn(
                conversation_id=str(conversation_id),
                role=Role(row["role"]),
                content=row["content"],
                sequence=row["id"],
            )
            for row in reversed(rows)
        ]

    async def append(self, conversation_id: str, role: Role, content: str) -> None:
        chat_id = str(conversation_id)
        await self._db.execute(
            "INSERT INTO chat_history (chat_id, role, content, created_at) VALUES (?, ?, ?, ?)",
            (chat_id, Role(role).value, content, time.time()),
        )

        boundary = await self._db.fetchone(
            """
            SELECT id FROM chat_history
            WHERE chat_id = ?
            ORDER BY id DESC
            LIMIT 1 OFFSET ?
            """,
            (chat_id, self.limit - 1),
        )
        if boundary is not None:
            await self._db.execute(
                "DELETE FROM chat_history WHERE chat_id = ? AND id < ?",
                (chat_id, boundary["id"]),
            )

    async def clear(self, conversation_id: str) -> None:
        await self._db.execute("DELETE FROM chat_history WHERE chat_id = ?", (str(conversation_id),))
