"""Async Data Access Layer for the CONVERSATION table.

Provides `ConversationDAL`, a `ConversationStore` implementation backed by
`utils.database_init.AsyncDatabaseInitializer`. Rows are partitioned by a
namespace so the assistant-thread, knowledge-base, and voice-search
registries can share one database file.
"""

from __future__ import annotations

import time
from typing import List, Optional

from models.session_models import Session
from utils.database_init import AsyncDatabaseInitializer


class ConversationDAL:
    """Data access layer for session → conversation mappings."""

    _COLUMNS = ("session_id", "conversation_ref", "created_implicitly", "updated_at")
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer, namespace: str) -> None:
        self._db = db_initializer
        self.namespace = namespace

    async def get(self, session_id: str) -> Optional[Session]:
        """Return the Session for `session_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM CONVERSATION WHERE namespace = ? AND session_id = ?",
                (self.namespace, session_id),
            )
            row = await cur.fetchone()
            return self._row_to_session(row) if row else None

    async def put(self, session: Session) -> None:
        """Insert or replace the mapping for `session.session_id`."""
        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT OR REPLACE INTO CONVERSATION "
                "(namespace, session_id, conversation_ref, created_implicitly, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    self.namespace,
                    session.session_id,
                    session.conversation_ref,
                    1 if session.created_implicitly else 0,
                    session.updated_at or time.time(),
                ),
            )
            await conn.commit()

    async def delete(self, session_id: str) -> bool:
        """Delete a mapping. Returns True if a row was removed."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "DELETE FROM CONVERSATION WHERE namespace = ? AND session_id = ?",
                (self.namespace, session_id),
            )
            await conn.commit()
            return cur.rowcount > 0

    async def count(self) -> int:
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT COUNT(*) FROM CONVERSATION WHERE namespace = ?",
                (self.namespace,),
            )
            row = await cur.fetchone()
            return int(row[0]) if row else 0

    async def session_ids(self) -> List[str]:
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT session_id FROM CONVERSATION WHERE namespace = ? ORDER BY updated_at",
                (self.namespace,),
            )
            rows = await cur.fetchall()
            return [row[0] for row in rows]

    @staticmethod
    def _row_to_session(row) -> Session:
        return Session(
            session_id=row[0],
            conversation_ref=row[1],
            created_implicitly=bool(row[2]),
            updated_at=float(row[3]),
        )
