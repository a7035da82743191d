import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite

DB_FILENAME = "conversations.db"

CONVERSATION_SCHEMA = """
CREATE TABLE IF NOT EXISTS CONVERSATION (
    namespace TEXT NOT NULL,
    session_id TEXT NOT NULL,
    conversation_ref TEXT NOT NULL,
    created_implicitly INTEGER NOT NULL DEFAULT 1,
    updated_at REAL NOT NULL,
    PRIMARY KEY (namespace, session_id)
)
"""


def _resolve_database_dir(database_dir: Optional[Path | str]) -> Path:
    """Return `database_dir` as an existing directory, creating it if needed."""
    if database_dir is None or not str(database_dir).strip():
        raise RuntimeError(
            "DATABASE_DIR must name a writable directory when CONVERSATION_STORE=sqlite."
        )
    path = Path(database_dir).expanduser()
    if path.exists() and not path.is_dir():
        raise RuntimeError(f"DATABASE_DIR={str(database_dir)!r} is a file; point it at a directory instead.")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise RuntimeError(f"Cannot create the conversation database directory {path}") from exc
    return path


class AsyncDatabaseInitializer:
    """
    Owns the SQLite file behind the persistent conversation store.

    The file lives at ``<database_dir>/conversations.db``. The first call to
    `ensure_database()` wipes any file left by an earlier process and creates
    the CONVERSATION table, so session mappings never outlive the server.
    Later calls, including the one made by every `connection()`, return
    immediately.
    """

    def __init__(self, database_dir: Optional[Path | str]) -> None:
        self.db_dir = _resolve_database_dir(database_dir)
        self.db_path = self.db_dir / DB_FILENAME
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def ensure_database(self) -> None:
        """Create a fresh database on first use; a no-op afterwards."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            if self.db_path.exists():
                try:
                    self.db_path.unlink()
                except OSError as exc:
                    raise RuntimeError(f"Cannot remove stale conversation database {self.db_path}") from exc
            await self._create_schema()
            self._initialized = True

    async def _create_schema(self, attempts: int = 3) -> None:
        for attempt in range(1, attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute(CONVERSATION_SCHEMA)
                    await db.commit()
                return
            except FileNotFoundError:
                # The directory can briefly disappear on some network filesystems.
                if attempt == attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield an `aiosqlite.Connection`, creating the database first if needed."""
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
