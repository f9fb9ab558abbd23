# src/memory/sqlite_store.py — v2
"""SQLite-based memory store (MEMORY_BACKEND=sqlite).

Backed by stdlib sqlite3. A memory row is keyed by (content_hash, owner)
and written with INSERT OR IGNORE: storing the same content twice for one
owner keeps the first row. Nothing is ever updated in place.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from deepthink.core.models import MemoryRecord
from deepthink.memory.base_memory_store import BaseMemoryStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS memories (
    content_hash TEXT NOT NULL,
    owner TEXT NOT NULL,
    id TEXT NOT NULL,
    user_id TEXT,
    session_id TEXT,
    importance REAL NOT NULL,
    retrieval_score REAL,
    created_at TEXT NOT NULL,
    data TEXT NOT NULL,
    PRIMARY KEY (content_hash, owner)
);
CREATE INDEX IF NOT EXISTS idx_memories_user ON memories(user_id);

CREATE TABLE IF NOT EXISTS reasoning_chains (
    trace_id TEXT PRIMARY KEY,
    session_id TEXT,
    user_id TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    data TEXT NOT NULL
);
"""


class SqliteMemoryStore(BaseMemoryStore):
    """SQLite-backed memory store."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def insert_memory(self, record: MemoryRecord) -> bool:
        """Insert a memory row unless its owner already holds that content."""
        cursor = self._conn.execute(
            """INSERT OR IGNORE INTO memories
               (content_hash, owner, id, user_id, session_id, importance,
                retrieval_score, created_at, data)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.content_hash,
                record.user_id or "",
                record.id,
                record.user_id,
                record.session_id,
                record.importance,
                record.retrieval_score,
                record.created_at.isoformat(),
                record.model_dump_json(),
            ),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    async def query_memories(
        self, user_id: str | None = None, limit: int = 8
    ) -> list[MemoryRecord]:
        """Memories of a user plus unowned ones, best first."""
        if user_id is None:
            where, params = "user_id IS NULL", ()
        else:
            where, params = "(user_id = ? OR user_id IS NULL)", (user_id,)
        cursor = self._conn.execute(
            f"""SELECT data FROM memories WHERE {where}
                ORDER BY retrieval_score IS NULL, retrieval_score DESC,
                         importance DESC, created_at DESC
                LIMIT ?""",  # noqa: S608
            (*params, limit),
        )
        return self._rows_to_records(cursor.fetchall())

    async def get_memories_by_hash(self, content_hash: str) -> list[MemoryRecord]:
        cursor = self._conn.execute(
            "SELECT data FROM memories WHERE content_hash = ? ORDER BY created_at",
            (content_hash,),
        )
        return self._rows_to_records(cursor.fetchall())

    async def insert_reasoning_chain(self, record: dict[str, Any]) -> None:
        """Append a reasoning chain row."""
        self._conn.execute(
            """INSERT INTO reasoning_chains (trace_id, session_id, user_id, data)
               VALUES (?, ?, ?, ?)""",
            (
                record["trace_id"],
                record.get("session_id"),
                record.get("user_id"),
                json.dumps(record, default=str),
            ),
        )
        self._conn.commit()

    async def get_reasoning_chain(self, trace_id: str) -> dict[str, Any] | None:
        cursor = self._conn.execute(
            "SELECT data FROM reasoning_chains WHERE trace_id = ?", (trace_id,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def count_reasoning_chains(self) -> int:
        cursor = self._conn.execute("SELECT COUNT(*) FROM reasoning_chains")
        return int(cursor.fetchone()[0])

    async def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _rows_to_records(rows: list[tuple[str]]) -> list[MemoryRecord]:
        records: list[MemoryRecord] = []
        for row in rows:
            try:
                records.append(MemoryRecord.model_validate_json(row[0]))
            except ValueError as e:
                logger.warning("Failed to deserialize memory row: %s", e)
        return records
