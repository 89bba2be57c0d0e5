"""SQLite persistence for document-to-vector mappings and system settings."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import anyio
import anyio.to_thread

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentVectorMapping:
    """One row per stored chunk: which document a vector belongs to."""

    doc_id: str
    vector_id: str


class MetadataDatabase:
    """Shared SQLite connection with blocking work pushed to worker threads."""

    def __init__(self, db_path: Path | str, auto_init: bool = True) -> None:
        """Open the database.

        Args:
            db_path: Path to the SQLite database file, or ``":memory:"``.
            auto_init: Whether to create tables automatically.
        """
        self.db_path = db_path
        self._lock = anyio.Lock()
        self.conn = self._connect()
        if auto_init:
            self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        if str(self.db_path) != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        logger.debug("Connected to metadata database: %s", self.db_path)
        return conn

    def _init_schema(self) -> None:
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS document_vectors (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                doc_id TEXT NOT NULL,
                vector_id TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS ix_document_vectors_doc_id
            ON document_vectors (doc_id)
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS system_settings (
                label TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT NOT NULL
            )
        """)
        self.conn.commit()

    async def run[T](self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking database function in a worker thread."""
        async with self._lock:
            return await anyio.to_thread.run_sync(func, *args)

    def close(self) -> None:
        self.conn.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentVectorStore:
    """Mapping rows between document ids and the vector ids they own."""

    def __init__(self, db: MetadataDatabase) -> None:
        self._db = db

    async def bulk_insert(self, rows: list[DocumentVectorMapping]) -> int:
        """Insert mapping rows and return how many were written."""
        if not rows:
            return 0
        return await self._db.run(self._bulk_insert, rows)

    async def where(self, doc_id: str) -> list[DocumentVectorMapping]:
        """Return all mapping rows for a document."""
        return await self._db.run(self._where, doc_id)

    async def delete_for_document(self, doc_id: str) -> int:
        """Delete every mapping row for a document."""
        return await self._db.run(self._delete_for_document, doc_id)

    async def delete_all(self) -> int:
        """Delete every mapping row."""
        return await self._db.run(self._delete_all)

    def _bulk_insert(self, rows: list[DocumentVectorMapping]) -> int:
        created_at = _now()
        with self._db.conn:
            self._db.conn.executemany(
                "INSERT INTO document_vectors (doc_id, vector_id, created_at) "
                "VALUES (?, ?, ?)",
                [(row.doc_id, row.vector_id, created_at) for row in rows],
            )
        return len(rows)

    def _where(self, doc_id: str) -> list[DocumentVectorMapping]:
        cursor = self._db.conn.execute(
            "SELECT doc_id, vector_id FROM document_vectors WHERE doc_id = ? ORDER BY id",
            (doc_id,),
        )
        return [
            DocumentVectorMapping(doc_id=row["doc_id"], vector_id=row["vector_id"])
            for row in cursor.fetchall()
        ]

    def _delete_for_document(self, doc_id: str) -> int:
        with self._db.conn:
            cursor = self._db.conn.execute(
                "DELETE FROM document_vectors WHERE doc_id = ?", (doc_id,)
            )
        return cursor.rowcount

    def _delete_all(self) -> int:
        with self._db.conn:
            cursor = self._db.conn.execute("DELETE FROM document_vectors")
        return cursor.rowcount


class SystemSettings:
    """Label/value settings that can be changed at runtime."""

    def __init__(self, db: MetadataDatabase) -> None:
        self._db = db

    async def get_value_or_fallback(self, label: str, fallback: Any = None) -> Any:
        """Return the stored value for ``label``, or ``fallback`` if unset."""
        value = await self._db.run(self._get, label)
        return fallback if value is None else value

    async def set_value(self, label: str, value: Any) -> None:
        """Store ``value`` for ``label``; ``None`` clears the setting."""
        await self._db.run(self._set, label, None if value is None else str(value))

    def _get(self, label: str) -> str | None:
        row = self._db.conn.execute(
            "SELECT value FROM system_settings WHERE label = ?", (label,)
        ).fetchone()
        return None if row is None else row["value"]

    def _set(self, label: str, value: str | None) -> None:
        with self._db.conn:
            self._db.conn.execute(
                "INSERT INTO system_settings (label, value, updated_at) "
                "VALUES (?, ?, ?) "
                "ON CONFLICT(label) DO UPDATE SET "
                "value = excluded.value, updated_at = excluded.updated_at",
                (label, value, _now()),
            )
