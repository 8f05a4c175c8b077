"""Layer 2 cache: rendered artifact URLs keyed by (content_cache_id, template_name)."""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path

from ats_tailor.cache.content_cache import DEFAULT_DB_PATH
from ats_tailor.models.cache import RenderCacheEntry


class RenderCache:
    """SQLite-backed write-once map from cached content + template to a PDF URL."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS render_cache (
                    id TEXT PRIMARY KEY,
                    content_cache_id TEXT NOT NULL,
                    template_name TEXT NOT NULL,
                    pdf_url TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE (content_cache_id, template_name)
                )
            """)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit (or roll back) on exit, then close it."""
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            with conn:
                yield conn

    async def get(self, content_cache_id: str, template_name: str) -> RenderCacheEntry | None:
        return await asyncio.to_thread(self._get, content_cache_id, template_name)

    async def put(self, content_cache_id: str, template_name: str, pdf_url: str) -> RenderCacheEntry:
        """Insert unless the key exists; return the stored entry."""
        return await asyncio.to_thread(self._put, content_cache_id, template_name, pdf_url)

    async def delete_for_content(self, content_cache_ids: list[str]) -> int:
        if not content_cache_ids:
            return 0
        return await asyncio.to_thread(self._delete_for_content, list(content_cache_ids))

    async def clear(self) -> int:
        """Clear all cached entries. Returns count of deleted rows."""
        return await asyncio.to_thread(self._clear)

    async def stats(self) -> dict:
        return await asyncio.to_thread(self._stats)

    def _get(self, content_cache_id: str, template_name: str) -> RenderCacheEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT id, content_cache_id, template_name, pdf_url, created_at
                   FROM render_cache WHERE content_cache_id = ? AND template_name = ?""",
                (content_cache_id, template_name),
            ).fetchone()
        if row is None:
            return None
        return RenderCacheEntry(
            id=row[0],
            content_cache_id=row[1],
            template_name=row[2],
            pdf_url=row[3],
            created_at=datetime.fromisoformat(row[4]),
        )

    def _put(self, content_cache_id: str, template_name: str, pdf_url: str) -> RenderCacheEntry:
        with self._connect() as conn:
            conn.execute(
                """INSERT OR IGNORE INTO render_cache
                   (id, content_cache_id, template_name, pdf_url, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (str(uuid.uuid4()), content_cache_id, template_name, pdf_url, datetime.now().isoformat()),
            )
        entry = self._get(content_cache_id, template_name)
        if entry is None:
            raise sqlite3.DatabaseError(
                f"render cache row for ({content_cache_id}, {template_name}) vanished after insert"
            )
        return entry

    def _delete_for_content(self, content_cache_ids: list[str]) -> int:
        placeholders = ", ".join("?" for _ in content_cache_ids)
        with self._connect() as conn:
            cursor = conn.execute(
                f"DELETE FROM render_cache WHERE content_cache_id IN ({placeholders})",
                content_cache_ids,
            )
            return cursor.rowcount

    def _clear(self) -> int:
        with self._connect() as conn:
            return conn.execute("DELETE FROM render_cache").rowcount

    def _stats(self) -> dict:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT template_name, COUNT(*) FROM render_cache GROUP BY template_name"
            ).fetchall()
        by_template = {name: count for name, count in rows}
        return {"total": sum(by_template.values()), "by_template": by_template}
