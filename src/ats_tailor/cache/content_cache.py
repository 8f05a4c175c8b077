"""Layer 1 cache: tailored content bundles keyed by (resume_id, job_id)."""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path

from ats_tailor.models.cache import ContentBundle, ContentCacheEntry

DEFAULT_DB_PATH = Path.home() / ".ats-tailor" / "cache.db"


class ContentCache:
    """SQLite-backed write-once store of pipeline output per (resume, job).

    A second ``put`` for an existing key keeps the first row and returns it.
    Public methods are coroutines; the blocking sqlite work runs in a thread.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS content_cache (
                    id TEXT PRIMARY KEY,
                    resume_id TEXT NOT NULL,
                    job_id TEXT NOT NULL,
                    bundle_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE (resume_id, job_id)
                )
            """)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit (or roll back) on exit, then close it."""
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            with conn:
                yield conn

    async def get(self, resume_id: str, job_id: str) -> ContentCacheEntry | None:
        return await asyncio.to_thread(self._get, resume_id, job_id)

    async def put(self, resume_id: str, job_id: str, bundle: ContentBundle) -> ContentCacheEntry:
        """Insert the bundle unless the key exists; return the stored entry."""
        return await asyncio.to_thread(self._put, resume_id, job_id, bundle)

    async def ids_for_job(self, job_id: str) -> list[str]:
        return await asyncio.to_thread(self._ids_for_job, job_id)

    async def delete_for_job(self, job_id: str) -> int:
        """Delete every entry for ``job_id``. Returns count of deleted rows."""
        return await asyncio.to_thread(self._execute, "DELETE FROM content_cache WHERE job_id = ?", (job_id,))

    async def clear(self) -> int:
        """Clear all cached entries. Returns count of deleted rows."""
        return await asyncio.to_thread(self._execute, "DELETE FROM content_cache", ())

    async def stats(self) -> dict:
        return await asyncio.to_thread(self._stats)

    def _get(self, resume_id: str, job_id: str) -> ContentCacheEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                """SELECT id, resume_id, job_id, bundle_json, created_at
                   FROM content_cache WHERE resume_id = ? AND job_id = ?""",
                (resume_id, job_id),
            ).fetchone()
        if row is None:
            return None
        entry_id, resume_id, job_id, bundle_json, created_at = row
        return ContentCacheEntry(
            id=entry_id,
            resume_id=resume_id,
            job_id=job_id,
            bundle=ContentBundle.model_validate_json(bundle_json),
            created_at=datetime.fromisoformat(created_at),
        )

    def _put(self, resume_id: str, job_id: str, bundle: ContentBundle) -> ContentCacheEntry:
        with self._connect() as conn:
            conn.execute(
                """INSERT OR IGNORE INTO content_cache
                   (id, resume_id, job_id, bundle_json, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    str(uuid.uuid4()),
                    resume_id,
                    job_id,
                    bundle.model_dump_json(by_alias=True),
                    datetime.now().isoformat(),
                ),
            )
        entry = self._get(resume_id, job_id)
        if entry is None:
            raise sqlite3.DatabaseError(f"content cache row for ({resume_id}, {job_id}) vanished after insert")
        return entry

    def _ids_for_job(self, job_id: str) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT id FROM content_cache WHERE job_id = ?", (job_id,)).fetchall()
        return [row[0] for row in rows]

    def _execute(self, sql: str, params: tuple) -> int:
        with self._connect() as conn:
            return conn.execute(sql, params).rowcount

    def _stats(self) -> dict:
        with self._connect() as conn:
            total, resumes, jobs = conn.execute(
                "SELECT COUNT(*), COUNT(DISTINCT resume_id), COUNT(DISTINCT job_id) FROM content_cache"
            ).fetchone()
        return {"total": total, "resumes": resumes, "jobs": jobs}
