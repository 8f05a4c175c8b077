"""SQLite persistence for uploaded resumes and job postings."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from ats_tailor.models.job import JobRecord, JobStatus, ResumeRecord

DEFAULT_DB_PATH = Path.home() / ".ats-tailor" / "jobs.db"

_JOB_COLUMNS = (
    "id", "user_id", "resume_id", "job_title", "job_description", "job_url",
    "generation_status", "template_used", "pdf_url", "tailored_json", "fit_score",
    "fit_score_breakdown", "missing_skills", "recommendations", "error_message", "updated_at",
)
_JSON_COLUMNS = {"tailored_json", "fit_score_breakdown", "missing_skills", "recommendations"}


class JobStore:
    """Resumes and jobs in two tables; coroutine API over thread-offloaded sqlite."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit (or roll back) on exit, then close it."""
        with closing(sqlite3.connect(str(self.db_path))) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            with conn:
                yield conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS resumes (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    raw_text TEXT,
                    file_name TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    resume_id TEXT NOT NULL,
                    job_title TEXT NOT NULL,
                    job_description TEXT NOT NULL DEFAULT '',
                    job_url TEXT,
                    generation_status TEXT NOT NULL DEFAULT 'pending',
                    template_used TEXT,
                    pdf_url TEXT,
                    tailored_json TEXT,
                    fit_score INTEGER,
                    fit_score_breakdown TEXT,
                    missing_skills TEXT,
                    recommendations TEXT,
                    error_message TEXT,
                    updated_at TEXT NOT NULL
                )
            """)

    # --- resumes ---

    async def add_resume(
        self, user_id: str, raw_text: str | None, file_name: str | None = None
    ) -> ResumeRecord:
        record = ResumeRecord(id=str(uuid.uuid4()), user_id=user_id, raw_text=raw_text, file_name=file_name)
        await asyncio.to_thread(self._insert_resume, record)
        return record

    async def get_resume(self, resume_id: str) -> ResumeRecord | None:
        return await asyncio.to_thread(self._get_resume, resume_id)

    # --- jobs ---

    async def add_job(
        self,
        user_id: str,
        resume_id: str,
        job_title: str,
        job_description: str = "",
        job_url: str | None = None,
    ) -> JobRecord:
        record = JobRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            resume_id=resume_id,
            job_title=job_title,
            job_description=job_description,
            job_url=job_url,
        )
        await asyncio.to_thread(self._insert_job, record)
        return record

    async def get_job(self, job_id: str) -> JobRecord | None:
        return await asyncio.to_thread(self._get_job, job_id)

    async def list_jobs(self, resume_id: str | None = None) -> list[JobRecord]:
        return await asyncio.to_thread(self._list_jobs, resume_id)

    async def update_job(self, job_id: str, **fields: Any) -> None:
        """Update the given columns and bump ``updated_at``."""
        unknown = set(fields) - set(_JOB_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")
        await asyncio.to_thread(self._update_job, job_id, fields)

    async def set_status(self, job_id: str, status: JobStatus, error_message: str | None = None) -> None:
        await self.update_job(job_id, generation_status=status.value, error_message=error_message)

    async def mark_failed(self, job_id: str, error_message: str) -> None:
        await self.set_status(job_id, JobStatus.FAILED, error_message)

    async def delete_job(self, job_id: str) -> bool:
        return await asyncio.to_thread(self._delete_job, job_id)

    async def count_jobs_for_resume(self, resume_id: str) -> int:
        return await asyncio.to_thread(
            self._count, "SELECT COUNT(*) FROM jobs WHERE resume_id = ?", (resume_id,)
        )

    async def count_completed(self, user_id: str) -> int:
        return await asyncio.to_thread(
            self._count,
            "SELECT COUNT(*) FROM jobs WHERE user_id = ? AND generation_status = ?",
            (user_id, JobStatus.COMPLETED.value),
        )

    # --- sync helpers ---

    def _insert_resume(self, record: ResumeRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO resumes (id, user_id, raw_text, file_name, created_at) VALUES (?, ?, ?, ?, ?)",
                (record.id, record.user_id, record.raw_text, record.file_name, record.created_at.isoformat()),
            )

    def _get_resume(self, resume_id: str) -> ResumeRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, user_id, raw_text, file_name, created_at FROM resumes WHERE id = ?",
                (resume_id,),
            ).fetchone()
        if row is None:
            return None
        return ResumeRecord(
            id=row[0],
            user_id=row[1],
            raw_text=row[2],
            file_name=row[3],
            created_at=datetime.fromisoformat(row[4]),
        )

    def _insert_job(self, record: JobRecord) -> None:
        values = _dump_job(record)
        placeholders = ", ".join("?" for _ in _JOB_COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO jobs ({', '.join(_JOB_COLUMNS)}) VALUES ({placeholders})",
                tuple(values[c] for c in _JOB_COLUMNS),
            )

    def _get_job(self, job_id: str) -> JobRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(_JOB_COLUMNS)} FROM jobs WHERE id = ?", (job_id,)
            ).fetchone()
        return _load_job(row) if row else None

    def _list_jobs(self, resume_id: str | None) -> list[JobRecord]:
        query = f"SELECT {', '.join(_JOB_COLUMNS)} FROM jobs"
        params: tuple = ()
        if resume_id is not None:
            query += " WHERE resume_id = ?"
            params = (resume_id,)
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY updated_at DESC", params).fetchall()
        return [_load_job(row) for row in rows]

    def _update_job(self, job_id: str, fields: dict[str, Any]) -> None:
        fields = {**fields, "updated_at": datetime.now().isoformat()}
        encoded = {
            key: json.dumps(value, ensure_ascii=False) if key in _JSON_COLUMNS and value is not None else value
            for key, value in fields.items()
        }
        assignments = ", ".join(f"{key} = ?" for key in encoded)
        with self._connect() as conn:
            conn.execute(f"UPDATE jobs SET {assignments} WHERE id = ?", (*encoded.values(), job_id))

    def _delete_job(self, job_id: str) -> bool:
        with self._connect() as conn:
            return conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,)).rowcount > 0

    def _count(self, sql: str, params: tuple) -> int:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchone()[0]


def _dump_job(record: JobRecord) -> dict[str, Any]:
    data = record.model_dump(mode="json")
    for key in _JSON_COLUMNS:
        if data[key] is not None:
            data[key] = json.dumps(data[key], ensure_ascii=False)
    return data


def _load_job(row: tuple) -> JobRecord:
    data = dict(zip(_JOB_COLUMNS, row))
    for key in _JSON_COLUMNS:
        if data[key] is not None:
            data[key] = json.loads(data[key])
    data["updated_at"] = datetime.fromisoformat(data["updated_at"])
    return JobRecord(**data)
