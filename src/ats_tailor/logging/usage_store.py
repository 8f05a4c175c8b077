"""SQLite-backed usage log storage."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path

from ats_tailor.logging.models import UsageLog

DEFAULT_DB_PATH = Path.home() / ".ats-tailor" / "usage.db"

_COLUMNS = (
    "id", "session_id", "timestamp", "mode", "user_id", "job_id", "template_name",
    "model", "fit_score", "content_cache_hit", "render_cache_hit", "warning_count",
    "elapsed_seconds", "total_input_tokens", "total_output_tokens",
    "estimated_cost_usd", "success", "error_message",
)


class UsageStore:
    """SQLite-backed store for generation usage logs with WAL mode."""

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
                CREATE TABLE IF NOT EXISTS usage_logs (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    mode TEXT NOT NULL,
                    user_id TEXT,
                    job_id TEXT,
                    template_name TEXT,
                    model TEXT,
                    fit_score INTEGER,
                    content_cache_hit INTEGER NOT NULL DEFAULT 0,
                    render_cache_hit INTEGER NOT NULL DEFAULT 0,
                    warning_count INTEGER NOT NULL DEFAULT 0,
                    elapsed_seconds REAL NOT NULL DEFAULT 0.0,
                    total_input_tokens INTEGER NOT NULL DEFAULT 0,
                    total_output_tokens INTEGER NOT NULL DEFAULT 0,
                    estimated_cost_usd REAL NOT NULL DEFAULT 0.0,
                    success INTEGER NOT NULL DEFAULT 1,
                    error_message TEXT
                )
            """)

    def save_log(self, log: UsageLog) -> None:
        """Persist a usage log entry."""
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO usage_logs ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                (
                    log.id,
                    log.session_id,
                    log.timestamp.isoformat(),
                    log.mode,
                    log.user_id,
                    log.job_id,
                    log.template_name,
                    log.model,
                    log.fit_score,
                    int(log.content_cache_hit),
                    int(log.render_cache_hit),
                    log.warning_count,
                    log.elapsed_seconds,
                    log.total_input_tokens,
                    log.total_output_tokens,
                    log.estimated_cost_usd,
                    int(log.success),
                    log.error_message,
                ),
            )

    def get_logs(
        self,
        job_id: str | None = None,
        limit: int = 50,
    ) -> list[UsageLog]:
        """Retrieve usage logs, newest first, optionally for one job."""
        query = f"SELECT {', '.join(_COLUMNS)} FROM usage_logs"
        params: tuple = ()
        if job_id is not None:
            query += " WHERE job_id = ?"
            params = (job_id,)
        query += " ORDER BY timestamp DESC LIMIT ?"
        with self._connect() as conn:
            rows = conn.execute(query, (*params, limit)).fetchall()
        return [self._row_to_log(row) for row in rows]

    def get_monthly_stats(self) -> dict:
        """Get aggregated stats for the current month."""
        now = datetime.now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        with self._connect() as conn:
            row = conn.execute(
                """SELECT
                       COUNT(*) as total_runs,
                       SUM(total_input_tokens) as total_input,
                       SUM(total_output_tokens) as total_output,
                       SUM(estimated_cost_usd) as total_cost,
                       AVG(fit_score) as avg_fit_score,
                       SUM(content_cache_hit) as content_hits,
                       SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END) as success_count
                   FROM usage_logs
                   WHERE timestamp >= ?""",
                (month_start.isoformat(),),
            ).fetchone()
        return {
            "total_runs": row[0] or 0,
            "total_input_tokens": row[1] or 0,
            "total_output_tokens": row[2] or 0,
            "total_cost_usd": row[3] or 0.0,
            "avg_fit_score": round(row[4], 1) if row[4] is not None else None,
            "content_cache_hits": row[5] or 0,
            "success_rate": (row[6] / row[0] * 100) if row[0] else 0.0,
            "month": now.strftime("%Y-%m"),
        }

    def get_total_cost(self) -> float:
        """Get total estimated cost across all logs."""
        with self._connect() as conn:
            row = conn.execute("SELECT SUM(estimated_cost_usd) FROM usage_logs").fetchone()
        return row[0] or 0.0

    @staticmethod
    def _row_to_log(row: tuple) -> UsageLog:
        data = dict(zip(_COLUMNS, row))
        data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        for flag in ("content_cache_hit", "render_cache_hit", "success"):
            data[flag] = bool(data[flag])
        return UsageLog(**data)
