"""Tests for UsageLog model and UsageStore."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from ats_tailor.logging.models import UsageLog
from ats_tailor.logging.usage_store import UsageStore


class TestUsageLog:
    def test_create_minimal(self):
        log = UsageLog(mode="generate")
        assert log.mode == "generate"
        assert log.session_id == "anonymous"
        assert log.success is True
        assert log.content_cache_hit is False
        assert log.id  # uuid auto-generated

    def test_unique_ids(self):
        assert UsageLog(mode="generate").id != UsageLog(mode="generate").id

    def test_timestamp_auto(self):
        before = datetime.now()
        log = UsageLog(mode="generate")
        after = datetime.now()
        assert before <= log.timestamp <= after


@pytest.fixture
def store(tmp_path: Path) -> UsageStore:
    return UsageStore(db_path=tmp_path / "test_usage.db")


class TestUsageStore:
    def test_save_and_get(self, store: UsageStore):
        log = UsageLog(
            mode="generate",
            session_id="local-abc",
            job_id="job-1",
            template_name="B",
            model="gpt-4o-mini",
            fit_score=78,
            render_cache_hit=True,
            warning_count=2,
            total_input_tokens=700,
            total_output_tokens=350,
            estimated_cost_usd=0.0003,
        )
        store.save_log(log)

        [loaded] = store.get_logs()
        assert loaded == log

    def test_filter_by_job(self, store: UsageStore):
        store.save_log(UsageLog(mode="generate", job_id="job-1"))
        store.save_log(UsageLog(mode="generate", job_id="job-2"))

        logs = store.get_logs(job_id="job-2")
        assert [log.job_id for log in logs] == ["job-2"]

    def test_newest_first_and_limit(self, store: UsageStore):
        now = datetime.now()
        for minutes in (3, 1, 2):
            store.save_log(UsageLog(mode="generate", job_id=str(minutes), timestamp=now - timedelta(minutes=minutes)))

        logs = store.get_logs(limit=2)
        assert [log.job_id for log in logs] == ["1", "2"]

    def test_failure_round_trip(self, store: UsageStore):
        store.save_log(UsageLog(mode="generate", success=False, error_message="timeout"))
        [loaded] = store.get_logs()
        assert loaded.success is False
        assert loaded.error_message == "timeout"

    def test_monthly_stats(self, store: UsageStore):
        store.save_log(UsageLog(mode="generate", fit_score=80, total_input_tokens=100, estimated_cost_usd=0.01))
        store.save_log(
            UsageLog(mode="generate", fit_score=70, content_cache_hit=True, total_output_tokens=50)
        )
        store.save_log(UsageLog(mode="generate", success=False, error_message="timeout"))

        stats = store.get_monthly_stats()
        assert stats["total_runs"] == 3
        assert stats["total_input_tokens"] == 100
        assert stats["total_output_tokens"] == 50
        assert stats["avg_fit_score"] == 75.0
        assert stats["content_cache_hits"] == 1
        assert stats["success_rate"] == pytest.approx(200 / 3)
        assert stats["total_cost_usd"] == pytest.approx(0.01)
        assert stats["month"] == datetime.now().strftime("%Y-%m")

    def test_monthly_stats_ignores_previous_months(self, store: UsageStore):
        store.save_log(UsageLog(mode="generate", timestamp=datetime.now() - timedelta(days=62)))
        assert store.get_monthly_stats()["total_runs"] == 0

    def test_empty_stats(self, store: UsageStore):
        stats = store.get_monthly_stats()
        assert stats["total_runs"] == 0
        assert stats["avg_fit_score"] is None
        assert stats["success_rate"] == 0.0

    def test_total_cost(self, store: UsageStore):
        store.save_log(UsageLog(mode="generate", estimated_cost_usd=0.25))
        store.save_log(UsageLog(mode="bulk", estimated_cost_usd=0.5))
        assert store.get_total_cost() == pytest.approx(0.75)
