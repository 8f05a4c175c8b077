"""Usage gating for PDF generation and bulk submissions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from ats_tailor.storage.job_store import JobStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaywallDecision:
    allowed: bool
    reason: str | None = None
    message: str | None = None


ALLOWED = PaywallDecision(True)


class Paywall(Protocol):
    async def check_generation(self, user_id: str) -> PaywallDecision: ...

    async def check_bulk(self, user_id: str, resume_id: str, job_count: int) -> PaywallDecision: ...


class AllowAllPaywall:
    async def check_generation(self, user_id: str) -> PaywallDecision:
        return ALLOWED

    async def check_bulk(self, user_id: str, resume_id: str, job_count: int) -> PaywallDecision:
        return ALLOWED


class QuotaPaywall:
    """Counts completed generations and jobs per resume against fixed limits.

    A limit of ``None`` means unlimited.
    """

    def __init__(
        self,
        jobs: JobStore,
        *,
        pdf_limit: int | None = None,
        jobs_per_resume_limit: int | None = None,
    ):
        self.jobs = jobs
        self.pdf_limit = pdf_limit
        self.jobs_per_resume_limit = jobs_per_resume_limit

    async def check_generation(self, user_id: str) -> PaywallDecision:
        if self.pdf_limit is None:
            return ALLOWED
        used = await self.jobs.count_completed(user_id)
        if used >= self.pdf_limit:
            logger.info("User %s hit the PDF limit (%d/%d)", user_id, used, self.pdf_limit)
            return PaywallDecision(
                False,
                reason="pdf_limit_reached",
                message=f"PDF limit reached ({used}/{self.pdf_limit}). Upgrade to generate more.",
            )
        return ALLOWED

    async def check_bulk(self, user_id: str, resume_id: str, job_count: int) -> PaywallDecision:
        if self.jobs_per_resume_limit is None:
            return ALLOWED
        existing = await self.jobs.count_jobs_for_resume(resume_id)
        if existing + job_count > self.jobs_per_resume_limit:
            return PaywallDecision(
                False,
                reason="jobs_per_resume_limit",
                message=(
                    f"This resume already has {existing} job(s); adding {job_count} would exceed "
                    f"the limit of {self.jobs_per_resume_limit}."
                ),
            )
        return ALLOWED
