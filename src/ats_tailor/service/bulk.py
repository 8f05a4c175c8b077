"""Bulk generation: one resume tailored against many job postings."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any

from ats_tailor.service.handler import (
    PAYMENT_REQUIRED,
    GenerationHandler,
    HandlerResponse,
    error_response,
)
from ats_tailor.service.paywall import AllowAllPaywall, Paywall
from ats_tailor.storage.job_store import JobStore
from ats_tailor.templates.loader import TEMPLATE_NAMES

logger = logging.getLogger(__name__)

SECONDS_PER_JOB = 15


class BulkGenerator:
    """Creates pending jobs for a resume and runs the handler on each.

    At most ``concurrency`` generations are in flight at once. A failed job
    is reported in its own result and never stops the others.
    """

    def __init__(
        self,
        jobs: JobStore,
        handler: GenerationHandler,
        *,
        paywall: Paywall | None = None,
        concurrency: int = 3,
    ):
        self.jobs = jobs
        self.handler = handler
        self.paywall = paywall or AllowAllPaywall()
        self.concurrency = max(1, concurrency)

    async def generate(
        self,
        resume_id: str,
        jobs: list[dict[str, Any]],
        template_name: str = "A",
    ) -> HandlerResponse:
        """Each job is a dict with ``title`` and optional ``description`` / ``url``."""
        if not resume_id or not isinstance(jobs, list) or not jobs:
            return error_response(400, "invalid_input", "resumeId and jobs array are required")
        if template_name not in TEMPLATE_NAMES:
            return error_response(
                400, "invalid_input", f"templateName must be one of {', '.join(TEMPLATE_NAMES)}"
            )
        untitled = [i for i, job in enumerate(jobs) if not isinstance(job, dict) or not job.get("title")]
        if untitled:
            return error_response(400, "invalid_input", f"jobs at positions {untitled} have no title")

        resume = await self.jobs.get_resume(resume_id)
        if resume is None:
            return error_response(404, "not_found", "Resume not found")

        for decision in (
            await self.paywall.check_bulk(resume.user_id, resume_id, len(jobs)),
            await self.paywall.check_generation(resume.user_id),
        ):
            if not decision.allowed:
                return error_response(
                    402, PAYMENT_REQUIRED, decision.message or "Payment required", reason=decision.reason
                )

        created = [
            await self.jobs.add_job(
                resume.user_id,
                resume_id,
                job["title"],
                job.get("description") or "",
                job.get("url"),
            )
            for job in jobs
        ]
        job_ids = [job.id for job in created]
        estimated = math.ceil(len(jobs) * SECONDS_PER_JOB)
        logger.info(
            "Bulk generation of %d job(s) for resume %s (estimated %ds)",
            len(jobs), resume_id, estimated,
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(job_id: str) -> HandlerResponse:
            async with semaphore:
                return await self.handler.handle({"jobId": job_id, "templateName": template_name})

        responses = await asyncio.gather(*(run_one(job_id) for job_id in job_ids))
        succeeded = sum(1 for r in responses if r.ok)
        logger.info("Bulk generation finished: %d/%d succeeded", succeeded, len(job_ids))

        return HandlerResponse(
            200,
            {
                "success": True,
                "jobIds": job_ids,
                "estimatedTime": estimated,
                "message": f"Generated {succeeded} of {len(job_ids)} tailored resumes",
                "results": [
                    {"jobId": job_id, "statusCode": r.status_code, **r.body}
                    for job_id, r in zip(job_ids, responses)
                ],
            },
        )
