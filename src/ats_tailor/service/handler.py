"""Request handler: one tailored PDF for a (job, template) request, with two cache layers."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any

from ats_tailor.cache.content_cache import ContentCache
from ats_tailor.cache.render_cache import RenderCache
from ats_tailor.errors import TailorError
from ats_tailor.export.pdf_renderer import DocumentRenderer
from ats_tailor.logging.cost_calculator import calculate_cost
from ats_tailor.logging.models import UsageLog
from ats_tailor.logging.usage_store import UsageStore
from ats_tailor.models.cache import ContentBundle, ContentCacheEntry
from ats_tailor.models.job import JobRecord, JobStatus
from ats_tailor.pipeline.orchestrator import PipelineOrchestrator
from ats_tailor.pipeline.placement import build_placement
from ats_tailor.service.paywall import AllowAllPaywall, Paywall
from ats_tailor.storage.artifact_store import ArtifactStore, artifact_key
from ats_tailor.storage.job_store import JobStore
from ats_tailor.templates.loader import TEMPLATE_NAMES, load_template

logger = logging.getLogger(__name__)

# Model calls skipped on a layer 1 hit: compatibility, tailoring, fit score, gaps, recommendations.
AI_CALLS_SAVED_ON_HIT = 5

PAYMENT_REQUIRED = "payment_required"

PUBLIC_MESSAGES: dict[str, str] = {
    "configuration_error": "The AI service is not configured.",
    "upstream_error": "The AI service returned an error. Please try again.",
    "empty_response": "The AI service returned no answer. Please try again.",
    "parse_error": "The AI service returned an unreadable answer. Please try again.",
    "malformed_response": "The AI service returned an unexpected answer. Please try again.",
    "timeout": "The AI service took too long to respond. Please try again.",
    "internal_error": "Resume generation failed.",
}


@dataclass
class HandlerResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def error_response(status_code: int, code: str, message: str, **extra: Any) -> HandlerResponse:
    return HandlerResponse(
        status_code, {"success": False, "error": {"code": code, "message": message, **extra}}
    )


class GenerationHandler:
    """Authorize, reuse or compute content, reuse or render the PDF, persist, respond.

    The handler is the only place that turns failures into a ``failed`` job
    and an error status code. Cache writes are best effort.
    """

    def __init__(
        self,
        *,
        jobs: JobStore,
        content_cache: ContentCache,
        render_cache: RenderCache,
        orchestrator: PipelineOrchestrator,
        renderer: DocumentRenderer,
        artifacts: ArtifactStore,
        paywall: Paywall | None = None,
        usage_store: UsageStore | None = None,
    ):
        self.jobs = jobs
        self.content_cache = content_cache
        self.render_cache = render_cache
        self.orchestrator = orchestrator
        self.renderer = renderer
        self.artifacts = artifacts
        self.paywall = paywall or AllowAllPaywall()
        self.usage_store = usage_store

    async def handle(self, payload: dict[str, Any]) -> HandlerResponse:
        job_id = payload.get("jobId") if isinstance(payload, dict) else None
        template_name = payload.get("templateName") if isinstance(payload, dict) else None
        if not isinstance(job_id, str) or not job_id.strip():
            return error_response(400, "invalid_input", "jobId is required")
        if template_name not in TEMPLATE_NAMES:
            return error_response(
                400, "invalid_input", f"templateName must be one of {', '.join(TEMPLATE_NAMES)}"
            )

        job = await self.jobs.get_job(job_id)
        if job is None:
            return error_response(404, "not_found", "Job not found")
        resume = await self.jobs.get_resume(job.resume_id)
        if resume is None:
            await self.jobs.mark_failed(job.id, "resume_not_found")
            return error_response(404, "not_found", "Resume not found")
        if not (resume.raw_text or "").strip():
            await self.jobs.mark_failed(job.id, "resume_text_missing")
            return error_response(400, "resume_text_missing", "Resume text not extracted")

        decision = await self.paywall.check_generation(job.user_id)
        if not decision.allowed:
            await self.jobs.mark_failed(job.id, PAYMENT_REQUIRED)
            return error_response(
                402, PAYMENT_REQUIRED, decision.message or "Payment required", reason=decision.reason
            )

        await self.jobs.set_status(job.id, JobStatus.GENERATING)
        started = time.monotonic()
        usage = UsageLog(mode="generate", user_id=job.user_id, job_id=job.id, template_name=template_name)
        try:
            response = await self._generate(job, resume.raw_text, template_name, usage)
        except TailorError as exc:
            logger.error("Generation failed for job %s: %s", job.id, exc)
            response = await self._fail(job, exc.code, usage)
        except Exception as exc:
            logger.exception("Unexpected error generating job %s", job.id)
            response = await self._fail(job, "internal_error", usage, detail=str(exc))

        usage.elapsed_seconds = time.monotonic() - started
        await self._save_usage(usage)
        return response

    async def delete_job(self, job_id: str) -> HandlerResponse:
        """Remove a job and everything cached for it, render entries first."""
        job = await self.jobs.get_job(job_id)
        if job is None:
            return error_response(404, "not_found", "Job not found")

        content_ids = await self.content_cache.ids_for_job(job_id)
        renders = await self.render_cache.delete_for_content(content_ids)
        contents = await self.content_cache.delete_for_job(job_id)
        files = await self.artifacts.delete_prefix(f"{job.user_id}/{job.resume_id}/{job.id}")
        await self.jobs.delete_job(job_id)
        logger.info(
            "Deleted job %s (%d render, %d content cache entries, %d files)",
            job_id, renders, contents, files,
        )
        return HandlerResponse(
            200,
            {"success": True, "jobId": job_id, "deleted": {"renderCache": renders, "contentCache": contents}},
        )

    # --- internals ---

    async def _generate(
        self, job: JobRecord, resume_text: str, template_name: str, usage: UsageLog
    ) -> HandlerResponse:
        constraints = load_template(template_name)

        entry = await self.content_cache.get(job.resume_id, job.id)
        content_hit = entry is not None
        if entry is not None:
            logger.info("Content cache hit for job %s", job.id)
            bundle = entry.bundle
        else:
            result = await self.orchestrator.run(
                resume_text, job.job_description, job.job_title, template_name
            )
            bundle = result.to_bundle()
            model = self.orchestrator.gateway.model
            usage.session_id = result.session_id
            usage.model = model
            usage.total_input_tokens = result.input_tokens
            usage.total_output_tokens = result.output_tokens
            usage.estimated_cost_usd = calculate_cost([(model, result.input_tokens, result.output_tokens)])
            entry = await self._store_content(job, bundle)

        placement = build_placement(
            bundle.tailored_blocks,
            bundle.layout_decision,
            font_size=constraints.font_sizes.body,
            has_sidebar=constraints.has_sidebar,
        )
        warnings = [*bundle.warnings, *placement.warnings]

        render_entry = await self.render_cache.get(entry.id, template_name) if entry else None
        render_hit = render_entry is not None
        if render_entry is not None:
            logger.info("Render cache hit for job %s template %s", job.id, template_name)
            pdf_url = render_entry.pdf_url
        else:
            document = await asyncio.to_thread(
                self.renderer.render, bundle.tailored_blocks.blocks, placement.entries, template_name
            )
            key = artifact_key(job.user_id, job.resume_id, job.id, template_name)
            pdf_url = await self.artifacts.upload(key, document)
            if entry is not None:
                await self._store_render(entry.id, template_name, pdf_url)

        fit = bundle.fit_score
        await self.jobs.update_job(
            job.id,
            generation_status=JobStatus.COMPLETED.value,
            template_used=template_name,
            pdf_url=pdf_url,
            tailored_json=bundle.tailored_blocks.to_payload(),
            fit_score=fit.score,
            fit_score_breakdown=fit.breakdown.model_dump(),
            missing_skills=[s.model_dump(mode="json", by_alias=True) for s in bundle.missing_skills],
            recommendations=[r.model_dump(mode="json") for r in bundle.recommendations],
            error_message=None,
        )

        usage.fit_score = fit.score
        usage.content_cache_hit = content_hit
        usage.render_cache_hit = render_hit
        usage.warning_count = len(warnings)

        return HandlerResponse(
            200,
            {
                "success": True,
                "jobId": job.id,
                "templateName": template_name,
                "pdfUrl": pdf_url,
                "aiInsights": {
                    "fitScore": fit.score,
                    "fitScoreBreakdown": fit.breakdown.model_dump(),
                    "missingSkillsCount": len(bundle.missing_skills),
                    "recommendationsCount": len(bundle.recommendations),
                },
                "cacheInfo": {
                    "contentCacheHit": content_hit,
                    "renderCacheHit": render_hit,
                    "aiCallsSaved": AI_CALLS_SAVED_ON_HIT if content_hit else 0,
                },
                "warnings": [w.model_dump(mode="json") for w in warnings],
            },
        )

    async def _store_content(self, job: JobRecord, bundle: ContentBundle) -> ContentCacheEntry | None:
        try:
            return await self.content_cache.put(job.resume_id, job.id, bundle)
        except sqlite3.Error as exc:
            logger.warning("Content cache write failed for job %s: %s", job.id, exc)
            return None

    async def _store_render(self, content_cache_id: str, template_name: str, pdf_url: str) -> None:
        try:
            await self.render_cache.put(content_cache_id, template_name, pdf_url)
        except sqlite3.Error as exc:
            logger.warning("Render cache write failed for %s/%s: %s", content_cache_id, template_name, exc)

    async def _fail(
        self, job: JobRecord, code: str, usage: UsageLog, detail: str | None = None
    ) -> HandlerResponse:
        await self.jobs.mark_failed(job.id, code)
        usage.success = False
        usage.error_message = detail or code
        return error_response(500, code, PUBLIC_MESSAGES.get(code, PUBLIC_MESSAGES["internal_error"]))

    async def _save_usage(self, usage: UsageLog) -> None:
        if self.usage_store is None:
            return
        try:
            await asyncio.to_thread(self.usage_store.save_log, usage)
        except sqlite3.Error as exc:
            logger.warning("Failed to save usage log: %s", exc)
