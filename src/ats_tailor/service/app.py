"""Builds the handler and its collaborators from an AppConfig."""

from __future__ import annotations

from dataclasses import dataclass

from ats_tailor.cache.content_cache import ContentCache
from ats_tailor.cache.render_cache import RenderCache
from ats_tailor.clients.llm_client import ModelGateway
from ats_tailor.config import AppConfig
from ats_tailor.export.pdf_renderer import PdfRenderer
from ats_tailor.logging.usage_store import UsageStore
from ats_tailor.pipeline.orchestrator import PipelineOrchestrator
from ats_tailor.service.bulk import BulkGenerator
from ats_tailor.service.handler import GenerationHandler
from ats_tailor.service.paywall import QuotaPaywall
from ats_tailor.storage.artifact_store import ArtifactStore
from ats_tailor.storage.job_store import JobStore


@dataclass
class Services:
    jobs: JobStore
    content_cache: ContentCache
    render_cache: RenderCache
    usage: UsageStore
    handler: GenerationHandler
    bulk: BulkGenerator


def build_services(config: AppConfig, gateway: ModelGateway | None = None) -> Services:
    gateway = gateway or ModelGateway(
        config.llm.api_key,
        model=config.llm.model,
        base_url=config.llm.base_url,
        log_payloads=config.pipeline.log_payloads,
    )
    jobs = JobStore(config.storage.resolved_db_path)
    content_cache = ContentCache(config.cache.resolved_db_path)
    render_cache = RenderCache(config.cache.resolved_db_path)
    usage = UsageStore(config.storage.resolved_usage_db_path)
    paywall = QuotaPaywall(
        jobs,
        pdf_limit=config.paywall.pdf_limit,
        jobs_per_resume_limit=config.paywall.jobs_per_resume_limit,
    )
    orchestrator = PipelineOrchestrator(
        gateway,
        mode=config.llm.conversation_mode,
        turn_timeout=config.llm.turn_timeout,
        max_attempts=config.pipeline.max_attempts,
        retry_wait_min=config.pipeline.retry_wait_min,
        retry_wait_max=config.pipeline.retry_wait_max,
    )
    handler = GenerationHandler(
        jobs=jobs,
        content_cache=content_cache,
        render_cache=render_cache,
        orchestrator=orchestrator,
        renderer=PdfRenderer(),
        artifacts=ArtifactStore(config.storage.resolved_artifacts_dir),
        paywall=paywall,
        usage_store=usage,
    )
    bulk = BulkGenerator(jobs, handler, paywall=paywall, concurrency=config.pipeline.bulk_concurrency)
    return Services(jobs, content_cache, render_cache, usage, handler, bulk)
