"""Main pipeline orchestrator - runs the seven stages over one conversation session."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ats_tailor.clients.conversation import DEFAULT_TURN_TIMEOUT, ConversationSession
from ats_tailor.clients.llm_client import ModelGateway
from ats_tailor.models.analysis import (
    CompatibilityAnalysis,
    FitScore,
    MissingSkillsAnalysis,
    RecommendationsAnalysis,
)
from ats_tailor.models.blocks import RawExtractedBlocks, TailoredBlocks
from ats_tailor.models.cache import ContentBundle
from ats_tailor.models.integrity import IntegrityWarning
from ats_tailor.models.layout import LayoutDecision
from ats_tailor.pipeline.compatibility import CompatibilityAnalyst
from ats_tailor.pipeline.extractor import BlockExtractor
from ats_tailor.pipeline.fit_scorer import FitScorer
from ats_tailor.pipeline.gap_detector import GapDetector
from ats_tailor.pipeline.integrity import log_warnings
from ats_tailor.pipeline.layout_planner import LayoutPlanner
from ats_tailor.pipeline.recommender import Recommender
from ats_tailor.pipeline.tailor import BlockTailor
from ats_tailor.templates.loader import load_template

logger = logging.getLogger(__name__)

MASTER_SYSTEM_PROMPT = """\
You are an expert resume optimization assistant working through a fixed
seven-step process for one resume and one job posting:

1. Compatibility analysis
2. Raw content extraction (job-agnostic)
3. Content tailoring
4. Fit scoring
5. Skill gap detection
6. Recommendations
7. Layout decision

Each user message names the step to perform and its exact output format.
Later steps build on your earlier answers in this conversation. Never invent
experience, dates, employers or qualifications that are not in the resume.
Always answer with a single valid JSON object and nothing else."""

STAGE_ORDER: tuple[str, ...] = (
    "compatibility",
    "raw_extraction",
    "tailoring",
    "fit_score",
    "gap_detection",
    "recommendations",
    "layout",
)

PhaseCallback = Callable[[str, str], None]


@dataclass
class PipelineResult:
    """Complete result from the seven-stage pipeline."""

    compatibility: CompatibilityAnalysis
    raw_blocks: RawExtractedBlocks
    blocks: TailoredBlocks
    fit_score: FitScore
    missing_skills: MissingSkillsAnalysis
    recommendations: RecommendationsAnalysis
    layout: LayoutDecision
    warnings: list[IntegrityWarning] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    elapsed_seconds: float = 0.0
    session_id: str = ""

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def critical_warnings(self) -> list[IntegrityWarning]:
        return [w for w in self.warnings if w.critical]

    def to_bundle(self) -> ContentBundle:
        """The cacheable subset; raw blocks are subsumed by the tailored ones."""
        return ContentBundle(
            tailored_blocks=self.blocks,
            layout_decision=self.layout,
            fit_score=self.fit_score,
            missing_skills=self.missing_skills.missing_skills,
            recommendations=self.recommendations.recommendations,
            warnings=self.warnings,
        )


class PipelineOrchestrator:
    """Runs Compatibility through Layout Decision strictly in order.

    A fresh session is opened for every run and closed when the run ends.
    Any stage error aborts the run and propagates unchanged.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        *,
        mode: str = "local",
        turn_timeout: float = DEFAULT_TURN_TIMEOUT,
        max_attempts: int = 1,
        retry_wait_min: float = 1.0,
        retry_wait_max: float = 10.0,
    ):
        self.gateway = gateway
        self.mode = mode
        self.turn_timeout = turn_timeout
        retry = {
            "max_attempts": max_attempts,
            "retry_wait_min": retry_wait_min,
            "retry_wait_max": retry_wait_max,
        }
        self.compatibility = CompatibilityAnalyst(**retry)
        self.extractor = BlockExtractor(**retry)
        self.tailor = BlockTailor(**retry)
        self.fit_scorer = FitScorer(**retry)
        self.gap_detector = GapDetector(**retry)
        self.recommender = Recommender(**retry)
        self.layout_planner = LayoutPlanner(**retry)

    async def open_session(self) -> ConversationSession:
        return await ConversationSession.create(
            self.gateway, MASTER_SYSTEM_PROMPT, mode=self.mode, timeout=self.turn_timeout
        )

    async def run(
        self,
        resume_text: str,
        job_description: str,
        job_title: str,
        template_name: str = "A",
        *,
        on_phase: PhaseCallback | None = None,
    ) -> PipelineResult:
        """Run the full pipeline for one (resume, job) pair.

        Args:
            resume_text: Plain text of the candidate's resume.
            job_description: Full job description text.
            job_title: Title of the posting.
            template_name: Template the layout is planned for (A, B or C).
            on_phase: Optional callback(stage_name, detail) for progress.
        """
        start = time.monotonic()
        constraints = load_template(template_name)
        warnings: list[IntegrityWarning] = []

        def _notify(phase: str, detail: str = "") -> None:
            logger.info("[%s] %s", phase, detail)
            if on_phase:
                on_phase(phase, detail)

        session = await self.open_session()
        try:
            _notify("compatibility", "Analyzing resume/job compatibility")
            compat = await self.compatibility.analyze(session, resume_text, job_description, job_title)
            warnings += compat.warnings

            _notify("raw_extraction", "Extracting content blocks")
            raw = await self.extractor.extract(session, resume_text)
            warnings += raw.warnings

            _notify("tailoring", f"Tailoring {len(raw.value.blocks)} blocks")
            tailored = await self.tailor.tailor(
                session, raw.value, job_description, job_title, compat.value
            )
            warnings += tailored.warnings

            _notify("fit_score", "Scoring fit")
            fit = await self.fit_scorer.score(session, resume_text, tailored.value, job_description)
            warnings += fit.warnings

            _notify("gap_detection", "Detecting missing skills")
            gaps = await self.gap_detector.detect(
                session, raw.value.by_category("skills"), job_description, job_title
            )
            warnings += gaps.warnings

            _notify("recommendations", "Generating recommendations")
            recs = await self.recommender.recommend(
                session, fit.value.score, gaps.value, tailored.value
            )
            warnings += recs.warnings

            _notify("layout", f"Deciding layout for template {template_name}")
            layout = await self.layout_planner.plan(
                session, tailored.value, template_name, constraints
            )
            warnings += layout.warnings
        finally:
            session.close()

        log_warnings(warnings)
        elapsed = time.monotonic() - start
        _notify("done", f"Fit score {fit.value.score}, {session.tokens_used} tokens, {elapsed:.1f}s")

        return PipelineResult(
            compatibility=compat.value,
            raw_blocks=raw.value,
            blocks=tailored.value,
            fit_score=fit.value,
            missing_skills=gaps.value,
            recommendations=recs.value,
            layout=layout.value,
            warnings=warnings,
            input_tokens=session.input_tokens,
            output_tokens=session.output_tokens,
            elapsed_seconds=elapsed,
            session_id=session.session_id,
        )
