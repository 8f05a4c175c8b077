"""Stage 4: Fit Scoring - 0-100 match score split into keywords/experience/qualifications."""

from __future__ import annotations

import logging

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.models.analysis import FitScore
from ats_tailor.models.blocks import TailoredBlocks
from ats_tailor.models.integrity import IntegrityWarning, StageResult
from ats_tailor.pipeline.stage import PipelineStage, to_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an ATS scoring expert. Score how well a tailored resume matches a job
description on a 0-100 scale.

The score is the sum of three components:
- keywords (max 40): technical skills, tools and frameworks named in the job description
- experience (max 40): years, relevant roles, industry background
- qualifications (max 20): education, certifications, domain expertise

Guidelines: 90-100 excellent, 75-89 good, 60-74 moderate, 40-59 weak, 0-39 poor.
Be realistic; most resumes land between 60 and 80.

Respond with a single JSON object:
{
  "score": 78,
  "breakdown": {"keywords": 32, "experience": 30, "qualifications": 16},
  "reasoning": "Specific matches and gaps behind each component"
}
"score" MUST equal keywords + experience + qualifications."""


class FitScorer(PipelineStage):
    name = "fit_score"
    temperature = 0.1

    async def score(
        self,
        session: ConversationSession,
        resume_text: str,
        tailored: TailoredBlocks,
        job_description: str,
    ) -> StageResult[FitScore]:
        """Score the tailored blocks against the job.

        When the reported score disagrees with its breakdown, the breakdown
        wins and a warning is recorded.
        """
        prompt = f"""{SYSTEM_PROMPT}

Now complete step 4 using the tailored blocks from step 3.

JOB DESCRIPTION:
{job_description}

ORIGINAL RESUME:
{resume_text}

TAILORED RESUME BLOCKS:
{to_json(tailored.to_payload()["blocks"])}"""

        data = await self._ask(session, prompt)
        fit = self._validate(FitScore, data)

        warnings: list[IntegrityWarning] = []
        total = fit.breakdown.total
        if total != fit.score:
            warnings.append(
                IntegrityWarning(
                    stage=self.name,
                    code="score_breakdown_mismatch",
                    message=f"Reported score {fit.score} != breakdown sum {total}; using {total}",
                    details={"reported": fit.score, "breakdown_sum": total},
                )
            )
            fit = fit.model_copy(update={"score": total})

        logger.info("Fit score: %d (%s)", fit.score, fit.breakdown.model_dump())
        return StageResult(fit, warnings)
