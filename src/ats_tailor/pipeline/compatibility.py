"""Stage 1: Compatibility - how the resume lines up against the job."""

from __future__ import annotations

import logging

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.models.analysis import CompatibilityAnalysis
from ats_tailor.models.integrity import StageResult
from ats_tailor.pipeline.stage import PipelineStage

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are an ATS (Applicant Tracking System) and resume analyst. Assess how well a
candidate's resume matches a job description.

Identify:
1. OVERLAP AREAS: skills, experience and qualifications that match the job requirements
2. GAP AREAS: requirements in the job description that are missing or weak in the resume
3. STRATEGIC FOCUS: which parts of the resume should be emphasized when tailoring

Cover hard skills (tools, languages, platforms) and soft skills (leadership,
communication). Refer to actual resume and job description content.

Respond with a single JSON object:
{
  "overlapAreas": ["5 years of Python matches the 'senior Python developer' requirement"],
  "gapAreas": ["No Azure experience (required)"],
  "strategicFocus": ["Lead with Python data pipeline work", "Frame AWS work as transferable cloud experience"]
}"""


class CompatibilityAnalyst(PipelineStage):
    name = "compatibility"
    temperature = 0.1

    async def analyze(
        self,
        session: ConversationSession,
        resume_text: str,
        job_description: str,
        job_title: str,
    ) -> StageResult[CompatibilityAnalysis]:
        """Compare the resume with the job and return overlaps, gaps and focus areas."""
        prompt = f"""{SYSTEM_PROMPT}

Now complete step 1.

JOB TITLE: {job_title}

JOB DESCRIPTION:
{job_description}

CANDIDATE RESUME:
{resume_text}"""

        data = await self._ask(session, prompt)
        analysis = self._validate(CompatibilityAnalysis, data)
        logger.info(
            "Compatibility: %d overlaps, %d gaps, %d focus areas",
            len(analysis.overlap_areas), len(analysis.gap_areas), len(analysis.strategic_focus),
        )
        return StageResult(analysis)
