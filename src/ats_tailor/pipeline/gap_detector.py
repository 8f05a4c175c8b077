"""Stage 5: Gap Detection - skills the job wants that the resume lacks."""

from __future__ import annotations

import logging

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.models.analysis import IMPORTANCE_LEVELS, MissingSkillsAnalysis
from ats_tailor.models.blocks import ContentBlock
from ats_tailor.models.integrity import StageResult
from ats_tailor.pipeline.integrity import coerce_labels
from ats_tailor.pipeline.stage import PipelineStage, to_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a career development advisor. Identify skills and qualifications that
the job requires but the candidate's resume is missing or weak on.

For each missing skill give:
1. The specific skill or qualification
2. Importance: critical (required), high (strongly preferred), medium (nice to have), low
3. Why it matters for this job
4. Concrete ways to acquire it: certifications, courses, bootcamps, books, practice

Focus on the 3-5 most important gaps.

Respond with a single JSON object:
{
  "missingSkills": [
    {
      "skill": "Azure Cloud Platform",
      "importance": "critical",
      "reason": "Required in the job description; resume only shows AWS",
      "suggestions": [
        {"type": "certification", "name": "Azure Fundamentals (AZ-900)", "provider": "Microsoft",
         "estimatedTime": "1-2 weeks", "cost": "$99", "link": "https://learn.microsoft.com/"}
      ]
    }
  ]
}"""


class GapDetector(PipelineStage):
    name = "gap_detection"
    temperature = 0.2

    async def detect(
        self,
        session: ConversationSession,
        skill_blocks: list[ContentBlock],
        job_description: str,
        job_title: str,
    ) -> StageResult[MissingSkillsAnalysis]:
        """Find the job's requirements missing from ``skill_blocks``."""
        skills = [b.model_dump(mode="json", exclude_none=True) for b in skill_blocks]
        prompt = f"""{SYSTEM_PROMPT}

Now complete step 5.

JOB TITLE: {job_title}

JOB DESCRIPTION REQUIREMENTS:
{job_description}

CANDIDATE'S CURRENT SKILLS (from the resume):
{to_json(skills)}"""

        data = await self._ask(session, prompt)
        warnings = coerce_labels(
            self.name, data.get("missingSkills"), "importance", IMPORTANCE_LEVELS, "medium"
        )
        analysis = self._validate(MissingSkillsAnalysis, data)
        logger.info("Detected %d missing skill(s)", len(analysis.missing_skills))
        return StageResult(analysis, warnings)
