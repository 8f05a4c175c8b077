"""Stage 6: Recommendations - prioritized advice for the candidate."""

from __future__ import annotations

import logging

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.models.analysis import (
    PRIORITY_LEVELS,
    RECOMMENDATION_CATEGORIES,
    MissingSkillsAnalysis,
    RecommendationsAnalysis,
)
from ats_tailor.models.blocks import TailoredBlocks
from ats_tailor.models.integrity import StageResult
from ats_tailor.pipeline.integrity import coerce_labels
from ats_tailor.pipeline.stage import PipelineStage, to_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a senior career coach. Give specific, prioritized recommendations that
improve the candidate's chances for this job.

Cover:
1. content: what to add, change or emphasize in the resume
2. skill_gap: which missing skills to acquire first
3. strategy: how to position themselves, what to stress in a cover letter
4. network / preparation: quick wins before applying

Give 4-6 recommendations.

Respond with a single JSON object:
{
  "recommendations": [
    {
      "priority": "high",
      "category": "skill_gap",
      "title": "Get an Azure certification",
      "description": "Concrete, actionable advice",
      "impact": "Could raise the fit score by 10-15 points",
      "timeframe": "1-2 weeks"
    }
  ]
}
priority: high | medium | low. category: skill_gap | content | strategy | network | preparation."""


class Recommender(PipelineStage):
    name = "recommendations"
    temperature = 0.2

    async def recommend(
        self,
        session: ConversationSession,
        fit_score: int,
        missing_skills: MissingSkillsAnalysis,
        tailored: TailoredBlocks,
    ) -> StageResult[RecommendationsAnalysis]:
        prompt = f"""{SYSTEM_PROMPT}

Now complete step 6.

FIT SCORE: {fit_score}%

MISSING SKILLS ANALYSIS:
{to_json(missing_skills.model_dump(mode="json", by_alias=True))}

TAILORED RESUME CONTENT:
{to_json(tailored.to_payload()["blocks"])}"""

        data = await self._ask(session, prompt)
        items = data.get("recommendations")
        warnings = [
            *coerce_labels(self.name, items, "priority", PRIORITY_LEVELS, "medium"),
            *coerce_labels(self.name, items, "category", RECOMMENDATION_CATEGORIES, "strategy"),
        ]
        analysis = self._validate(RecommendationsAnalysis, data)
        logger.info("Generated %d recommendation(s)", len(analysis.recommendations))
        return StageResult(analysis, warnings)
