"""Stage 3: Tailoring - reword blocks for the job and assign priorities."""

from __future__ import annotations

import logging

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.models.analysis import CompatibilityAnalysis
from ats_tailor.models.blocks import RawExtractedBlocks, TailoredBlocks
from ats_tailor.models.integrity import StageResult
from ats_tailor.pipeline.integrity import tailoring_warnings
from ats_tailor.pipeline.stage import PipelineStage, to_json

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a resume content optimizer. Rewrite extracted resume blocks so they
match a specific job, without losing any content.

Tailoring MEANS:
- Rewording bullets with the job description's keywords and terminology
- Quantifying impact where the original gives numbers
- Emphasizing transferable skills where there is no exact match
- Ordering the blocks so the most relevant come first
- Giving EVERY block a "priority" from 1 to 10 (9-10 = directly matches the job)

Tailoring does NOT mean:
- Removing, merging or splitting blocks
- Dropping bullets, skills, projects, certifications or dates
- Changing a block's id or category

Hard rules:
- Output exactly the same block ids as the input, one block per input block.
- Every entry keeps exactly the same number of bullets / list items.
- Priority orders content; it never removes content.
- Preserve all facts: dates, company names, schools, numbers, technologies.

Respond with a single JSON object with the same shape as the input, plus
"priority" on every block:
{"blocks": [{"id": "...", "category": "...", "priority": 9, "content": ...}], "detectedCategories": [...]}"""


class BlockTailor(PipelineStage):
    name = "tailoring"
    temperature = 0.1

    async def tailor(
        self,
        session: ConversationSession,
        raw: RawExtractedBlocks,
        job_description: str,
        job_title: str,
        compatibility: CompatibilityAnalysis,
    ) -> StageResult[TailoredBlocks]:
        """Reword ``raw`` for the job; parity with ``raw`` is checked, not enforced."""
        prompt = f"""{SYSTEM_PROMPT}

Now complete step 3. Use the compatibility analysis from step 1 to steer
ordering and emphasis (overlap areas 9-10, gap-related content 6-8).

JOB TITLE: {job_title}

JOB DESCRIPTION:
{job_description}

COMPATIBILITY ANALYSIS:
{to_json(compatibility.model_dump(by_alias=True))}

EXTRACTED BLOCKS ({len(raw.blocks)} blocks, ids: {", ".join(raw.ids)}):
{to_json(raw.to_payload())}"""

        data = await self._ask(session, prompt)
        tailored = self._validate(TailoredBlocks, data)
        warnings = tailoring_warnings(raw, tailored)
        logger.info(
            "Tailored %d/%d blocks, %d integrity warning(s)",
            len(tailored.blocks), len(raw.blocks), len(warnings),
        )
        return StageResult(tailored, warnings)
