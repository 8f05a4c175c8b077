"""Stage 7: Layout Decision - place every tailored block into a template section."""

from __future__ import annotations

import logging

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.models.blocks import TailoredBlocks
from ats_tailor.models.integrity import StageResult
from ats_tailor.models.layout import LayoutDecision
from ats_tailor.pipeline.integrity import layout_warnings
from ats_tailor.pipeline.stage import PipelineStage, to_json
from ats_tailor.templates.loader import TemplateConstraints

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a resume layout designer. Decide which template section each content
block goes in, and in what order.

Goals:
1. Respect the template constraints (columns, lines per section, font sizes)
2. Put high-priority blocks (8-10) first, above the fold
3. Keep a logical flow: contact, summary, experience, education, skills, projects, certifications
4. For two-column templates balance "main" (60-70% width) and "sidebar" (30-40%)

EVERY block id must appear exactly once across all sections. Never omit a
block, whatever its priority. Single-column templates use only "header" and
"main".

Respond with a single JSON object:
{
  "layout": {
    "header": ["contact-1"],
    "main": ["summary-1", "experience-1", "experience-2"],
    "sidebar": ["skills-1", "education-1"],
    "footer": []
  },
  "reasoning": "Why blocks were placed where they are"
}"""


class LayoutPlanner(PipelineStage):
    name = "layout"
    temperature = 0.1

    async def plan(
        self,
        session: ConversationSession,
        tailored: TailoredBlocks,
        template_name: str,
        constraints: TemplateConstraints,
    ) -> StageResult[LayoutDecision]:
        """Ask for a placement of all blocks; coverage gaps are reported, not patched."""
        id_list = "\n".join(f"- {b.id} ({b.category}, priority {b.priority})" for b in tailored.blocks)
        prompt = f"""{SYSTEM_PROMPT}

Now complete step 7. You MUST place ALL {len(tailored.blocks)} blocks from step 3:
{id_list}

TEMPLATE: {template_name}

TEMPLATE CONSTRAINTS:
{to_json(constraints.model_dump())}

CONTENT BLOCKS (with priorities):
{to_json(tailored.to_payload()["blocks"])}"""

        data = await self._ask(session, prompt)
        decision = self._validate(LayoutDecision, data)
        warnings = layout_warnings(tailored, decision)
        logger.info(
            "Layout: %s",
            {name: len(ids) for name, ids in decision.layout.ordered()},
        )
        return StageResult(decision, warnings)
