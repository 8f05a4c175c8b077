"""Stage 2: Raw Extraction - transcribe the resume into blocks, job-agnostic."""

from __future__ import annotations

import logging

from ats_tailor.clients.conversation import ConversationSession
from ats_tailor.models.blocks import CATEGORIES, RawExtractedBlocks
from ats_tailor.models.integrity import IntegrityWarning, StageResult
from ats_tailor.pipeline.integrity import extraction_warnings
from ats_tailor.pipeline.stage import PipelineStage

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = f"""\
You are a resume parser. Transcribe the resume below into structured content
blocks EXACTLY as written.

Rules:
- Do NOT rewrite, summarize, reorder within an entry, or omit anything.
- One block per logical unit: one block per job, per degree, per project,
  per certification. Skills go in one block as a flat list of strings.
- Keep EVERY bullet of every job and project. The bullet count of each entry
  must equal the source.
- Give every block a unique id of the form "<category>-<n>" (experience-1,
  experience-2, ...). Do not assign priorities.
- A block's content is either a flat list of strings or a single object,
  never a mix.
- Allowed categories: {", ".join(CATEGORIES)}.

Respond with a single JSON object:
{{
  "blocks": [
    {{"id": "contact-1", "category": "contact", "content": {{"name": "Jane Doe", "email": "jane@example.com", "phone": "+1 555 0100", "location": "Austin, TX", "linkedin": "linkedin.com/in/janedoe"}}}},
    {{"id": "summary-1", "category": "summary", "content": {{"text": "Summary exactly as written"}}}},
    {{"id": "experience-1", "category": "experience", "content": {{"title": "Software Engineer", "company": "Acme", "location": "Austin, TX", "startDate": "Jan 2020", "endDate": "Present", "bullets": ["bullet as written", "bullet as written"]}}}},
    {{"id": "education-1", "category": "education", "content": {{"degree": "BSc Computer Science", "school": "State University", "location": "", "graduationDate": "2018", "gpa": "", "honors": ""}}}},
    {{"id": "skills-1", "category": "skills", "content": ["Python", "SQL", "Docker"]}},
    {{"id": "projects-1", "category": "projects", "content": {{"title": "Project", "description": "", "bullets": ["as written"], "technologies": ["Python"], "link": ""}}}},
    {{"id": "certifications-1", "category": "certifications", "content": {{"title": "AWS Solutions Architect", "issuer": "Amazon", "date": "2022", "credentialId": ""}}}}
  ],
  "detectedCategories": ["contact", "summary", "experience", "education", "skills", "projects", "certifications"]
}}"""


class BlockExtractor(PipelineStage):
    """Sent as an isolated turn: it never sees the job description or earlier turns."""

    name = "raw_extraction"
    temperature = 0.1
    isolated = True

    async def extract(
        self,
        session: ConversationSession,
        resume_text: str,
    ) -> StageResult[RawExtractedBlocks]:
        """Transcribe ``resume_text`` into blocks without priorities."""
        prompt = f"""{SYSTEM_PROMPT}

Now complete step 2.

RESUME TEXT:
{resume_text}"""

        data = await self._ask(session, prompt)
        raw = self._validate(RawExtractedBlocks, data)

        warnings: list[IntegrityWarning] = []
        prioritized = [b.id for b in raw.blocks if b.priority is not None]
        if prioritized:
            warnings.append(
                IntegrityWarning(
                    stage=self.name,
                    code="unexpected_priority",
                    message=f"Raw blocks carried priorities, discarded: {prioritized}",
                    details={"ids": prioritized},
                )
            )
            for block in raw.blocks:
                block.priority = None

        warnings.extend(extraction_warnings(resume_text, raw))
        logger.info(
            "Extracted %d blocks (%s), %d experience bullets",
            len(raw.blocks),
            ", ".join(sorted({b.category for b in raw.blocks})),
            sum(b.bullet_count for b in raw.by_category("experience")),
        )
        return StageResult(raw, warnings)
