"""Pydantic models for the content (layer 1) and render (layer 2) cache entries."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ats_tailor.models.analysis import FitScore, MissingSkill, Recommendation
from ats_tailor.models.blocks import TailoredBlocks
from ats_tailor.models.integrity import IntegrityWarning
from ats_tailor.models.layout import LayoutDecision


class ContentBundle(BaseModel):
    """Everything the pipeline produced for one (resume, job) pair."""

    tailored_blocks: TailoredBlocks
    layout_decision: LayoutDecision
    fit_score: FitScore
    missing_skills: list[MissingSkill] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    warnings: list[IntegrityWarning] = Field(default_factory=list)


class ContentCacheEntry(BaseModel):
    id: str
    resume_id: str
    job_id: str
    bundle: ContentBundle
    created_at: datetime


class RenderCacheEntry(BaseModel):
    id: str
    content_cache_id: str
    template_name: str
    pdf_url: str
    created_at: datetime
