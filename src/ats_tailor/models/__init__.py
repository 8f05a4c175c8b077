"""Data models for the resume tailoring pipeline."""

from ats_tailor.models.analysis import (
    CompatibilityAnalysis,
    FitScore,
    LearningSuggestion,
    MissingSkill,
    MissingSkillsAnalysis,
    Recommendation,
    RecommendationsAnalysis,
    ScoreBreakdown,
)
from ats_tailor.models.blocks import (
    CATEGORIES,
    ContentBlock,
    RawExtractedBlocks,
    TailoredBlocks,
)
from ats_tailor.models.cache import ContentBundle, ContentCacheEntry, RenderCacheEntry
from ats_tailor.models.integrity import IntegrityWarning, Severity, StageResult
from ats_tailor.models.job import JobRecord, JobStatus, ResumeRecord
from ats_tailor.models.layout import LayoutDecision, LayoutSections, PlacementEntry

__all__ = [
    "CATEGORIES",
    "CompatibilityAnalysis",
    "ContentBlock",
    "ContentBundle",
    "ContentCacheEntry",
    "FitScore",
    "IntegrityWarning",
    "JobRecord",
    "JobStatus",
    "LayoutDecision",
    "LayoutSections",
    "LearningSuggestion",
    "MissingSkill",
    "MissingSkillsAnalysis",
    "PlacementEntry",
    "RawExtractedBlocks",
    "Recommendation",
    "RecommendationsAnalysis",
    "RenderCacheEntry",
    "ResumeRecord",
    "ScoreBreakdown",
    "Severity",
    "StageResult",
    "TailoredBlocks",
]
