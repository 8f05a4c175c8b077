"""Pydantic models for the advisory stages: compatibility, fit score, gaps, recommendations."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

IMPORTANCE_LEVELS = ("critical", "high", "medium", "low")
PRIORITY_LEVELS = ("high", "medium", "low")
RECOMMENDATION_CATEGORIES = ("skill_gap", "content", "strategy", "network", "preparation")

KEYWORDS_MAX = 40
EXPERIENCE_MAX = 40
QUALIFICATIONS_MAX = 20


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class CompatibilityAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    overlap_areas: list[str] = Field(alias="overlapAreas")
    gap_areas: list[str] = Field(alias="gapAreas")
    strategic_focus: list[str] = Field(alias="strategicFocus")


class ScoreBreakdown(BaseModel):
    keywords: int = Field(ge=0, le=KEYWORDS_MAX)
    experience: int = Field(ge=0, le=EXPERIENCE_MAX)
    qualifications: int = Field(ge=0, le=QUALIFICATIONS_MAX)

    @property
    def total(self) -> int:
        return self.keywords + self.experience + self.qualifications


class FitScore(BaseModel):
    score: int = Field(ge=0, le=100)
    breakdown: ScoreBreakdown
    reasoning: str = ""


class LearningSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str  # certification, course, bootcamp, book, practice
    name: str
    provider: str = ""
    estimated_time: str = Field(default="", alias="estimatedTime")
    cost: str = ""
    link: str = ""


class MissingSkill(BaseModel):
    skill: str
    importance: Literal["critical", "high", "medium", "low"]
    reason: str = ""
    suggestions: list[LearningSuggestion] = Field(default_factory=list)

    @field_validator("importance", mode="before")
    @classmethod
    def normalize_importance(cls, value):
        return _lower(value)


class MissingSkillsAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    missing_skills: list[MissingSkill] = Field(alias="missingSkills")


class Recommendation(BaseModel):
    priority: Literal["high", "medium", "low"]
    category: Literal["skill_gap", "content", "strategy", "network", "preparation"]
    title: str
    description: str
    impact: str = ""
    timeframe: str = ""

    @field_validator("priority", "category", mode="before")
    @classmethod
    def normalize_labels(cls, value):
        return _lower(value)


class RecommendationsAnalysis(BaseModel):
    recommendations: list[Recommendation]
