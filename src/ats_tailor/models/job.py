"""Pydantic models for persisted resumes and job postings."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class ResumeRecord(BaseModel):
    id: str
    user_id: str
    raw_text: str | None = None  # None until text has been extracted from the upload
    file_name: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class JobRecord(BaseModel):
    id: str
    user_id: str
    resume_id: str
    job_title: str
    job_description: str = ""
    job_url: str | None = None
    generation_status: JobStatus = JobStatus.PENDING
    template_used: str | None = None
    pdf_url: str | None = None
    tailored_json: dict[str, Any] | None = None
    fit_score: int | None = None
    fit_score_breakdown: dict[str, int] | None = None
    missing_skills: list[dict[str, Any]] | None = None
    recommendations: list[dict[str, Any]] | None = None
    error_message: str | None = None
    updated_at: datetime = Field(default_factory=datetime.now)
