"""Pydantic models for extracted and tailored resume content blocks."""

from __future__ import annotations

from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, model_validator

Category = Literal[
    "contact",
    "summary",
    "experience",
    "education",
    "skills",
    "certifications",
    "projects",
    "awards",
    "publications",
    "volunteer",
    "languages",
    "interests",
]

CATEGORIES: tuple[str, ...] = get_args(Category)


class ContentBlock(BaseModel):
    """One self-contained unit of resume content (a job, a degree, a skill list)."""

    id: str = Field(min_length=1)
    category: Category
    # Either a flat list of strings or one object; a list holding objects fails validation.
    content: list[str] | dict[str, Any]
    priority: int | None = Field(default=None, ge=1, le=10)

    def item_counts(self) -> dict[str, int]:
        """Number of sub-items per list-valued field (bullets, technologies, ...)."""
        if isinstance(self.content, list):
            return {"items": len(self.content)}
        return {key: len(value) for key, value in self.content.items() if isinstance(value, list)}

    @property
    def bullet_count(self) -> int:
        if isinstance(self.content, dict):
            bullets = self.content.get("bullets")
            return len(bullets) if isinstance(bullets, list) else 0
        return 0


class RawExtractedBlocks(BaseModel):
    """Job-agnostic transcription of a resume into blocks (no priorities)."""

    model_config = ConfigDict(populate_by_name=True)

    blocks: list[ContentBlock]
    detected_categories: list[str] = Field(default_factory=list, alias="detectedCategories")

    @model_validator(mode="after")
    def check_unique_ids(self):
        seen: set[str] = set()
        duplicates = []
        for block in self.blocks:
            if block.id in seen:
                duplicates.append(block.id)
            seen.add(block.id)
        if duplicates:
            raise ValueError(f"duplicate block ids: {sorted(set(duplicates))}")
        return self

    @property
    def ids(self) -> list[str]:
        return [b.id for b in self.blocks]

    def by_category(self, category: str) -> list[ContentBlock]:
        return [b for b in self.blocks if b.category == category]

    def get(self, block_id: str) -> ContentBlock | None:
        for block in self.blocks:
            if block.id == block_id:
                return block
        return None

    def to_payload(self) -> dict:
        """JSON-ready dict in the wire (camelCase) shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TailoredBlocks(RawExtractedBlocks):
    """Same blocks as the raw extraction, reworded and carrying priorities."""
