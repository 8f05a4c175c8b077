"""Pydantic models for layout decisions and renderer placement."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# Fixed iteration order when flattening a layout into a placement map.
SECTION_ORDER: tuple[str, ...] = ("header", "main", "sidebar", "footer")


class LayoutSections(BaseModel):
    header: list[str]
    main: list[str]
    sidebar: list[str] | None = None
    footer: list[str] | None = None

    def ordered(self) -> list[tuple[str, list[str]]]:
        return [(name, getattr(self, name) or []) for name in SECTION_ORDER]

    def all_ids(self) -> list[str]:
        """Every id across all sections, duplicates included."""
        return [block_id for _, ids in self.ordered() for block_id in ids]


class LayoutDecision(BaseModel):
    layout: LayoutSections
    reasoning: str = ""


class PlacementEntry(BaseModel):
    """Where and in what global order the renderer paints one block.

    Footer blocks are folded into ``main``; the renderer has no footer area.
    """

    model_config = ConfigDict(populate_by_name=True)

    section: Literal["header", "main", "sidebar"]
    order: int = Field(ge=0)
    font_size: int = Field(default=11, alias="fontSize")
