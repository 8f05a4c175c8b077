"""PDF rendering of placed content blocks using fpdf2 (pure Python, no system deps)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from ats_tailor.models.blocks import ContentBlock
from ats_tailor.models.layout import PlacementEntry
from ats_tailor.templates.loader import TemplateConstraints, load_template

logger = logging.getLogger(__name__)

SECTION_TITLES: dict[str, str] = {
    "summary": "Summary",
    "experience": "Experience",
    "education": "Education",
    "skills": "Skills",
    "certifications": "Certifications",
    "projects": "Projects",
    "awards": "Awards",
    "publications": "Publications",
    "volunteer": "Volunteer",
    "languages": "Languages",
    "interests": "Interests",
}

# Object fields shown as the entry heading, the line under it, and its date range.
_TITLE_KEYS = ("title", "position", "degree", "name")
_SUBTITLE_KEYS = ("company", "organization", "school", "institution", "issuer", "publisher")
_DATE_KEYS = ("dates", "startDate", "endDate", "graduationDate", "date")
_INLINE_CATEGORIES = {"skills", "languages", "interests"}

SIDEBAR_WIDTH_RATIO = 0.33
COLUMN_GAP = 6


class DocumentRenderer(Protocol):
    def render(
        self,
        blocks: list[ContentBlock],
        placement: Mapping[str, PlacementEntry],
        template_name: str,
    ) -> bytes: ...


class PlacementMismatchError(ValueError):
    """Blocks and placement disagree about which ids exist."""


def check_coverage(blocks: list[ContentBlock], placement: Mapping[str, PlacementEntry]) -> None:
    block_ids = {b.id for b in blocks}
    unplaced = sorted(block_ids - set(placement))
    unknown = sorted(set(placement) - block_ids)
    if unplaced or unknown:
        raise PlacementMismatchError(f"unplaced blocks: {unplaced}; placement for unknown ids: {unknown}")


class PdfRenderer:
    """Paints blocks in placement order onto an A4 page per template A, B or C."""

    def render(
        self,
        blocks: list[ContentBlock],
        placement: Mapping[str, PlacementEntry],
        template_name: str,
    ) -> bytes:
        check_coverage(blocks, placement)
        template = load_template(template_name)
        by_id = {b.id: b for b in blocks}

        def section_blocks(section: str) -> list[tuple[ContentBlock, PlacementEntry]]:
            placed = [(by_id[i], e) for i, e in placement.items() if e.section == section]
            return sorted(placed, key=lambda pair: pair[1].order)

        pdf = FPDF(format="A4")
        pdf.set_auto_page_break(auto=True, margin=15)
        pdf.set_margins(15, 15, 15)
        pdf.add_page()
        painter = _Painter(pdf, template)

        painter.paint_header(section_blocks("header"))

        sidebar = section_blocks("sidebar")
        if template.has_sidebar and sidebar:
            painter.paint_columns(section_blocks("main"), sidebar)
        else:
            # Single-column templates have nowhere else to put sidebar blocks.
            main = sorted(section_blocks("main") + sidebar, key=lambda pair: pair[1].order)
            painter.paint_column(main)

        logger.debug("Rendered %d block(s) with template %s", len(blocks), template_name)
        return bytes(pdf.output())


class _Painter:
    def __init__(self, pdf: FPDF, template: TemplateConstraints):
        self.pdf = pdf
        self.template = template
        self.fonts = template.font_sizes
        self.accent = _hex_to_rgb(template.accent_color) if template.accent_color else (0, 0, 0)

    # --- layout ---

    def paint_header(self, placed: list[tuple[ContentBlock, PlacementEntry]]) -> None:
        for block, entry in placed:
            if block.category == "contact" and isinstance(block.content, dict):
                self._contact(block.content)
            else:
                self._block(block, entry.font_size, heading=True)
        if placed:
            self._rule()

    def paint_column(self, placed: list[tuple[ContentBlock, PlacementEntry]]) -> None:
        previous = None
        for block, entry in placed:
            self._block(block, entry.font_size, heading=block.category != previous)
            previous = block.category

    def paint_columns(
        self,
        main: list[tuple[ContentBlock, PlacementEntry]],
        sidebar: list[tuple[ContentBlock, PlacementEntry]],
    ) -> None:
        pdf = self.pdf
        left, right = pdf.l_margin, pdf.r_margin
        usable = pdf.w - left - right
        sidebar_width = usable * SIDEBAR_WIDTH_RATIO
        top_page, top_y = pdf.page, pdf.get_y()

        pdf.set_left_margin(left)
        pdf.set_right_margin(right + sidebar_width + COLUMN_GAP)
        pdf.set_xy(left, top_y)
        self.paint_column(main)
        end_page, end_y = pdf.page, pdf.get_y()

        pdf.page = top_page
        pdf.set_left_margin(pdf.w - right - sidebar_width)
        pdf.set_right_margin(right)
        pdf.set_xy(pdf.l_margin, top_y)
        self.paint_column(sidebar)

        pdf.set_left_margin(left)
        pdf.set_right_margin(right)
        if pdf.page < end_page or (pdf.page == end_page and pdf.get_y() < end_y):
            pdf.page = end_page
            pdf.set_xy(left, end_y)

    # --- primitives ---

    def _line(self, text: str, size: float, style: str = "", height: float | None = None) -> None:
        pdf = self.pdf
        pdf.set_font("Helvetica", style=style, size=size)
        pdf.multi_cell(0, height or size * 0.5, _safe_text(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def _rule(self) -> None:
        pdf = self.pdf
        pdf.set_draw_color(*self.accent)
        pdf.line(pdf.l_margin, pdf.get_y() + 1, pdf.w - pdf.r_margin, pdf.get_y() + 1)
        pdf.ln(3)

    def _heading(self, category: str) -> None:
        pdf = self.pdf
        pdf.ln(self.template.spacing.between_sections * 3)
        pdf.set_text_color(*self.accent)
        self._line(SECTION_TITLES.get(category, category.title()).upper(), self.fonts.heading, "B")
        pdf.set_text_color(0, 0, 0)
        if self.template.accent_color:
            self._rule()

    def _contact(self, content: dict[str, Any]) -> None:
        pdf = self.pdf
        name = str(content.get("name") or "")
        if name:
            pdf.set_text_color(*self.accent)
            self._line(name, self.fonts.name, "B", height=self.fonts.name * 0.45)
            pdf.set_text_color(0, 0, 0)
        details = [str(v) for k, v in content.items() if k != "name" and _present(v) and not isinstance(v, list)]
        if details:
            self._line("  |  ".join(details), self.fonts.min_body)

    def _block(self, block: ContentBlock, size: int, *, heading: bool) -> None:
        if heading and block.category != "contact":
            self._heading(block.category)
        size = max(size, self.fonts.min_body)
        content = block.content

        if isinstance(content, list):
            if block.category in _INLINE_CATEGORIES:
                self._line(", ".join(content), size)
            else:
                for item in content:
                    self._line(f"- {item}", size)
            return

        title = _first(content, _TITLE_KEYS)
        subtitle = _first(content, _SUBTITLE_KEYS)
        dates = _dates(content)
        if title:
            self._line(title, size + 1, "B")
        byline = "  |  ".join(part for part in (subtitle, dates) if part)
        if byline:
            self._line(byline, size, "I")

        shown = {*_TITLE_KEYS, *_SUBTITLE_KEYS, *_DATE_KEYS}
        for key, value in content.items():
            if key in shown or not _present(value):
                continue
            if isinstance(value, list):
                if key == "bullets":
                    for item in value:
                        self._line(f"- {item}", size)
                else:
                    self._line(f"{_label(key)}: {', '.join(str(v) for v in value)}", size)
            elif isinstance(value, dict):
                self._line(f"{_label(key)}: {', '.join(f'{k} {v}' for k, v in value.items())}", size)
            elif key in ("text", "description"):
                self._line(str(value), size)
            else:
                self._line(f"{_label(key)}: {value}", size)
        self.pdf.ln(self.template.spacing.between_entries * 3)


def _present(value: Any) -> bool:
    return value not in (None, "", [], {})


def _first(content: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        if _present(content.get(key)):
            return str(content[key])
    return ""


def _dates(content: dict[str, Any]) -> str:
    if _present(content.get("dates")):
        return str(content["dates"])
    start, end = content.get("startDate"), content.get("endDate")
    if _present(start) or _present(end):
        return " - ".join(str(d) for d in (start, end) if _present(d))
    return _first(content, ("graduationDate", "date"))


def _label(key: str) -> str:
    spaced = "".join(f" {c.lower()}" if c.isupper() else c for c in key)
    return spaced.replace("_", " ").strip().capitalize()


def _hex_to_rgb(value: str) -> tuple[int, int, int]:
    value = value.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def _safe_text(text: str) -> str:
    """Built-in fonts are latin-1 only; replace anything else."""
    text = text.replace("\u2022", "-").replace("\u2013", "-").replace("\u2014", "-")
    return text.encode("latin-1", errors="replace").decode("latin-1")
