"""Tests for the fpdf2 document renderer."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fpdf import FPDF

from ats_tailor.export.pdf_renderer import (
    PdfRenderer,
    PlacementMismatchError,
    _Painter,
    _dates,
    _label,
    _safe_text,
    check_coverage,
)
from ats_tailor.models.blocks import ContentBlock
from ats_tailor.pipeline.placement import build_placement
from ats_tailor.templates.loader import load_template


@pytest.fixture
def blocks(tailored_blocks) -> list[ContentBlock]:
    return tailored_blocks.blocks


@pytest.fixture
def placement(tailored_blocks, layout_decision):
    return build_placement(tailored_blocks, layout_decision).entries


class TestPdfRenderer:
    @pytest.mark.parametrize("template_name", ["A", "B", "C"])
    def test_renders_pdf(self, blocks, placement, template_name):
        data = PdfRenderer().render(blocks, placement, template_name)

        assert isinstance(data, bytes)
        assert data.startswith(b"%PDF")

    def test_two_column_template_uses_sidebar(self, blocks, placement):
        with patch.object(_Painter, "paint_columns", autospec=True) as columns:
            PdfRenderer().render(blocks, placement, "B")

        columns.assert_called_once()
        _, main, sidebar = columns.call_args.args
        assert [b.id for b, _ in main] == ["experience-1", "experience-2"]
        assert [b.id for b, _ in sidebar] == ["skills-1", "education-1"]

    def test_single_column_folds_sidebar(self, blocks, placement):
        with patch.object(_Painter, "paint_column", autospec=True) as column, patch.object(
            _Painter, "paint_columns", autospec=True
        ) as columns:
            PdfRenderer().render(blocks, placement, "A")

        columns.assert_not_called()
        _, placed = column.call_args.args
        assert [b.id for b, _ in placed] == ["experience-1", "experience-2", "skills-1", "education-1"]

    def test_accent_color_only_for_c(self):
        assert _Painter(FPDF(), load_template("C")).accent == (0x1F, 0x4E, 0x79)
        assert _Painter(FPDF(), load_template("A")).accent == (0, 0, 0)

    def test_long_content_renders(self, placement, blocks):
        long_blocks = [
            b.model_copy(update={"content": {**b.content, "bullets": [f"Bullet {i} " * 12 for i in range(60)]}})
            if b.category == "experience"
            else b
            for b in blocks
        ]

        data = PdfRenderer().render(long_blocks, placement, "B")

        assert data.startswith(b"%PDF")

    def test_non_latin_text_does_not_fail(self, blocks, placement):
        blocks[0] = blocks[0].model_copy(update={"content": {"name": "Zo\u00eb \u674e \u2014 \u2022"}})
        assert PdfRenderer().render(blocks, placement, "C").startswith(b"%PDF")


class TestCoverage:
    def test_unplaced_block(self, blocks, placement):
        del placement["education-1"]
        with pytest.raises(PlacementMismatchError, match="education-1"):
            PdfRenderer().render(blocks, placement, "A")

    def test_unknown_placement(self, blocks, placement):
        with pytest.raises(PlacementMismatchError, match="ghost-1"):
            check_coverage(blocks[:-1], {**placement, "ghost-1": placement["education-1"]})

    def test_exact_match_passes(self, blocks, placement):
        check_coverage(blocks, placement)


class TestHelpers:
    def test_safe_text(self):
        assert _safe_text("a \u2013 b \u2022 c") == "a - b - c"
        assert _safe_text("café") == "café"
        assert _safe_text("\u674e") == "?"

    def test_dates(self):
        assert _dates({"startDate": "2021", "endDate": "Present"}) == "2021 - Present"
        assert _dates({"dates": "2019-2020", "startDate": "x"}) == "2019-2020"
        assert _dates({"graduationDate": "2018"}) == "2018"
        assert _dates({}) == ""

    def test_label(self):
        assert _label("credentialId") == "Credential id"
        assert _label("gpa") == "Gpa"
