"""Structural checks on model output that produce warnings, never exceptions."""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

from ats_tailor.models.blocks import RawExtractedBlocks, TailoredBlocks
from ats_tailor.models.integrity import IntegrityWarning, Severity
from ats_tailor.models.layout import LayoutDecision

logger = logging.getLogger(__name__)

# Substrings whose presence in the source text suggests a section that the
# extraction should have produced at least one block for.
SECTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "skills": ("skill",),
    "projects": ("project",),
    "education": ("education",),
    "experience": ("experience",),
    "certifications": ("certification", "certified"),
}

_BULLET_LINE = re.compile(r"^\s*(?:[-*•▪‣◦·]|\d{1,2}[.)])\s+\S")


def count_source_bullets(text: str) -> int:
    """Count lines in the source resume that look like list items."""
    return sum(1 for line in text.splitlines() if _BULLET_LINE.match(line))


def extraction_warnings(resume_text: str, raw: RawExtractedBlocks) -> list[IntegrityWarning]:
    """Heuristic diagnostics for the raw extraction stage."""
    warnings: list[IntegrityWarning] = []
    lowered = resume_text.lower()
    present = {b.category for b in raw.blocks}

    for category, keywords in SECTION_KEYWORDS.items():
        if any(k in lowered for k in keywords) and category not in present:
            warnings.append(
                IntegrityWarning(
                    stage="raw_extraction",
                    code="missing_category",
                    severity=Severity.CRITICAL,
                    message=f"Resume mentions {category} but no {category} block was extracted",
                    details={"category": category},
                )
            )

    source_bullets = count_source_bullets(resume_text)
    extracted_items = sum(sum(b.item_counts().values()) for b in raw.blocks)
    if extracted_items < source_bullets:
        warnings.append(
            IntegrityWarning(
                stage="raw_extraction",
                code="bullet_shortfall",
                message=(
                    f"Source has {source_bullets} list lines but only "
                    f"{extracted_items} items were extracted"
                ),
                details={"source": source_bullets, "extracted": extracted_items},
            )
        )

    detected = set(raw.detected_categories)
    if detected and detected != present:
        warnings.append(
            IntegrityWarning(
                stage="raw_extraction",
                code="detected_categories_mismatch",
                message="detectedCategories does not match the categories of the extracted blocks",
                details={
                    "declared_only": sorted(detected - present),
                    "undeclared": sorted(present - detected),
                },
            )
        )
    return warnings


def tailoring_warnings(raw: RawExtractedBlocks, tailored: TailoredBlocks) -> list[IntegrityWarning]:
    """Check that tailoring changed wording and order only."""
    warnings: list[IntegrityWarning] = []

    def warn(code: str, message: str, severity: Severity = Severity.WARNING, **details) -> None:
        warnings.append(
            IntegrityWarning(
                stage="tailoring", code=code, message=message, severity=severity, details=details
            )
        )

    if len(tailored.blocks) != len(raw.blocks):
        warn(
            "block_count_mismatch",
            f"Tailoring returned {len(tailored.blocks)} blocks, extraction had {len(raw.blocks)}",
            Severity.CRITICAL,
            raw=len(raw.blocks),
            tailored=len(tailored.blocks),
        )

    raw_ids = set(raw.ids)
    tailored_ids = set(tailored.ids)
    missing = [i for i in raw.ids if i not in tailored_ids]
    unexpected = [i for i in tailored.ids if i not in raw_ids]
    if missing:
        warn("missing_block_ids", f"Tailoring dropped blocks: {missing}", Severity.CRITICAL, ids=missing)
    if unexpected:
        warn("unexpected_block_ids", f"Tailoring invented blocks: {unexpected}", ids=unexpected)

    for block in tailored.blocks:
        if block.priority is None:
            warn("missing_priority", f"Block {block.id} has no priority", block_id=block.id)
        original = raw.get(block.id)
        if original is None:
            continue
        if original.category != block.category:
            warn(
                "category_changed",
                f"Block {block.id} changed category {original.category} -> {block.category}",
                block_id=block.id,
            )
        if original.item_counts() != block.item_counts():
            warn(
                "item_count_mismatch",
                f"Block {block.id} item counts changed",
                block_id=block.id,
                raw=original.item_counts(),
                tailored=block.item_counts(),
            )
    return warnings


def coerce_labels(
    stage: str,
    items: object,
    field_name: str,
    allowed: tuple[str, ...],
    default: str,
) -> list[IntegrityWarning]:
    """Replace off-vocabulary labels in ``items`` (a list of dicts) in place.

    Known labels are lowercased and stripped. Absent fields are left alone so
    schema validation still reports them.
    """
    if not isinstance(items, list):
        return []
    warnings: list[IntegrityWarning] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict) or field_name not in item:
            continue
        value = item[field_name]
        normalized = value.strip().lower() if isinstance(value, str) else value
        if normalized in allowed:
            item[field_name] = normalized
            continue
        item[field_name] = default
        warnings.append(
            IntegrityWarning(
                stage=stage,
                code="unknown_label",
                message=f"Item {index} has {field_name} {value!r}; using {default!r}",
                details={"index": index, "field": field_name, "value": value, "default": default},
            )
        )
    return warnings


@dataclass
class CoverageReport:
    missing: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not (self.missing or self.duplicates or self.unknown)


def layout_coverage(blocks: TailoredBlocks, decision: LayoutDecision) -> CoverageReport:
    """Compare the multiset of placed ids against the tailored block ids."""
    placed = decision.layout.all_ids()
    counts = Counter(placed)
    known = set(blocks.ids)
    return CoverageReport(
        missing=[i for i in blocks.ids if i not in counts],
        duplicates=sorted(i for i, n in counts.items() if n > 1),
        unknown=sorted(i for i in counts if i not in known),
    )


def layout_warnings(blocks: TailoredBlocks, decision: LayoutDecision) -> list[IntegrityWarning]:
    report = layout_coverage(blocks, decision)
    warnings: list[IntegrityWarning] = []
    if report.missing:
        warnings.append(
            IntegrityWarning(
                stage="layout",
                code="layout_missing_blocks",
                severity=Severity.CRITICAL,
                message=f"Layout omits {len(report.missing)} block(s): {report.missing}",
                details={"ids": report.missing},
            )
        )
    if report.duplicates:
        warnings.append(
            IntegrityWarning(
                stage="layout",
                code="layout_duplicate_blocks",
                message=f"Layout places blocks more than once: {report.duplicates}",
                details={"ids": report.duplicates},
            )
        )
    if report.unknown:
        warnings.append(
            IntegrityWarning(
                stage="layout",
                code="layout_unknown_blocks",
                message=f"Layout references unknown block ids: {report.unknown}",
                details={"ids": report.unknown},
            )
        )
    return warnings


def log_warnings(warnings: list[IntegrityWarning]) -> None:
    for w in warnings:
        level = logging.ERROR if w.critical else logging.WARNING
        logger.log(level, "[%s] %s: %s", w.stage, w.code, w.message)
