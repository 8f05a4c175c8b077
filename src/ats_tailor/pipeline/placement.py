"""Flatten a LayoutDecision into the per-block placement map the renderer consumes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ats_tailor.models.blocks import TailoredBlocks
from ats_tailor.models.integrity import IntegrityWarning, Severity
from ats_tailor.models.layout import LayoutDecision, PlacementEntry

logger = logging.getLogger(__name__)


@dataclass
class Placement:
    entries: dict[str, PlacementEntry] = field(default_factory=dict)
    warnings: list[IntegrityWarning] = field(default_factory=list)

    def ordered_ids(self, section: str | None = None) -> list[str]:
        items = sorted(self.entries.items(), key=lambda kv: kv[1].order)
        return [block_id for block_id, entry in items if section is None or entry.section == section]

    def to_payload(self) -> dict[str, dict]:
        return {
            block_id: entry.model_dump(by_alias=True)
            for block_id, entry in sorted(self.entries.items(), key=lambda kv: kv[1].order)
        }


def build_placement(
    blocks: TailoredBlocks,
    decision: LayoutDecision,
    *,
    font_size: int = 11,
    has_sidebar: bool = True,
) -> Placement:
    """Walk header, main, sidebar, footer and number ids with one global counter.

    Footer ids land in ``main``. Ids the layout references but that do not
    exist, and repeats of an id already placed, are skipped. Blocks the
    layout left out are appended to ``main`` after everything else so the
    renderer still receives every block. Each correction is recorded as a
    warning. Templates without a sidebar fold sidebar ids into ``main``.
    """
    placement = Placement()
    known = set(blocks.ids)
    skipped_unknown: list[str] = []
    skipped_duplicate: list[str] = []
    order = 0

    def place(block_id: str, section: str) -> None:
        nonlocal order
        placement.entries[block_id] = PlacementEntry(section=section, order=order, font_size=font_size)
        order += 1

    for section, ids in decision.layout.ordered():
        target = "main" if section == "footer" else section
        if target == "sidebar" and not has_sidebar:
            target = "main"
        for block_id in ids:
            if block_id not in known:
                skipped_unknown.append(block_id)
            elif block_id in placement.entries:
                skipped_duplicate.append(block_id)
            else:
                place(block_id, target)

    appended = [block_id for block_id in blocks.ids if block_id not in placement.entries]
    for block_id in appended:
        place(block_id, "main")

    if skipped_unknown:
        placement.warnings.append(
            IntegrityWarning(
                stage="placement",
                code="placement_unknown_blocks",
                message=f"Dropped layout ids with no matching block: {skipped_unknown}",
                details={"ids": skipped_unknown},
            )
        )
    if skipped_duplicate:
        placement.warnings.append(
            IntegrityWarning(
                stage="placement",
                code="placement_duplicate_blocks",
                message=f"Kept only the first placement of: {skipped_duplicate}",
                details={"ids": skipped_duplicate},
            )
        )
    if appended:
        placement.warnings.append(
            IntegrityWarning(
                stage="placement",
                code="placement_appended_blocks",
                severity=Severity.CRITICAL,
                message=f"Layout omitted {len(appended)} block(s); appended to main: {appended}",
                details={"ids": appended},
            )
        )

    logger.debug("Placement built for %d block(s)", len(placement.entries))
    return placement
