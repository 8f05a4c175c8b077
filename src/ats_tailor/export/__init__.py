"""Document rendering for ats-tailor."""
from ats_tailor.export.pdf_renderer import (
    DocumentRenderer,
    PdfRenderer,
    PlacementMismatchError,
)

__all__ = ["DocumentRenderer", "PdfRenderer", "PlacementMismatchError"]
