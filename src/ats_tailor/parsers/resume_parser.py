"""Plain-text extraction from uploaded resume files."""

from __future__ import annotations

import re
from pathlib import Path

SUPPORTED_SUFFIXES = (".pdf", ".docx", ".txt", ".md")

_INVISIBLE = re.compile(r"[\u200b\u200c\u200d\u00ad\u2060\ufeff]")
# Bullet glyphs that PDF and word-processor exports leave behind.
_BULLET_GLYPHS = re.compile(r"^(\s*)[●•◦◆■▪★○]\s*", re.MULTILINE)


class ResumeParseError(ValueError):
    """The file could not be turned into resume text."""


def parse_resume(file_path: str | Path) -> str:
    """Return normalized plain text for a PDF, DOCX, TXT or MD resume."""
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ResumeParseError(f"Unsupported file format: {path.suffix or '(none)'}")
    if suffix == ".pdf":
        text = _parse_pdf(path)
    elif suffix == ".docx":
        text = _parse_docx(path)
    else:
        text = path.read_text(encoding="utf-8")
    return normalize_text(text)


def normalize_text(text: str) -> str:
    """Strip invisible characters, unify bullets to "- " and squeeze blank lines.

    Bullets are normalized so the extraction checks can count list lines.
    """
    text = _INVISIBLE.sub("", text)
    text = _BULLET_GLYPHS.sub(r"\1- ", text)
    lines = [re.sub(r"[ \t]{2,}", " ", line).rstrip() for line in text.splitlines()]
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _parse_pdf(path: Path) -> str:
    import fitz  # pymupdf

    with fitz.open(str(path)) as doc:
        return "\n".join(page.get_text() for page in doc)


def _parse_docx(path: Path) -> str:
    from docx import Document

    doc = Document(str(path))
    return "\n".join(p.text for p in doc.paragraphs if p.text.strip())
