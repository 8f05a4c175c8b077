from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

TEMPLATE_NAMES = ("A", "B", "C")


class SectionLimit(BaseModel):
    max_lines: int
    preferred_categories: list[str] = Field(default_factory=list)


class FontSizes(BaseModel):
    name: int = 24
    heading: int = 14
    body: int = 11
    min_body: int = 9


class Spacing(BaseModel):
    between_sections: float = 1
    between_entries: float = 0.5


class TemplateConstraints(BaseModel):
    name: str
    type: str  # single-column, two-column, single-column-color
    columns: int = 1
    max_lines: int = 50
    sections: dict[str, SectionLimit]
    font_sizes: FontSizes = Field(default_factory=FontSizes)
    spacing: Spacing = Field(default_factory=Spacing)
    accent_color: str | None = None

    @property
    def has_sidebar(self) -> bool:
        return "sidebar" in self.sections


TEMPLATES_DIR = Path(__file__).parent / "layouts"


@lru_cache(maxsize=None)
def load_template(name: str) -> TemplateConstraints:
    """Load a template's layout constraints by name (A, B or C)."""
    path = TEMPLATES_DIR / f"{name}.yaml"
    if name not in TEMPLATE_NAMES or not path.exists():
        raise FileNotFoundError(f"Template not found: {name}")
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return TemplateConstraints(**data)


def list_templates() -> list[str]:
    """List available template names."""
    return sorted(p.stem for p in TEMPLATES_DIR.glob("*.yaml"))
