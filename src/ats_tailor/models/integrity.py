"""Integrity warnings and the tagged result every stage returns."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Severity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class IntegrityWarning(BaseModel):
    """A structural problem in model output that did not abort the run."""

    stage: str
    code: str
    message: str
    severity: Severity = Severity.WARNING
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def critical(self) -> bool:
        return self.severity is Severity.CRITICAL


@dataclass
class StageResult(Generic[T]):
    """Validated stage output plus any integrity warnings recorded for it."""

    value: T
    warnings: list[IntegrityWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings
