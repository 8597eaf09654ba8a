"""Data models for stack diffs."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from cdkdiff.assembly.models import Stage


class DiffOutcome(str, Enum):
    """Result kind of diffing one stack."""

    CHANGED = "changed"
    UNCHANGED = "unchanged"
    ERROR = "error"


class ResourceChanges(BaseModel):
    """Structural change data extracted from a diff."""

    added: int = 0
    updated: int = 0
    removed: int = 0
    replacements: list[str] = Field(default_factory=list)  # "AWS::Type LogicalId"

    @property
    def total(self) -> int:
        return self.added + self.updated + self.removed


class EngineDiff(BaseModel):
    """What the diff engine reports for one stack."""

    has_changes: bool = False
    body: str = ""
    error: str | None = None
    raw_output: str = ""
    resources: ResourceChanges | None = None


class DiffResult(BaseModel):
    """The recorded outcome of diffing one stack in one run."""

    stage: Stage
    outcome: DiffOutcome
    body: str = ""
    raw_output: str = ""
    error: str | None = None
    resources: ResourceChanges | None = None
    # None when the diff method cannot see replacements
    replacements: list[str] | None = None

    @property
    def has_replacements(self) -> bool:
        return bool(self.replacements)
