"""Configuration management for cdkdiff."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from cdkdiff.exceptions import ConfigurationError

logger = logging.getLogger("cdkdiff.config")

DEFAULT_CDK_OUT_DIRS = "**/cdk.out"
DEFAULT_BASE_REF = "origin/main"
DEFAULT_CDK_COMMAND = "npx cdk"


class DiffMethod(str, Enum):
    """How the diff engine compares a stack with its deployed counterpart."""

    CHANGE_SET = "change-set"
    TEMPLATE_ONLY = "template-only"

    @property
    def detects_replacements(self) -> bool:
        return self is DiffMethod.CHANGE_SET


class StackSelectionStrategy(str, Enum):
    """Which stacks of a cloud assembly get diffed."""

    ALL_STACKS = "all-stacks"
    MAIN_ASSEMBLY = "main-assembly"
    ONLY_SINGLE = "only-single"
    PATTERN_MATCH = "pattern-match"
    PATTERN_MUST_MATCH = "pattern-must-match"
    PATTERN_MUST_MATCH_SINGLE = "pattern-must-match-single"

    @property
    def uses_patterns(self) -> bool:
        return self in (
            StackSelectionStrategy.PATTERN_MATCH,
            StackSelectionStrategy.PATTERN_MUST_MATCH,
            StackSelectionStrategy.PATTERN_MUST_MATCH_SINGLE,
        )


def parse_diff_method(value: str | DiffMethod | None) -> DiffMethod:
    """Map a free-form method string to a DiffMethod.

    Anything other than 'template-only' selects the change-set method.
    """
    if isinstance(value, DiffMethod):
        return value
    normalized = (value or "").strip().lower()
    if normalized == DiffMethod.TEMPLATE_ONLY.value:
        return DiffMethod.TEMPLATE_ONLY
    if normalized and normalized != DiffMethod.CHANGE_SET.value:
        logger.warning(
            "Unrecognized diff method '%s', falling back to '%s'",
            value, DiffMethod.CHANGE_SET.value,
        )
    return DiffMethod.CHANGE_SET


def parse_selection_strategy(
    value: str | StackSelectionStrategy | None,
) -> StackSelectionStrategy:
    """Map a strategy string to a StackSelectionStrategy (empty means all-stacks)."""
    if isinstance(value, StackSelectionStrategy):
        return value
    normalized = (value or "").strip().lower()
    if not normalized:
        return StackSelectionStrategy.ALL_STACKS
    try:
        return StackSelectionStrategy(normalized)
    except ValueError:
        valid = ", ".join(s.value for s in StackSelectionStrategy)
        raise ConfigurationError(
            f"Unknown stack selection strategy: '{value}'. Valid values: {valid}"
        ) from None


def parse_patterns(value: str | list[str] | tuple[str, ...] | None) -> list[str]:
    """Split multiline input into patterns, dropping blank lines."""
    if value is None:
        return []
    lines = value.splitlines() if isinstance(value, str) else list(value)
    return [line.strip() for line in lines if line and line.strip()]


class SelectionCriteria(BaseModel):
    """Stack selector patterns and the strategy that applies them."""

    patterns: list[str] = Field(default_factory=list)
    strategy: StackSelectionStrategy = StackSelectionStrategy.ALL_STACKS

    @field_validator("patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> list[str]:
        return parse_patterns(value)

    @field_validator("strategy", mode="before")
    @classmethod
    def _parse_strategy(cls, value: Any) -> StackSelectionStrategy:
        return parse_selection_strategy(value)

    @model_validator(mode="after")
    def _upgrade_strategy(self) -> SelectionCriteria:
        # Patterns given without an explicit pattern strategy must match something.
        if self.patterns and self.strategy is StackSelectionStrategy.ALL_STACKS:
            self.strategy = StackSelectionStrategy.PATTERN_MUST_MATCH
        return self


class ActionInputs(BaseModel):
    """Inputs of a single diff run, as supplied by the CI job."""

    github_token: str = ""
    cdk_out_dirs: str = DEFAULT_CDK_OUT_DIRS
    base_ref: str = DEFAULT_BASE_REF
    selection: SelectionCriteria = Field(default_factory=SelectionCriteria)
    diff_method: DiffMethod = DiffMethod.CHANGE_SET
    title: str | None = None
    cdk_command: str = DEFAULT_CDK_COMMAND

    @field_validator("cdk_out_dirs", mode="before")
    @classmethod
    def _default_pattern(cls, value: Any) -> str:
        return (value or "").strip() or DEFAULT_CDK_OUT_DIRS

    @field_validator("base_ref", mode="before")
    @classmethod
    def _default_base_ref(cls, value: Any) -> str:
        return (value or "").strip() or DEFAULT_BASE_REF

    @field_validator("diff_method", mode="before")
    @classmethod
    def _parse_method(cls, value: Any) -> DiffMethod:
        return parse_diff_method(value)

    @field_validator("title", mode="before")
    @classmethod
    def _blank_title(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(value).strip() or None

    def redacted(self) -> dict[str, Any]:
        """Inputs safe for logging."""
        data = self.model_dump(mode="json")
        if data.get("github_token"):
            data["github_token"] = "***"
        return data


def build_inputs(
    github_token: str | None = None,
    cdk_out_dirs: str | None = None,
    base_ref: str | None = None,
    stack_selector_patterns: str | list[str] | None = None,
    stack_selection_strategy: str | None = None,
    diff_method: str | None = None,
    title: str | None = None,
    cdk_command: str | None = None,
) -> ActionInputs:
    """Build validated ActionInputs from raw CI values."""
    return ActionInputs(
        github_token=github_token or "",
        cdk_out_dirs=cdk_out_dirs,
        base_ref=base_ref,
        selection=SelectionCriteria(
            patterns=stack_selector_patterns,
            strategy=stack_selection_strategy,
        ),
        diff_method=diff_method,
        title=title,
        cdk_command=cdk_command or DEFAULT_CDK_COMMAND,
    )
