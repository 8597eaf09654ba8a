"""Stack selection strategies."""

from __future__ import annotations

import fnmatch
import logging

from cdkdiff.assembly.models import CloudAssembly, Stage
from cdkdiff.config import SelectionCriteria, StackSelectionStrategy
from cdkdiff.exceptions import SelectionError

logger = logging.getLogger("cdkdiff.assembly")


def _match_segments(parts: list[str], pattern: list[str]) -> bool:
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def matches_pattern(stage: Stage, pattern: str) -> bool:
    """Match the hierarchical name, one path segment at a time.

    ``*`` stays within a segment, so ``Prod/*`` matches ``Prod/Service`` but
    ``*`` alone only matches stacks at the top of the app. ``**`` spans any
    number of segments.
    """
    return _match_segments(stage.display_name.split("/"), pattern.split("/"))


def select_stages(assembly: CloudAssembly, criteria: SelectionCriteria) -> list[Stage]:
    """Apply `criteria` to the assembly's stacks, preserving assembly order.

    Raises:
        SelectionError: If the strategy requires matches that are not there.
    """
    strategy = criteria.strategy

    if strategy is StackSelectionStrategy.ALL_STACKS:
        selected = list(assembly.stages)
    elif strategy is StackSelectionStrategy.MAIN_ASSEMBLY:
        selected = assembly.main_stages
        if not selected:
            raise SelectionError(
                f"Strategy '{strategy.value}' found no stacks in the main assembly of "
                f"{assembly.directory}"
            )
    elif strategy is StackSelectionStrategy.ONLY_SINGLE:
        # Stacks inside Stages do not count; only the app's top-level stacks do
        selected = assembly.main_stages
        if len(selected) != 1:
            raise SelectionError(
                f"Strategy '{strategy.value}' needs exactly one top-level stack in "
                f"{assembly.directory}, found {len(selected)}"
            )
    else:
        selected = [
            s for s in assembly.stages
            if any(matches_pattern(s, p) for p in criteria.patterns)
        ]
        if strategy is StackSelectionStrategy.PATTERN_MUST_MATCH and not selected:
            raise SelectionError(
                f"No stacks in {assembly.directory} match patterns: "
                f"{', '.join(criteria.patterns) or '(none)'}"
            )
        if strategy is StackSelectionStrategy.PATTERN_MUST_MATCH_SINGLE and len(selected) != 1:
            raise SelectionError(
                f"Patterns {', '.join(criteria.patterns) or '(none)'} must match exactly "
                f"one stack in {assembly.directory}, matched {len(selected)}"
            )

    logger.debug(
        "Selected %d of %d stacks with strategy %s",
        len(selected), len(assembly.stages), strategy.value,
    )
    return selected
