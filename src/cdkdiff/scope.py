"""Change scope resolution: which CDK output directories need a diff.

A candidate directory is any directory matching the `cdkOutDirs` glob. Its
owning project is the parent directory (``infra/common/cdk.out`` belongs to
``infra/common``); only candidates whose project changed against the base ref
survive. When git cannot answer, the candidate is kept.
"""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cdkdiff.exceptions import ChangeDetectionError, ConfigurationError
from cdkdiff.vcs import VersionControl

logger = logging.getLogger("cdkdiff.scope")


@dataclass(frozen=True)
class CandidateDirectory:
    """A directory expected to hold a synthesized cloud assembly."""

    path: Path
    relative: str

    @property
    def project(self) -> str:
        """The owning project, relative to the repository root."""
        return os.path.dirname(self.relative) or "."


@dataclass
class ChangeDecision:
    """Whether a candidate's project changed, and the evidence for it."""

    candidate: CandidateDirectory
    changed: bool
    changed_paths: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def fail_open(self) -> bool:
        return self.error is not None


def expand_directories(pattern: str, root: str | Path = ".") -> list[CandidateDirectory]:
    """Expand a glob into existing directories, in lexical order."""
    root = Path(root).resolve()
    logger.debug("Processing glob pattern: %s", pattern)

    if os.path.isabs(pattern):
        matches = glob.glob(pattern, recursive=True)
    else:
        matches = glob.glob(pattern, root_dir=root, recursive=True)

    candidates: list[CandidateDirectory] = []
    for match in sorted(matches):
        path = Path(match) if os.path.isabs(match) else root / match
        if not path.is_dir():
            continue
        try:
            relative = path.relative_to(root).as_posix()
        except ValueError:
            relative = path.as_posix()
        candidates.append(CandidateDirectory(path=path, relative=relative.rstrip("/")))

    logger.debug("Found directories: %s", [c.relative for c in candidates])
    return candidates


def has_changes(
    candidate: CandidateDirectory, base_ref: str, vcs: VersionControl
) -> ChangeDecision:
    """Decide whether the candidate's project differs from `base_ref`."""
    logger.debug(
        "Checking git changes in directory: %s against %s", candidate.project, base_ref
    )
    try:
        paths = vcs.changed_paths(base_ref, candidate.project)
    except ChangeDetectionError as e:
        # Fail open: a broken comparison must not hide a diff.
        logger.warning(
            "Could not check changes for %s, assuming it changed: %s",
            candidate.relative, e,
        )
        return ChangeDecision(candidate=candidate, changed=True, error=str(e))

    decision = ChangeDecision(candidate=candidate, changed=bool(paths), changed_paths=paths)
    logger.debug(
        "Directory %s has changes against %s: %s",
        candidate.project, base_ref, decision.changed,
    )
    return decision


def resolve(
    pattern: str,
    base_ref: str,
    vcs: VersionControl,
    root: str | Path = ".",
) -> tuple[list[CandidateDirectory], list[CandidateDirectory]]:
    """Expand `pattern` and keep the directories whose project changed.

    Returns:
        (all matched directories, directories with changes), both in glob order.

    Raises:
        ConfigurationError: If the pattern matches no directory at all.
    """
    matched = expand_directories(pattern, root)
    if not matched:
        raise ConfigurationError(f"No CDK output directories found for pattern: {pattern}")

    changed = [c for c in matched if has_changes(c, base_ref, vcs).changed]
    logger.debug(
        "Filtered %d directories to %d with changes against %s",
        len(matched), len(changed), base_ref,
    )
    return matched, changed
