"""Git access for change detection."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from cdkdiff.exceptions import ChangeDetectionError

logger = logging.getLogger("cdkdiff.vcs")


class VersionControl(ABC):
    """Answers which files under a path differ from a base ref."""

    @abstractmethod
    def changed_paths(self, ref: str, path: str) -> list[str]:
        """Return the files under `path` changed between `ref` and HEAD.

        Raises:
            ChangeDetectionError: If the comparison could not be executed.
        """
        ...


class GitRepository(VersionControl):
    """VersionControl backed by the git CLI of a checked-out repository."""

    def __init__(self, root: str | Path = ".", timeout: float = 60) -> None:
        self.root = Path(root)
        self.timeout = timeout

    def changed_paths(self, ref: str, path: str) -> list[str]:
        target = path.rstrip("/") or "."
        if target != ".":
            target += "/"
        cmd = ["git", "diff", "--name-only", f"{ref}...HEAD", "--", target]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=self.root,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
            raise ChangeDetectionError(
                f"git diff against {ref} for '{path}' could not run: {e}"
            ) from e

        if result.returncode != 0:
            raise ChangeDetectionError(
                f"git diff against {ref} for '{path}' exited with "
                f"{result.returncode}: {result.stderr.strip()}"
            )

        changed = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        logger.debug(
            "git diff output for %s:\n%s", path, "\n".join(changed) or "(no changes)"
        )
        return changed
