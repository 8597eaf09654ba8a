"""Pull request comment storage, and the upsert that keeps one comment per directory.

The GitHub implementation drives the REST API through the `gh` CLI, so it
needs only a token in the environment (GH_TOKEN) and the pull request coordinates
that GitHub Actions provides (GITHUB_REPOSITORY and GITHUB_EVENT_PATH).
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from cdkdiff.exceptions import CommentWriteError
from cdkdiff.github.renderer import comment_marker

if TYPE_CHECKING:
    from cdkdiff.github.renderer import CommentArtifact
    from cdkdiff.ui.console import Console

logger = logging.getLogger("cdkdiff.github")


class CommentPlatform(ABC):
    """Comment thread of one pull request."""

    @abstractmethod
    def find_existing(self, key: str) -> str | None:
        """Return the handle of the comment carrying `key`, if any."""
        ...

    @abstractmethod
    def create(self, body: str) -> str:
        """Create a comment and return its handle."""
        ...

    @abstractmethod
    def update(self, handle: str, body: str) -> None:
        """Overwrite the comment identified by `handle`."""
        ...


def upsert_comment(platform: CommentPlatform, artifact: CommentArtifact) -> str:
    """Update the artifact's previous comment in place, or create it.

    Performs exactly one write. Returns the comment handle.
    """
    existing = platform.find_existing(artifact.key)
    if existing is not None:
        logger.info("Updating comment %s for %s", existing, artifact.directory)
        platform.update(existing, artifact.body)
        return existing

    handle = platform.create(artifact.body)
    logger.info("Created comment %s for %s", handle, artifact.directory)
    return handle


def read_pull_request_number(event_path: str | None) -> int | None:
    """Read the pull request number from a GitHub Actions event payload."""
    if not event_path or not Path(event_path).exists():
        return None
    with open(event_path) as f:
        event = json.load(f)
    number = (event.get("pull_request") or {}).get("number")
    return int(number) if number else None


class GitHubComments(CommentPlatform):
    """Issue comments of a GitHub pull request, via `gh api`."""

    def __init__(
        self,
        token: str,
        repository: str | None = None,
        pr_number: int | None = None,
        timeout: float = 30,
    ) -> None:
        self.token = token
        self._repository = repository
        self._pr_number = pr_number
        self.timeout = timeout

    @property
    def repository(self) -> str:
        if not self._repository:
            self._repository = os.environ.get("GITHUB_REPOSITORY", "")
        if not self._repository:
            raise CommentWriteError("GITHUB_REPOSITORY is not set")
        return self._repository

    @property
    def pr_number(self) -> int:
        if self._pr_number is None:
            self._pr_number = read_pull_request_number(os.environ.get("GITHUB_EVENT_PATH"))
        if self._pr_number is None:
            raise CommentWriteError(
                "No pull request found in GITHUB_EVENT_PATH; run on pull_request events"
            )
        return self._pr_number

    def find_existing(self, key: str) -> str | None:
        marker = comment_marker(key)
        output = self._gh(
            "api", "--paginate",
            f"repos/{self.repository}/issues/{self.pr_number}/comments",
            "--jq", f'.[] | select(.body | contains("{marker}")) | .id',
        )
        ids = [line.strip() for line in output.splitlines() if line.strip()]
        if len(ids) > 1:
            logger.warning("Found %d comments with key %s, updating the first", len(ids), key)
        return ids[0] if ids else None

    def create(self, body: str) -> str:
        output = self._gh(
            "api", "--method", "POST",
            f"repos/{self.repository}/issues/{self.pr_number}/comments",
            "--input", "-", "--jq", ".id",
            payload={"body": body},
        )
        return output.strip()

    def update(self, handle: str, body: str) -> None:
        self._gh(
            "api", "--method", "PATCH",
            f"repos/{self.repository}/issues/comments/{handle}",
            "--input", "-", "--jq", ".id",
            payload={"body": body},
        )

    def _gh(self, *args: str, payload: dict | None = None) -> str:
        cmd = ["gh", *args]
        env = {**os.environ, "GH_TOKEN": self.token}
        try:
            result = subprocess.run(
                cmd,
                input=json.dumps(payload) if payload is not None else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
            raise CommentWriteError(f"gh {args[0]} failed to run: {e}") from e

        if result.returncode != 0:
            raise CommentWriteError(
                f"gh {' '.join(args[:3])} exited with {result.returncode}: "
                f"{result.stderr.strip()}"
            )
        return result.stdout


class ConsoleComments(CommentPlatform):
    """Prints comments instead of posting them (dry runs)."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self.created: list[str] = []

    def find_existing(self, key: str) -> str | None:
        return None

    def create(self, body: str) -> str:
        self.created.append(body)
        self.console.markdown(body)
        return f"dry-run-{len(self.created)}"

    def update(self, handle: str, body: str) -> None:
        self.console.markdown(body)
