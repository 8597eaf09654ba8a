"""Diff engines that compare a stack's synthesized template with what is deployed."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from cdkdiff.assembly.models import Stage
from cdkdiff.config import DEFAULT_CDK_COMMAND, DiffMethod
from cdkdiff.diff.models import EngineDiff
from cdkdiff.diff.parser import clean_body, has_differences, parse_resource_changes, strip_ansi
from cdkdiff.exceptions import EngineError

logger = logging.getLogger("cdkdiff.diff")


class DiffEngine(ABC):
    """Abstract base for diff engines."""

    @abstractmethod
    def diff(self, stage: Stage, method: DiffMethod) -> EngineDiff:
        """Diff one stack.

        A failure may be reported either as ``EngineDiff(error=...)`` or by
        raising EngineError.
        """
        ...


class CdkCliDiffEngine(DiffEngine):
    """Runs `cdk diff` against the synthesized assembly, one stack at a time."""

    def __init__(
        self,
        command: str = DEFAULT_CDK_COMMAND,
        cwd: str | Path | None = None,
        timeout: float = 900,
    ) -> None:
        self.command = shlex.split(command)
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout

    def build_command(self, stage: Stage, method: DiffMethod) -> list[str]:
        change_set = "--change-set" if method is DiffMethod.CHANGE_SET else "--no-change-set"
        return [
            *self.command,
            "diff",
            "--app", stage.root_dir,
            "--exclusively",
            change_set,
            "--no-color",
            stage.display_name,
        ]

    def diff(self, stage: Stage, method: DiffMethod) -> EngineDiff:
        cmd = self.build_command(stage, method)
        logger.debug("Running: %s", " ".join(cmd))
        env = {**os.environ, "CI": "true", "FORCE_COLOR": "0"}
        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise EngineError(
                f"cdk diff for {stage.display_name} timed out after {self.timeout}s"
            ) from e
        except (FileNotFoundError, OSError) as e:
            raise EngineError(f"cannot run {self.command[0]}: {e}") from e

        # cdk writes the diff itself to stderr
        output = strip_ansi(f"{result.stdout}\n{result.stderr}".strip())
        if result.returncode != 0:
            return EngineDiff(
                error=f"cdk diff exited with {result.returncode}",
                body=clean_body(output),
                raw_output=output,
            )

        return EngineDiff(
            has_changes=has_differences(output),
            body=clean_body(output),
            raw_output=output,
            resources=parse_resource_changes(output),
        )
