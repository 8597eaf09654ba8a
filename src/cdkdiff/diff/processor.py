"""Diff every selected stack of one CDK output directory and comment the results."""

from __future__ import annotations

import logging
from enum import Enum

from cdkdiff.assembly import load_assembly, select_stages
from cdkdiff.assembly.models import Stage
from cdkdiff.config import DiffMethod, SelectionCriteria
from cdkdiff.diff.engine import DiffEngine
from cdkdiff.diff.models import DiffOutcome, DiffResult, EngineDiff
from cdkdiff.exceptions import AssemblyLoadError, CdkDiffError, EngineError
from cdkdiff.github.comments import CommentPlatform, upsert_comment
from cdkdiff.github.renderer import CommentArtifact, render_comment
from cdkdiff.scope import CandidateDirectory

logger = logging.getLogger("cdkdiff.diff")


class ProcessorState(str, Enum):
    PENDING = "pending"
    DIFFING = "diffing"
    DIFFED = "diffed"
    FAILED = "failed"


class AssemblyProcessor:
    """Drives the diffs of one cdk.out directory, one stack at a time.

    Engine failures for a single stack are recorded as error results so the
    remaining stacks still get diffed. Failures loading or selecting from the
    assembly abort the directory.
    """

    def __init__(
        self,
        directory: CandidateDirectory,
        engine: DiffEngine,
        selection: SelectionCriteria | None = None,
        method: DiffMethod = DiffMethod.CHANGE_SET,
        title: str | None = None,
    ) -> None:
        self.directory = directory
        self.engine = engine
        self.selection = selection or SelectionCriteria()
        self.method = method
        self.title = title
        self.state = ProcessorState.PENDING
        self.stages: list[Stage] = []
        self.results: list[DiffResult] = []

    def process_stages(self) -> list[DiffResult]:
        """Select the directory's stacks and diff them in order."""
        if self.state is not ProcessorState.PENDING:
            raise RuntimeError(f"Stages of {self.directory.relative} already processed")

        self.state = ProcessorState.DIFFING
        try:
            assembly = load_assembly(self.directory.path)
            self.stages = select_stages(assembly, self.selection)
        except CdkDiffError:
            self.state = ProcessorState.FAILED
            raise

        logger.debug(
            "Diffing %d stacks in %s with method %s",
            len(self.stages), self.directory.relative, self.method.value,
        )
        self.results = [self._diff_stage(stage) for stage in self.stages]
        self.state = ProcessorState.DIFFED
        return self.results

    def _diff_stage(self, stage: Stage) -> DiffResult:
        try:
            engine_diff = self.engine.diff(stage, self.method)
        except AssemblyLoadError:
            self.state = ProcessorState.FAILED
            raise
        except EngineError as e:
            logger.error("Diff failed for %s: %s", stage.display_name, e)
            return DiffResult(stage=stage, outcome=DiffOutcome.ERROR, error=str(e))

        if engine_diff.error:
            logger.error("Diff failed for %s: %s", stage.display_name, engine_diff.error)
            return DiffResult(
                stage=stage,
                outcome=DiffOutcome.ERROR,
                body=engine_diff.body,
                raw_output=engine_diff.raw_output,
                error=engine_diff.error,
            )
        return self._record(stage, engine_diff)

    def _record(self, stage: Stage, engine_diff: EngineDiff) -> DiffResult:
        outcome = DiffOutcome.CHANGED if engine_diff.has_changes else DiffOutcome.UNCHANGED
        replacements = None
        if self.method.detects_replacements:
            resources = engine_diff.resources
            replacements = list(resources.replacements) if resources else []
        logger.debug("Stack %s: %s", stage.display_name, outcome.value)
        return DiffResult(
            stage=stage,
            outcome=outcome,
            body=engine_diff.body,
            raw_output=engine_diff.raw_output,
            resources=engine_diff.resources,
            replacements=replacements,
        )

    def render(self) -> CommentArtifact:
        if self.state is not ProcessorState.DIFFED:
            raise RuntimeError(f"Stages of {self.directory.relative} have not been diffed")
        return render_comment(
            directory=self.directory.relative,
            results=self.results,
            method=self.method,
            title=self.title,
        )

    def comment_stages(self, comments: CommentPlatform) -> CommentArtifact:
        """Create or update this directory's single comment on the pull request."""
        artifact = self.render()
        upsert_comment(comments, artifact)
        return artifact
