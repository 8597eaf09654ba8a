"""CDK diff action — diff changed CDK apps of a pull request and comment the results.

This is the pipeline behind `cdkdiff run`. It:
1. Expands the cdkOutDirs glob and keeps directories whose project changed
2. Loads and selects the stacks of each remaining directory
3. Diffs the stacks one at a time
4. Creates or updates one comment per directory on the pull request

Directories are processed strictly in order; the first error aborts the run.
Comments already written for earlier directories are left in place.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from cdkdiff.config import ActionInputs
from cdkdiff.diff.engine import DiffEngine
from cdkdiff.diff.models import DiffResult
from cdkdiff.diff.processor import AssemblyProcessor
from cdkdiff.exceptions import CdkDiffError
from cdkdiff.github.comments import CommentPlatform
from cdkdiff.github.renderer import CommentArtifact
from cdkdiff.scope import resolve
from cdkdiff.ui.console import Console
from cdkdiff.vcs import VersionControl

logger = logging.getLogger("cdkdiff.action")


@dataclass
class ActionSummary:
    """What a run matched, diffed and commented."""

    matched: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    processed: int = 0
    results: dict[str, list[DiffResult]] = field(default_factory=dict)
    comments: list[CommentArtifact] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return not self.changed


def run_diff_action(
    inputs: ActionInputs,
    vcs: VersionControl,
    engine: DiffEngine,
    comments: CommentPlatform,
    root: str | Path = ".",
    console: Console | None = None,
) -> ActionSummary:
    """Run the full change detection, diff and comment pipeline.

    Raises:
        ConfigurationError: If cdkOutDirs matches no directory.
        CdkDiffError: Any selection, assembly or comment failure.
    """
    logger.debug("Inputs: %s", inputs.redacted())
    summary = ActionSummary()

    matched, changed = resolve(inputs.cdk_out_dirs, inputs.base_ref, vcs, root)
    summary.matched = [c.relative for c in matched]
    summary.changed = [c.relative for c in changed]

    if not changed:
        logger.info("No directories have changes in this PR, skipping CDK diff")
        if console:
            console.info(f"No CDK apps changed against {inputs.base_ref}, nothing to diff")
        return summary

    for directory in changed:
        logger.info("Processing CDK output directory: %s", directory.relative)
        processor = AssemblyProcessor(
            directory,
            engine,
            selection=inputs.selection,
            method=inputs.diff_method,
            title=inputs.title,
        )
        try:
            results = processor.process_stages()
        except CdkDiffError as e:
            logger.error("Error running process stages for %s: %s", directory.relative, e)
            raise

        if console:
            console.show_results(directory.relative, results)

        try:
            artifact = processor.comment_stages(comments)
        except CdkDiffError as e:
            logger.error("Error commenting stages for %s: %s", directory.relative, e)
            raise

        summary.results[directory.relative] = results
        summary.comments.append(artifact)
        summary.processed += 1

    return summary
