"""Command-line interface for cdkdiff."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console as RichConsole
from rich.logging import RichHandler

from cdkdiff import __version__
from cdkdiff.config import (
    DEFAULT_BASE_REF,
    DEFAULT_CDK_COMMAND,
    DEFAULT_CDK_OUT_DIRS,
    DiffMethod,
    SelectionCriteria,
    StackSelectionStrategy,
    build_inputs,
)
from cdkdiff.exceptions import CdkDiffError
from cdkdiff.ui.console import Console

console = Console()


class PatternParamType(click.ParamType):
    """A stack pattern; from the environment, one pattern per line."""

    name = "pattern"
    envvar_list_splitter = "\n"


PATTERN = PatternParamType()


def _configure_logging(verbose: bool) -> None:
    """Send cdkdiff logs to stderr; GitHub's RUNNER_DEBUG also enables debug output."""
    debug = verbose or os.environ.get("RUNNER_DEBUG") == "1"
    logger = logging.getLogger("cdkdiff")
    logger.handlers.clear()
    logger.addHandler(
        RichHandler(console=RichConsole(stderr=True), show_path=False, markup=False)
    )
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False


@click.group()
@click.version_option(version=__version__, prog_name="cdkdiff")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """cdkdiff - CDK diff comments for pull requests."""
    _configure_logging(verbose)


@main.command()
@click.option(
    "--github-token", envvar=["INPUT_GITHUBTOKEN", "GITHUB_TOKEN"], default="",
    help="Token used to read and write pull request comments.",
)
@click.option(
    "--cdk-out-dirs", envvar="INPUT_CDKOUTDIRS", default=DEFAULT_CDK_OUT_DIRS,
    show_default=True, help="Glob matching synthesized CDK output directories.",
)
@click.option(
    "--base-ref", envvar="INPUT_BASEREF", default=DEFAULT_BASE_REF,
    show_default=True, help="Git ref to detect changed CDK apps against.",
)
@click.option(
    "--stack-selector-patterns", "-s", envvar="INPUT_STACKSELECTORPATTERNS",
    type=PATTERN, multiple=True, help="Stack selector pattern (can specify multiple).",
)
@click.option(
    "--stack-selection-strategy", envvar="INPUT_STACKSELECTIONSTRATEGY", default="",
    help="One of: " + ", ".join(s.value for s in StackSelectionStrategy)
    + " (default: all-stacks, or pattern-must-match when patterns are given).",
)
@click.option(
    "--diff-method", envvar="INPUT_DIFFMETHOD", default=DiffMethod.CHANGE_SET.value,
    show_default=True, help="change-set or template-only.",
)
@click.option("--title", envvar="INPUT_TITLE", default=None, help="Heading for each comment.")
@click.option(
    "--cdk-command", envvar="INPUT_CDKCOMMAND", default=DEFAULT_CDK_COMMAND,
    show_default=True, help="Command used to invoke the CDK CLI.",
)
@click.option("--path", "-p", default=".", help="Repository root.")
@click.option("--dry-run", is_flag=True, help="Print comments instead of posting them.")
def run(
    github_token: str,
    cdk_out_dirs: str,
    base_ref: str,
    stack_selector_patterns: tuple[str, ...],
    stack_selection_strategy: str,
    diff_method: str,
    title: str | None,
    cdk_command: str,
    path: str,
    dry_run: bool,
):
    """Diff changed CDK apps and comment the results on the pull request.

    Usage in CI (inputs come from INPUT_* variables):

        cdkdiff run

    Local usage:

        cdkdiff run --base-ref origin/main --diff-method template-only --dry-run
    """
    from cdkdiff.action import run_diff_action
    from cdkdiff.diff.engine import CdkCliDiffEngine
    from cdkdiff.github.comments import CommentPlatform, ConsoleComments, GitHubComments
    from cdkdiff.vcs import GitRepository

    root = Path(path).resolve()
    if not root.exists():
        console.error(f"Path does not exist: {path}")
        sys.exit(1)

    try:
        inputs = build_inputs(
            github_token=github_token,
            cdk_out_dirs=cdk_out_dirs,
            base_ref=base_ref,
            stack_selector_patterns=list(stack_selector_patterns),
            stack_selection_strategy=stack_selection_strategy,
            diff_method=diff_method,
            title=title,
            cdk_command=cdk_command,
        )
    except CdkDiffError as e:
        console.error(str(e))
        sys.exit(1)

    if not inputs.github_token and not dry_run:
        console.error("A GitHub token is required (--github-token or INPUT_GITHUBTOKEN).")
        sys.exit(1)

    comments: CommentPlatform
    if dry_run:
        comments = ConsoleComments(console)
    else:
        comments = GitHubComments(inputs.github_token)

    try:
        summary = run_diff_action(
            inputs,
            vcs=GitRepository(root),
            engine=CdkCliDiffEngine(inputs.cdk_command, cwd=root),
            comments=comments,
            root=root,
            console=console,
        )
    except CdkDiffError as e:
        console.error(f"Error performing diff: {e}")
        sys.exit(1)

    if summary.skipped:
        console.success(f"No changed CDK apps among {len(summary.matched)} directories")
    else:
        console.success(f"Commented diffs for {summary.processed} directory(ies)")


@main.command()
@click.argument("directory")
@click.option("--pattern", "-s", multiple=True, help="Stack selector pattern.")
@click.option("--strategy", default="", help="Stack selection strategy.")
def stages(directory: str, pattern: tuple[str, ...], strategy: str):
    """List the stacks of a cdk.out DIRECTORY that a selection would diff."""
    from cdkdiff.assembly import load_assembly, select_stages

    try:
        criteria = SelectionCriteria(patterns=list(pattern), strategy=strategy)
        assembly = load_assembly(directory)
        selected = select_stages(assembly, criteria)
    except CdkDiffError as e:
        console.error(str(e))
        sys.exit(1)

    if not selected:
        console.warning(f"No stacks selected (strategy: {criteria.strategy.value})")
        return
    console.info(f"Strategy: {criteria.strategy.value}")
    console.show_stages(selected)


if __name__ == "__main__":
    main()
