"""Markdown renderer for CDK diff comments.

Generates one GitHub-flavored markdown comment per CDK output directory:
  - Hidden identity marker (so re-runs update instead of duplicating)
  - Optional caller title
  - Summary table of stack outcomes
  - One collapsible diff per stack, in selection order
  - Replacement warnings for change-set diffs
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from cdkdiff.config import DiffMethod
from cdkdiff.diff.models import DiffOutcome, DiffResult

MAX_COMMENT_LENGTH = 65536
MARKER_PREFIX = "cdkdiff"
TRUNCATION_NOTE = "\n... (diff truncated, see the job log for the full output)"
MIN_BODY_BUDGET = 200
FENCE = "```"
CLOSE_FENCE = "\n" + FENCE
CLOSE_DETAILS = "\n</details>"


@dataclass(frozen=True)
class CommentArtifact:
    """A rendered comment and the key that identifies it across runs."""

    directory: str
    key: str
    body: str
    title: str | None = None

    @property
    def marker(self) -> str:
        return comment_marker(self.key)


def comment_key(directory: str, title: str | None = None) -> str:
    """Stable identity of a directory's comment, independent of its content."""
    raw = f"{directory.rstrip('/')}|{title or ''}"
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


def comment_marker(key: str) -> str:
    return f"<!-- {MARKER_PREFIX}:{key} -->"


def render_comment(
    directory: str,
    results: list[DiffResult],
    method: DiffMethod = DiffMethod.CHANGE_SET,
    title: str | None = None,
    max_length: int = MAX_COMMENT_LENGTH,
) -> CommentArtifact:
    """Render all results of a directory into a single comment artifact."""
    key = comment_key(directory, title)
    body = _render(directory, key, results, method, title, body_limit=None)

    if len(body) > max_length and results:
        skeleton = _render(directory, key, results, method, title, body_limit=0)
        budget = max(MIN_BODY_BUDGET, (max_length - len(skeleton)) // len(results))
        body = _render(directory, key, results, method, title, body_limit=budget)
        if len(body) > max_length:
            body = _truncate(body, max_length)

    return CommentArtifact(directory=directory, key=key, body=body, title=title)


def _render(
    directory: str,
    key: str,
    results: list[DiffResult],
    method: DiffMethod,
    title: str | None,
    body_limit: int | None,
) -> str:
    sections: list[str] = [comment_marker(key)]

    # Header
    if title:
        sections.append(f"## {title}")
        sections.append("")
    sections.append(f"### CDK diff for `{directory}`")
    sections.append("")

    if not results:
        sections.append("> No stacks were selected in this assembly.")
        sections.append("")
        sections.append(_footer(method))
        return "\n".join(sections)

    # Summary
    changed = sum(1 for r in results if r.outcome is DiffOutcome.CHANGED)
    unchanged = sum(1 for r in results if r.outcome is DiffOutcome.UNCHANGED)
    failed = sum(1 for r in results if r.outcome is DiffOutcome.ERROR)
    replaced = sum(len(r.replacements or []) for r in results)

    sections.append("| Stacks | Changed | Unchanged | Failed | Replacements |")
    sections.append("|:---:|:---:|:---:|:---:|:---:|")
    replacement_cell = str(replaced) if method.detects_replacements else "n/a"
    sections.append(
        f"| {len(results)} | {changed} | {unchanged} | {failed} | {replacement_cell} |"
    )
    sections.append("")

    if replaced:
        sections.append(
            f"> [!WARNING]\n> {replaced} resource(s) will be **replaced**. "
            "Review the stacks marked below before merging."
        )
        sections.append("")

    for result in results:
        sections.extend(_render_stage(result, body_limit))

    sections.append(_footer(method))
    return "\n".join(sections)


def _render_stage(result: DiffResult, body_limit: int | None) -> list[str]:
    emoji, label = _outcome_badge(result)
    name = result.stage.display_name
    lines = ["<details>"]
    lines.append(f"<summary>{emoji} <code>{name}</code> - {label}</summary>")
    lines.append("")

    if result.outcome is DiffOutcome.ERROR:
        lines.append(f"**Diff failed:** {result.error or 'unknown error'}")
        lines.append("")

    if result.replacements:
        lines.append("**Replaced resources:**")
        for resource in result.replacements:
            lines.append(f"- `{resource}`")
        lines.append("")

    body = _limit(result.body, body_limit)
    if body:
        lines.append("```")
        lines.append(body)
        lines.append("```")
        lines.append("")
    elif result.outcome is DiffOutcome.UNCHANGED:
        lines.append("There were no differences.")
        lines.append("")

    lines.append("</details>")
    lines.append("")
    return lines


def _outcome_badge(result: DiffResult) -> tuple[str, str]:
    """Return (emoji, label) for a stack result."""
    if result.outcome is DiffOutcome.ERROR:
        return ("❌", "diff failed")
    if result.outcome is DiffOutcome.UNCHANGED:
        return ("✅", "no changes")
    if result.has_replacements:
        return ("🔴", f"changes with {len(result.replacements)} replacement(s)")
    resources = result.resources
    if resources and resources.total:
        return (
            "🟡",
            f"+{resources.added} ~{resources.updated} -{resources.removed} resources",
        )
    return ("🟡", "changes")


def _limit(body: str, limit: int | None) -> str:
    if limit is None or len(body) <= limit:
        return body
    if limit == 0:
        return ""
    return body[:limit] + TRUNCATION_NOTE


def _truncate(body: str, max_length: int) -> str:
    """Cut at a line boundary, then close any code fence or <details> left open."""
    cut = max_length - len(TRUNCATION_NOTE) - len(CLOSE_FENCE) - len(CLOSE_DETAILS)
    head = body[: max(cut, 0)]
    if "\n" in head:
        head = head[: head.rindex("\n")]

    lines = head.splitlines()
    closers = ""
    if sum(1 for line in lines if line.startswith(FENCE)) % 2:
        closers += CLOSE_FENCE
    if sum(1 for line in lines if line == "<details>") > sum(
        1 for line in lines if line == "</details>"
    ):
        closers += CLOSE_DETAILS
    return head + closers + TRUNCATION_NOTE


def _footer(method: DiffMethod) -> str:
    if method is DiffMethod.TEMPLATE_ONLY:
        note = "template-only diff, resource replacements are not detected"
    else:
        note = "change-set diff"
    return f"---\n*Generated by cdkdiff ({note})*"
