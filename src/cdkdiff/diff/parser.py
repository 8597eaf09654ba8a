"""CDK diff output parser — extract resource changes from `cdk diff` text.

The CLI prints one line per changed resource::

    [+] AWS::SQS::Queue Queue Queue4A7E3555
    [~] AWS::S3::Bucket Bucket BucketF68F3FF0 replace
     └─ [~] BucketName (requires replacement)
    [-] AWS::SNS::Topic Topic TopicBFC7AF6E destroy

and closes with a summary line counting stacks with differences.
"""

from __future__ import annotations

import re

from cdkdiff.diff.models import ResourceChanges

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
RESOURCE_LINE = re.compile(r"^\[(?P<sign>[+\-~])\]\s+(?P<type>\S+)\s+(?P<path>.*)$")
STACK_COUNT = re.compile(r"Number of stacks with differences:\s*(\d+)")
NO_DIFFERENCES = "There were no differences"
REPLACE_MARKERS = ("replace", "may be replaced", "requires replacement", "may cause replacement")


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE.sub("", text)


def parse_resource_changes(text: str) -> ResourceChanges:
    """Count added/updated/removed resources and collect replacements."""
    changes = ResourceChanges()

    for line in strip_ansi(text).splitlines():
        match = RESOURCE_LINE.match(line.strip())
        if not match:
            continue
        # Top-level resource lines only; property lines are indented under them
        if line[:1].isspace():
            continue
        sign = match.group("sign")
        if sign == "+":
            changes.added += 1
        elif sign == "-":
            changes.removed += 1
        else:
            changes.updated += 1

        path = match.group("path").strip()
        if sign == "~" and path.endswith(REPLACE_MARKERS):
            changes.replacements.append(f"{match.group('type')} {_logical_id(path)}")

    return changes


def has_differences(text: str) -> bool:
    """Whether `cdk diff` output reports any change."""
    clean = strip_ansi(text)
    counted = STACK_COUNT.search(clean)
    if counted:
        return int(counted.group(1)) > 0
    if NO_DIFFERENCES in clean:
        return False
    return parse_resource_changes(clean).total > 0


def clean_body(text: str) -> str:
    """Drop colors and the CLI's summary lines, keeping the diff itself."""
    lines = [
        line for line in strip_ansi(text).splitlines()
        if not STACK_COUNT.search(line)
    ]
    return "\n".join(lines).strip()


def _logical_id(path: str) -> str:
    """The logical id is the last token before the replacement marker.

    Resource lines read ``<construct path> <logical id> <marker>``.
    """
    for marker in sorted(REPLACE_MARKERS, key=len, reverse=True):
        if path.endswith(marker):
            path = path[: -len(marker)]
            break
    tokens = path.strip(" ()").split()
    return tokens[-1] if tokens else path.strip()
