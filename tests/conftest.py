"""Shared test fixtures for cdkdiff."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cdkdiff.assembly.models import Stage
from cdkdiff.config import DiffMethod
from cdkdiff.diff.engine import DiffEngine
from cdkdiff.diff.models import EngineDiff, ResourceChanges
from cdkdiff.exceptions import ChangeDetectionError, CommentWriteError, EngineError
from cdkdiff.github.comments import CommentPlatform
from cdkdiff.github.renderer import comment_marker
from cdkdiff.vcs import VersionControl


def write_assembly(
    directory: Path,
    stacks: list[str] | dict[str, list[str]],
    nested: dict[str, list[str]] | None = None,
    display_prefix: str = "",
) -> Path:
    """Write a minimal cloud assembly manifest.

    `stacks` is a list of stack ids, or a mapping of stack id to its
    dependencies. `nested` maps CDK Stage names to their stack ids.
    """
    directory.mkdir(parents=True, exist_ok=True)
    deps = stacks if isinstance(stacks, dict) else {s: [] for s in stacks}

    artifacts: dict[str, dict] = {}
    for stack_id, stack_deps in deps.items():
        artifacts[f"{stack_id}.assets"] = {"type": "cdk:asset-manifest", "properties": {}}
        artifacts[stack_id] = {
            "type": "aws:cloudformation:stack",
            "environment": "aws://unknown-account/unknown-region",
            "properties": {"templateFile": f"{stack_id}.template.json"},
            "dependencies": [f"{stack_id}.assets", *stack_deps],
            "displayName": f"{display_prefix}{stack_id}",
        }
        (directory / f"{stack_id}.template.json").write_text("{}")

    for stage_name, stage_stacks in (nested or {}).items():
        dir_name = f"assembly-{stage_name}"
        artifacts[dir_name] = {
            "type": "cdk:cloud-assembly",
            "properties": {"directoryName": dir_name, "displayName": stage_name},
        }
        write_assembly(directory / dir_name, stage_stacks, display_prefix=f"{stage_name}/")

    artifacts["Tree"] = {"type": "cdk:tree", "properties": {"file": "tree.json"}}
    manifest = {"version": "36.0.0", "artifacts": artifacts}
    (directory / "manifest.json").write_text(json.dumps(manifest, indent=2))
    return directory


class FakeVcs(VersionControl):
    """Reports configured changes per project; listed projects fail."""

    def __init__(self, changes: dict[str, list[str]] | None = None, failing: set[str] | None = None):
        self.changes = changes or {}
        self.failing = failing or set()
        self.calls: list[tuple[str, str]] = []

    def changed_paths(self, ref: str, path: str) -> list[str]:
        self.calls.append((ref, path))
        if path in self.failing:
            raise ChangeDetectionError(f"git failed for {path}")
        return list(self.changes.get(path, []))


class FakeEngine(DiffEngine):
    """Returns canned diffs keyed by stack display name."""

    def __init__(self) -> None:
        self.responses: dict[str, EngineDiff] = {}
        self.raising: dict[str, Exception] = {}
        self.calls: list[tuple[str, DiffMethod]] = []

    def diff(self, stage: Stage, method: DiffMethod) -> EngineDiff:
        self.calls.append((stage.display_name, method))
        if stage.display_name in self.raising:
            raise self.raising[stage.display_name]
        return self.responses.get(
            stage.display_name,
            EngineDiff(
                has_changes=True,
                body=f"Stack {stage.display_name}\nResources\n[+] AWS::SQS::Queue Queue Queue1234",
                resources=ResourceChanges(added=1),
            ),
        )

    def fail(self, name: str, message: str = "boom") -> None:
        self.raising[name] = EngineError(message)


class FakeComments(CommentPlatform):
    """In-memory pull request comment thread."""

    def __init__(self) -> None:
        self.comments: dict[str, str] = {}
        self.writes: list[tuple[str, str]] = []
        self.fail_writes = False

    def find_existing(self, key: str) -> str | None:
        marker = comment_marker(key)
        for handle, body in self.comments.items():
            if marker in body:
                return handle
        return None

    def create(self, body: str) -> str:
        if self.fail_writes:
            raise CommentWriteError("create failed")
        handle = str(len(self.comments) + 1)
        self.comments[handle] = body
        self.writes.append(("create", handle))
        return handle

    def update(self, handle: str, body: str) -> None:
        if self.fail_writes:
            raise CommentWriteError("update failed")
        self.comments[handle] = body
        self.writes.append(("update", handle))


@pytest.fixture
def fake_vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fake_comments() -> FakeComments:
    return FakeComments()


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    """A repository with two CDK apps, `a` and `b`, each synthesized."""
    write_assembly(tmp_path / "a" / "cdk.out", ["NetworkStack", "ServiceStack"])
    write_assembly(tmp_path / "b" / "cdk.out", ["DataStack"])
    (tmp_path / "README.md").write_text("# infra\n")
    return tmp_path


@pytest.fixture
def staged_assembly(tmp_path: Path) -> Path:
    """An assembly with one main stack and two CDK Stages."""
    return write_assembly(
        tmp_path / "cdk.out",
        {"Pipeline": []},
        nested={"Beta": ["Service"], "Prod": {"Database": [], "Service": ["Database"]}},
    )
