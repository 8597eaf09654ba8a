"""Tests for comment rendering and pull request comment synchronization."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from cdkdiff.assembly.models import Stage
from cdkdiff.config import DiffMethod
from cdkdiff.diff.models import DiffOutcome, DiffResult, ResourceChanges
from cdkdiff.exceptions import CommentWriteError
from cdkdiff.github.comments import (
    ConsoleComments,
    GitHubComments,
    read_pull_request_number,
    upsert_comment,
)
from cdkdiff.github.renderer import (
    MAX_COMMENT_LENGTH,
    comment_key,
    comment_marker,
    render_comment,
)


def _stage(name: str) -> Stage:
    return Stage(artifact_id=name.replace("/", ""), display_name=name, assembly_dir="cdk.out")


def _result(name: str, outcome: DiffOutcome = DiffOutcome.CHANGED, **kwargs) -> DiffResult:
    return DiffResult(stage=_stage(name), outcome=outcome, **kwargs)


class TestCommentKey:
    def test_stable(self):
        assert comment_key("infra/a/cdk.out") == comment_key("infra/a/cdk.out")

    def test_depends_on_directory(self):
        assert comment_key("infra/a/cdk.out") != comment_key("infra/b/cdk.out")

    def test_depends_on_title(self):
        assert comment_key("infra/a/cdk.out", "Prod") != comment_key("infra/a/cdk.out", "Beta")

    def test_trailing_slash_ignored(self):
        assert comment_key("infra/a/cdk.out/") == comment_key("infra/a/cdk.out")

    def test_key_independent_of_content(self):
        first = render_comment("a/cdk.out", [_result("One", body="x")])
        second = render_comment("a/cdk.out", [_result("One", body="y")])
        assert first.key == second.key
        assert first.body != second.body


class TestRenderer:
    def test_marker_first_line(self):
        artifact = render_comment("a/cdk.out", [_result("Service")])
        assert artifact.body.splitlines()[0] == comment_marker(artifact.key)
        assert artifact.marker == comment_marker(artifact.key)

    def test_title_heading(self):
        artifact = render_comment("a/cdk.out", [_result("Service")], title="Staging")
        assert "## Staging" in artifact.body
        assert artifact.title == "Staging"

    def test_no_title_heading(self):
        artifact = render_comment("a/cdk.out", [_result("Service")])
        assert "## " not in artifact.body.replace("### ", "")

    def test_preserves_stage_order(self):
        results = [_result("Zeta"), _result("Alpha"), _result("Mid")]
        body = render_comment("a/cdk.out", results).body
        assert body.index("<code>Zeta</code>") < body.index("<code>Alpha</code>") < body.index("<code>Mid</code>")

    def test_error_and_success_together(self):
        results = [
            _result("Good", body="[+] AWS::SQS::Queue Q Q1"),
            _result("Bad", DiffOutcome.ERROR, error="Access denied"),
        ]
        body = render_comment("a/cdk.out", results).body
        assert "AWS::SQS::Queue" in body
        assert "Access denied" in body
        assert "diff failed" in body

    def test_unchanged_stage(self):
        body = render_comment("a/cdk.out", [_result("Same", DiffOutcome.UNCHANGED)]).body
        assert "no changes" in body
        assert "There were no differences" in body

    def test_replacement_warning(self):
        result = _result(
            "Data",
            resources=ResourceChanges(updated=1, replacements=["AWS::RDS::DBInstance Db"]),
            replacements=["AWS::RDS::DBInstance Db"],
        )
        body = render_comment("a/cdk.out", [result]).body
        assert "[!WARNING]" in body
        assert "AWS::RDS::DBInstance Db" in body

    def test_template_only_notes_missing_replacements(self):
        body = render_comment(
            "a/cdk.out", [_result("Data")], method=DiffMethod.TEMPLATE_ONLY
        ).body
        assert "n/a" in body
        assert "replacements are not detected" in body

    def test_resource_counts_in_summary(self):
        result = _result("Svc", resources=ResourceChanges(added=2, updated=1, removed=3))
        body = render_comment("a/cdk.out", [result]).body
        assert "+2 ~1 -3 resources" in body

    def test_empty_results(self):
        body = render_comment("a/cdk.out", []).body
        assert "No stacks were selected" in body

    def test_truncates_long_comments(self):
        huge = "[~] AWS::Lambda::Function Fn Fn1\n" * 5000
        results = [_result("One", body=huge), _result("Two", body=huge)]
        artifact = render_comment("a/cdk.out", results)
        assert len(artifact.body) <= MAX_COMMENT_LENGTH
        assert "diff truncated" in artifact.body
        assert "<code>Two</code>" in artifact.body
        assert artifact.body.startswith(comment_marker(artifact.key))

    @pytest.mark.parametrize("max_length", [1500, 1750, 2000, 2250])
    def test_hard_truncation_keeps_markdown_balanced(self, max_length: int):
        huge = "[~] AWS::Lambda::Function Fn Fn1\n" * 200
        results = [_result(f"Stack{i}", body=huge) for i in range(5)]
        body = render_comment("a/cdk.out", results, max_length=max_length).body
        lines = body.splitlines()
        assert len(body) <= max_length
        assert body.endswith("see the job log for the full output)")
        assert sum(1 for line in lines if line.startswith("```")) % 2 == 0
        assert lines.count("<details>") == lines.count("</details>")


class TestUpsert:
    def test_creates_when_absent(self, fake_comments):
        artifact = render_comment("a/cdk.out", [_result("Svc")])
        handle = upsert_comment(fake_comments, artifact)
        assert fake_comments.writes == [("create", handle)]

    def test_updates_when_present(self, fake_comments):
        first = render_comment("a/cdk.out", [_result("Svc", body="v1")])
        second = render_comment("a/cdk.out", [_result("Svc", body="v2")])
        handle = upsert_comment(fake_comments, first)
        assert upsert_comment(fake_comments, second) == handle
        assert len(fake_comments.comments) == 1
        assert "v2" in fake_comments.comments[handle]
        assert fake_comments.writes == [("create", handle), ("update", handle)]

    def test_titles_get_separate_comments(self, fake_comments):
        upsert_comment(fake_comments, render_comment("a/cdk.out", [_result("Svc")], title="Prod"))
        upsert_comment(fake_comments, render_comment("a/cdk.out", [_result("Svc")], title="Beta"))
        assert len(fake_comments.comments) == 2

    def test_write_failure_propagates(self, fake_comments):
        fake_comments.fail_writes = True
        with pytest.raises(CommentWriteError):
            upsert_comment(fake_comments, render_comment("a/cdk.out", [_result("Svc")]))


class _Completed:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = ""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class _GhRecorder:
    """Stands in for subprocess.run, answering gh api calls from a queue."""

    def __init__(self, *responses: _Completed):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append({"cmd": cmd, **kwargs})
        return self.responses.pop(0)


class TestGitHubComments:
    def test_find_existing(self, monkeypatch):
        gh = _GhRecorder(_Completed(stdout="111\n222\n"))
        monkeypatch.setattr(subprocess, "run", gh)
        comments = GitHubComments("tok", repository="org/infra", pr_number=7)

        assert comments.find_existing("abc") == "111"
        call = gh.calls[0]
        assert call["cmd"][:3] == ["gh", "api", "--paginate"]
        assert "repos/org/infra/issues/7/comments" in call["cmd"]
        assert comment_marker("abc") in call["cmd"][-1]
        assert call["env"]["GH_TOKEN"] == "tok"

    def test_find_missing(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", _GhRecorder(_Completed(stdout="")))
        comments = GitHubComments("tok", repository="org/infra", pr_number=7)
        assert comments.find_existing("abc") is None

    def test_create(self, monkeypatch):
        gh = _GhRecorder(_Completed(stdout="333\n"))
        monkeypatch.setattr(subprocess, "run", gh)
        comments = GitHubComments("tok", repository="org/infra", pr_number=7)

        assert comments.create("hello") == "333"
        call = gh.calls[0]
        assert "POST" in call["cmd"]
        assert json.loads(call["input"]) == {"body": "hello"}

    def test_update(self, monkeypatch):
        gh = _GhRecorder(_Completed(stdout="333\n"))
        monkeypatch.setattr(subprocess, "run", gh)
        GitHubComments("tok", repository="org/infra", pr_number=7).update("333", "new")
        call = gh.calls[0]
        assert "PATCH" in call["cmd"]
        assert "repos/org/infra/issues/comments/333" in call["cmd"]
        assert json.loads(call["input"]) == {"body": "new"}

    def test_failed_write_raises(self, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run", _GhRecorder(_Completed(returncode=1, stderr="HTTP 403"))
        )
        comments = GitHubComments("tok", repository="org/infra", pr_number=7)
        with pytest.raises(CommentWriteError, match="403"):
            comments.create("hello")

    def test_gh_missing_raises(self, monkeypatch):
        def missing(cmd, **kwargs):
            raise FileNotFoundError("gh")

        monkeypatch.setattr(subprocess, "run", missing)
        comments = GitHubComments("tok", repository="org/infra", pr_number=7)
        with pytest.raises(CommentWriteError):
            comments.update("1", "body")

    def test_context_from_environment(self, monkeypatch, tmp_path: Path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"pull_request": {"number": 42}}))
        monkeypatch.setenv("GITHUB_REPOSITORY", "org/infra")
        monkeypatch.setenv("GITHUB_EVENT_PATH", str(event))
        comments = GitHubComments("tok")
        assert comments.repository == "org/infra"
        assert comments.pr_number == 42

    def test_missing_pull_request(self, monkeypatch, tmp_path: Path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"push": {}}))
        monkeypatch.setenv("GITHUB_REPOSITORY", "org/infra")
        monkeypatch.setenv("GITHUB_EVENT_PATH", str(event))
        with pytest.raises(CommentWriteError, match="No pull request"):
            GitHubComments("tok").create("body")

    def test_read_pull_request_number(self, tmp_path: Path):
        assert read_pull_request_number(None) is None
        assert read_pull_request_number(str(tmp_path / "missing.json")) is None


class TestConsoleComments:
    def test_prints_instead_of_posting(self):
        printed = []

        class _Console:
            def markdown(self, text):
                printed.append(text)

        comments = ConsoleComments(_Console())
        assert comments.find_existing("abc") is None
        assert comments.create("body") == "dry-run-1"
        assert printed == ["body"]
