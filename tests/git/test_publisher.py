"""Tests for the git publisher."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List

import pytest

from dredger.git.publisher import Publisher, build_branch_name, build_pr_title
from dredger.models import PatchEntry, RunReport


def _entry(path: str, original: str, modified: str) -> PatchEntry:
    return PatchEntry(path=path, original_text=original, modified_text=modified)


def _report() -> RunReport:
    report = RunReport(model="llama3.1", budget=2048, documented_units=3, files_changed=1)
    return report.finalize()


def test_apply_writes_patched_text(tmp_path: Path) -> None:
    target = tmp_path / "mod.py"
    target.write_bytes(b"def f():\r\n    pass\r\n")

    written = Publisher().apply(
        tmp_path,
        [_entry("mod.py", "def f():\r\n    pass\r\n", "# Doc.\r\ndef f():\r\n    pass\r\n")],
    )

    assert written == ["mod.py"]
    assert target.read_bytes() == b"# Doc.\r\ndef f():\r\n    pass\r\n"


def test_apply_refuses_files_changed_since_scan(tmp_path: Path) -> None:
    (tmp_path / "mod.py").write_text("edited by someone else\n", encoding="utf-8")

    with pytest.raises(RuntimeError, match="changed on disk"):
        Publisher().apply(tmp_path, [_entry("mod.py", "original\n", "# Doc.\noriginal\n")])


def test_publisher_adds_and_commits_files(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / ".git").mkdir()
    (repo / "mod.py").write_text("content", encoding="utf-8")

    calls = []

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append((list(args), Path(cwd), capture_output, env))
        if capture_output and list(args) == ["git", "status", "--porcelain"]:
            return " M mod.py\n"
        return ""

    result = Publisher(runner=runner).commit(str(repo), ["mod.py"], message="docs: add comments")

    assert calls[0][0] == ["git", "add", "--", "mod.py"]
    assert calls[0][1] == repo
    assert calls[1][0] == ["git", "status", "--porcelain"]
    assert calls[2][0] == ["git", "commit", "-m", "docs: add comments"]
    assert calls[2][3]["GIT_AUTHOR_NAME"]
    assert result is True


def test_publisher_noop_without_git_repo(tmp_path: Path) -> None:
    calls = []

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        return ""

    result = Publisher(runner=runner).commit(str(tmp_path), ["mod.py"])

    assert not calls
    assert result is False


def _git_repo(tmp_path: Path) -> Path:
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / ".git").mkdir()
    (repo / "mod.py").write_text("def f():\n    pass\n", encoding="utf-8")
    return repo


def test_publish_runs_git_and_gh_commands(tmp_path: Path) -> None:
    repo = _git_repo(tmp_path)
    calls = []

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        if list(args) == ["git", "status", "--porcelain"]:
            return " M mod.py\n"
        return ""

    patches = [_entry("mod.py", "def f():\n    pass\n", "# Doc.\ndef f():\n    pass\n")]
    result = Publisher(runner=runner).publish(
        repo,
        patches,
        _report(),
        branch_prefix="docs/",
        base_branch="main",
        labels=["documentation"],
    )

    assert result is True
    assert calls[0][:3] == ["git", "checkout", "-B"]
    branch = calls[0][3]
    assert branch.startswith("docs/")
    assert calls[0][4] == "main"
    assert ["git", "push", "-u", "origin", branch] in calls
    create = next(call for call in calls if call[:3] == ["gh", "pr", "create"])
    assert create[create.index("--base") + 1] == "main"
    assert create[create.index("--head") + 1] == branch
    assert "## Generated documentation" in create[create.index("--body") + 1]
    assert calls[-1] == ["gh", "pr", "edit", branch, "--add-label", "documentation"]
    assert (repo / "mod.py").read_text(encoding="utf-8") == "# Doc.\ndef f():\n    pass\n"


def test_publish_updates_existing_pull_request(tmp_path: Path) -> None:
    repo = _git_repo(tmp_path)
    calls = []

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        if list(args) == ["git", "status", "--porcelain"]:
            return " M mod.py\n"
        return ""

    patches = [_entry("mod.py", "def f():\n    pass\n", "# Doc.\ndef f():\n    pass\n")]
    Publisher(runner=runner).publish(repo, patches, _report(), update_existing=True, push=False)

    assert not any(call[:2] == ["git", "push"] for call in calls)
    assert not any(call[:3] == ["gh", "pr", "create"] for call in calls)
    assert any(call[:3] == ["gh", "pr", "edit"] and "--title" in call for call in calls)


def test_publish_reports_command_failures(tmp_path: Path) -> None:
    repo = _git_repo(tmp_path)

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        if list(args)[:2] == ["git", "push"]:
            raise subprocess.CalledProcessError(1, list(args))
        if list(args) == ["git", "status", "--porcelain"]:
            return " M mod.py\n"
        return ""

    patches = [_entry("mod.py", "def f():\n    pass\n", "# Doc.\ndef f():\n    pass\n")]

    assert Publisher(runner=runner).publish(repo, patches, _report()) is False


def test_publish_without_patches_is_a_noop(tmp_path: Path) -> None:
    calls = []

    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        return ""

    assert Publisher(runner=runner).publish(_git_repo(tmp_path), [], _report()) is False
    assert calls == []


def test_branch_and_title_helpers() -> None:
    assert build_branch_name("dredger/").startswith("dredger/")
    assert build_branch_name("docs").startswith("docs-")
    report = RunReport(model="m", budget=10, documented_units=4, files_changed=2, failed=1)
    assert build_pr_title(report) == "docs: document 4 units in 2 files (1 chunks failed)"


def test_apply_writes_nothing_when_any_file_changed(tmp_path: Path) -> None:
    (tmp_path / "a.py").write_text("a\n", encoding="utf-8")
    (tmp_path / "b.py").write_text("edited\n", encoding="utf-8")
    patches = [_entry("a.py", "a\n", "# A.\na\n"), _entry("b.py", "b\n", "# B.\nb\n")]

    with pytest.raises(RuntimeError, match="b.py changed on disk"):
        Publisher().apply(tmp_path, patches)

    assert (tmp_path / "a.py").read_text(encoding="utf-8") == "a\n"


def _failing_runner(command: List[str]):  # type: ignore[no-untyped-def]
    def runner(args, cwd, env=None, capture_output=False):  # type: ignore[no-untyped-def]
        if list(args)[: len(command)] == command:
            raise subprocess.CalledProcessError(1, list(args))
        if list(args) == ["git", "status", "--porcelain"]:
            return " M mod.py\n"
        return ""

    return runner


def test_failed_commit_logs_uncommitted_files(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    repo = _git_repo(tmp_path)
    patches = [_entry("mod.py", "def f():\n    pass\n", "# Doc.\ndef f():\n    pass\n")]

    with caplog.at_level(logging.WARNING, logger="dredger"):
        published = Publisher(runner=_failing_runner(["git", "commit"])).publish(repo, patches, _report())

    assert published is False
    assert "Uncommitted documentation changes" in caplog.text
    assert "mod.py" in caplog.text


def test_failed_push_logs_local_branch(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    repo = _git_repo(tmp_path)
    patches = [_entry("mod.py", "def f():\n    pass\n", "# Doc.\ndef f():\n    pass\n")]

    with caplog.at_level(logging.WARNING, logger="dredger"):
        published = Publisher(runner=_failing_runner(["git", "push"])).publish(
            repo, patches, _report(), branch_prefix="docs/"
        )

    assert published is False
    assert "stays on local branch docs/" in caplog.text
