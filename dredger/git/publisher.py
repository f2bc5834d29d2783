"""Applies patches to a checkout and opens a pull request with git and gh."""

from __future__ import annotations

import os
import subprocess
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterable, List, Sequence

from ..logging import get_logger
from ..models import PatchEntry, RunReport

logger = get_logger("git.publisher")


class Publisher:
    """Writes generated documentation to disk and submits it for review."""

    COMMIT_MESSAGE = "docs: add generated documentation comments"

    def __init__(self, runner: Callable[..., str] | None = None) -> None:
        self._runner = runner or self._default_runner

    def apply(self, repo_path: str | Path, patches: Sequence[PatchEntry]) -> List[str]:
        """Write patched files and return their repo-relative paths.

        Refuses any file whose content changed since it was scanned.
        """
        repo = Path(repo_path)
        for entry in patches:
            current = (repo / entry.path).read_bytes().decode("utf-8")
            if current != entry.original_text:
                raise RuntimeError(f"{entry.path} changed on disk since it was scanned")
        written: List[str] = []
        for entry in patches:
            # Bytes keep the file's own newline convention.
            (repo / entry.path).write_bytes(entry.modified_text.encode("utf-8"))
            written.append(entry.path)
        logger.info("Applied documentation patches to %d files", len(written))
        return written

    def commit(
        self,
        repo_path: str | Path,
        paths: Sequence[str],
        *,
        message: str = COMMIT_MESSAGE,
    ) -> bool:
        """Stage repo-relative paths and commit them; False when nothing changed."""
        repo = Path(repo_path)
        if not (repo / ".git").exists():
            return False
        if paths:
            self._run(["git", "add", "--", *paths], cwd=repo)
        if not self._run(["git", "status", "--porcelain"], cwd=repo, capture_output=True).strip():
            return False
        self._run(["git", "commit", "-m", message], cwd=repo, env=_commit_env())
        return True

    def publish(
        self,
        repo_path: str | Path,
        patches: Sequence[PatchEntry],
        report: RunReport,
        *,
        branch_prefix: str = "dredger/",
        base_branch: str | None = None,
        labels: Sequence[str] | None = None,
        update_existing: bool = False,
        push: bool = True,
    ) -> bool:
        """Create a branch, apply and commit the patches, push, and open or update a PR."""
        repo = Path(repo_path)
        if not patches:
            logger.info("No patches to publish")
            return False
        if not (repo / ".git").exists():
            logger.warning("%s is not a git repository; nothing published", repo)
            return False

        branch_name = build_branch_name(branch_prefix)
        checkout_cmd = ["git", "checkout", "-B", branch_name]
        if base_branch:
            checkout_cmd.append(base_branch)
        written: List[str] = []
        committed = False
        try:
            self._run(checkout_cmd, cwd=repo)
            written = self.apply(repo, patches)
            committed = self.commit(repo, written)
            if not committed:
                return False
            if push:
                self._run(["git", "push", "-u", "origin", branch_name], cwd=repo)
            self._open_or_update_pr(
                repo,
                branch_name,
                base_branch=base_branch,
                title=build_pr_title(report),
                body=report.render_markdown(),
                update_existing=update_existing,
            )
            for label in labels or ():
                if label:
                    self._run(["gh", "pr", "edit", branch_name, "--add-label", label], cwd=repo)
        except (subprocess.CalledProcessError, OSError, RuntimeError) as exc:
            logger.warning("Publishing to %s failed: %s", branch_name, exc)
            _report_leftovers(branch_name, written, committed)
            return False

        logger.info("Opened pull request from %s", branch_name)
        return True

    def _open_or_update_pr(
        self,
        repo: Path,
        branch_name: str,
        *,
        base_branch: str | None,
        title: str,
        body: str,
        update_existing: bool,
    ) -> None:
        if update_existing and self._pr_exists(repo, branch_name):
            self._run(["gh", "pr", "edit", branch_name, "--title", title, "--body", body], cwd=repo)
            return
        pr_args = ["gh", "pr", "create", "--title", title, "--body", body]
        if base_branch:
            pr_args.extend(["--base", base_branch])
        pr_args.extend(["--head", branch_name])
        self._run(pr_args, cwd=repo)

    def _pr_exists(self, repo: Path, branch_name: str) -> bool:
        try:
            self._run(["gh", "pr", "view", branch_name, "--json", "number"], cwd=repo, capture_output=True)
        except subprocess.CalledProcessError:
            return False
        return True

    def _run(
        self,
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        return self._runner(args, cwd=cwd, env=env, capture_output=capture_output)

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        env: dict[str, str] | None = None,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=env,
            check=True,
            text=True,
            capture_output=capture_output,
        )
        if capture_output:
            return completed.stdout
        return ""


def _report_leftovers(branch_name: str, written: Sequence[str], committed: bool) -> None:
    if committed:
        logger.warning(
            "The documentation commit for %d files stays on local branch %s; push it or delete the branch",
            len(written),
            branch_name,
        )
    elif written:
        logger.warning(
            "Uncommitted documentation changes stay in the working tree on branch %s: %s",
            branch_name,
            ", ".join(written),
        )


def _commit_env() -> dict[str, str]:
    env = dict(os.environ)
    author = env.setdefault("GIT_AUTHOR_NAME", "dredger")
    email = env.setdefault("GIT_AUTHOR_EMAIL", "dredger@users.noreply.github.com")
    env.setdefault("GIT_COMMITTER_NAME", author)
    env.setdefault("GIT_COMMITTER_EMAIL", email)
    return env


def build_branch_name(prefix: str) -> str:
    sanitized = prefix.strip().replace(" ", "-") or "dredger/docs"
    timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    if sanitized.endswith("/"):
        return f"{sanitized}{timestamp}"
    return f"{sanitized}-{timestamp}"


def build_pr_title(report: RunReport) -> str:
    title = f"docs: document {report.documented_units} units in {report.files_changed} files"
    if report.failed:
        title += f" ({report.failed} chunks failed)"
    return title


__all__ = ["Publisher", "build_branch_name", "build_pr_title"]
