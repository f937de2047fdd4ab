# File: tests/conftest.py
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from seo_autofix.config import CrawlerConfig, TrackingConfig
from seo_autofix.errors import CommandFailed
from seo_autofix.tracking.registry import SiteRegistry
from seo_autofix.vcs.adapter import CommitRef, GitAdapter

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")


@pytest.fixture()
def crawler_config() -> CrawlerConfig:
    """
    Fast crawler settings for tests against local servers.
    """
    return CrawlerConfig(
        max_pages=50,
        max_depth=3,
        timeout=2.0,
        user_agent="TestAgent/1.0",
        rate_limit=1000.0,
        retry_times=0,
        concurrency=4,
    )


@pytest.fixture()
def tracking_config(tmp_path) -> TrackingConfig:
    return TrackingConfig(repos_base_path=tmp_path / "repos", git_timeout=30.0)


@pytest.fixture()
def git_adapter(tmp_path, tracking_config) -> GitAdapter:
    """
    GitAdapter on an empty directory (not yet initialized).
    """
    return GitAdapter(
        tmp_path / "repo",
        author_name=tracking_config.author_name,
        author_email=tracking_config.author_email,
        timeout=tracking_config.git_timeout,
    )


@pytest.fixture()
def registry(tracking_config) -> SiteRegistry:
    return SiteRegistry(tracking_config)


def git(repo: Path, *args: str) -> str:
    """Run plain git in *repo* and return stdout (test assertions only)."""
    return subprocess.run(
        ["git", *args], cwd=repo, check=True, capture_output=True, text=True
    ).stdout.strip()


class FakeAdapter:
    """
    In-memory VCS adapter: every call is recorded; any method listed in
    ``fail_on`` raises CommandFailed.
    """

    def __init__(self, fail_on: Optional[Dict[str, int]] = None) -> None:
        self.calls: List[tuple] = []
        self.fail_on = dict(fail_on or {})
        self.branches = {"main"}
        self.tags: set = set()
        self.current = "main"
        self._counter = 0

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise CommandFailed(["git", name], self.fail_on[name], f"{name} exploded")

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def init(self) -> None:
        self._call("init")

    def clone(self, url: str) -> None:
        self._call("clone", url)

    def is_repository(self) -> bool:
        return True

    def has_commits(self) -> bool:
        return True

    def stage(self, paths) -> None:
        self._call("stage", list(paths))

    def commit(self, message, metadata=None, *, allow_empty=False) -> CommitRef:
        self._call("commit", message, dict(metadata or {}))
        self._counter += 1
        return CommitRef(f"{self._counter:040x}")

    def create_branch(self, name, from_branch=None) -> None:
        self._call("create_branch", name, from_branch)
        self.branches.add(name)
        self.current = name

    def checkout(self, branch) -> None:
        self._call("checkout", branch)
        self.current = branch

    def merge_no_ff(self, branch, message, metadata=None) -> CommitRef:
        self._call("merge_no_ff", branch, message)
        self._counter += 1
        return CommitRef(f"{self._counter:040x}")

    def tag(self, name, message) -> None:
        self._call("tag", name)
        self.tags.add(name)

    def revert_commit(self, ref, *, mainline=None, no_commit=False) -> None:
        self._call("revert_commit", ref, mainline)

    def abort_revert(self) -> None:
        self._call("abort_revert")

    def reset_hard(self, ref) -> None:
        self._call("reset_hard", ref)

    def delete_branch(self, name) -> None:
        self._call("delete_branch", name)
        self.branches.discard(name)

    def log(self, limit=10):
        return []

    def diff(self, from_ref, to_ref="HEAD"):
        return []

    def status(self) -> str:
        return ""

    def has_conflicts(self) -> bool:
        return False

    def conflicted_files(self) -> List[str]:
        return []

    def rev_parse(self, ref) -> str:
        self._call("rev_parse", ref)
        return "f" * 40

    def branch_exists(self, name) -> bool:
        return name in self.branches

    def tag_exists(self, name) -> bool:
        return name in self.tags

    def current_branch(self) -> Optional[str]:
        return self.current

    def show_file(self, ref, path) -> str:
        raise CommandFailed(["git", "show"], 128, "not tracked")


@pytest.fixture()
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()
