# seo_autofix/vcs/adapter.py
"""
VCS adapter: synchronous git operations scoped to one repository directory.

:class:`VCSAdapter` is the capability the change tracker depends on;
:class:`GitAdapter` implements it with the ``git`` binary. Every call runs
with a timeout; a timeout is fatal for that call and never retried.
"""
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from seo_autofix.errors import CommandFailed, CommandTimeout
from seo_autofix.logger import logger
from seo_autofix.vcs.message import format_message, parse_message

__all__ = ("CommitRef", "CommitInfo", "DiffEntry", "VCSAdapter", "GitAdapter")

_UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


@dataclass(frozen=True, slots=True)
class CommitRef:
    hash: str

    @property
    def short(self) -> str:
        return self.hash[:10]

    def __str__(self) -> str:
        return self.hash


@dataclass(frozen=True, slots=True)
class CommitInfo:
    hash: str
    author: str
    email: str
    date: datetime
    subject: str
    body: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DiffEntry:
    status: str
    file: str


@runtime_checkable
class VCSAdapter(Protocol):
    """Operations the change tracker needs from a version-control system."""

    repo_path: Path

    def init(self) -> None: ...
    def clone(self, url: str) -> None: ...
    def is_repository(self) -> bool: ...
    def has_commits(self) -> bool: ...
    def stage(self, paths: Sequence[Union[str, Path]]) -> None: ...
    def commit(self, message: str, metadata: Optional[Mapping[str, Any]] = None, *, allow_empty: bool = False) -> CommitRef: ...
    def create_branch(self, name: str, from_branch: Optional[str] = None) -> None: ...
    def checkout(self, branch: str) -> None: ...
    def merge_no_ff(self, branch: str, message: str, metadata: Optional[Mapping[str, Any]] = None) -> CommitRef: ...
    def tag(self, name: str, message: str) -> None: ...
    def revert_commit(self, ref: str, *, mainline: Optional[int] = None, no_commit: bool = False) -> None: ...
    def abort_revert(self) -> None: ...
    def reset_hard(self, ref: str) -> None: ...
    def log(self, limit: int = 10) -> List[CommitInfo]: ...
    def diff(self, from_ref: str, to_ref: Optional[str] = "HEAD") -> List[DiffEntry]: ...
    def status(self) -> str: ...
    def has_conflicts(self) -> bool: ...
    def conflicted_files(self) -> List[str]: ...
    def rev_parse(self, ref: str) -> str: ...
    def branch_exists(self, name: str) -> bool: ...
    def tag_exists(self, name: str) -> bool: ...
    def current_branch(self) -> Optional[str]: ...
    def show_file(self, ref: str, path: str) -> str: ...
    def delete_branch(self, name: str) -> None: ...


class GitAdapter:
    """Runs ``git`` in *repo_path* with a fixed identity and timeout."""

    def __init__(
        self,
        repo_path: Union[str, Path],
        *,
        author_name: str = "SEO Autofix",
        author_email: str = "automation@seo-autofix.local",
        default_branch: str = "main",
        timeout: float = 60.0,
    ) -> None:
        self.repo_path = Path(repo_path)
        self.author_name = author_name
        self.author_email = author_email
        self.default_branch = default_branch
        self.timeout = timeout

    # ------------------------------------------------------------------ #
    # Process plumbing                                                   #
    # ------------------------------------------------------------------ #

    def _run(
        self,
        *args: str,
        input: Optional[str] = None,
        check: bool = True,
        cwd: Optional[Path] = None,
    ) -> subprocess.CompletedProcess:
        command = [
            "git",
            "-c", f"user.name={self.author_name}",
            "-c", f"user.email={self.author_email}",
            *args,
        ]
        shown = ["git", *args]
        workdir = cwd or self.repo_path
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", "GIT_MERGE_AUTOEDIT": "no"}
        try:
            proc = subprocess.run(
                command,
                cwd=str(workdir),
                input=input,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as exc:
            logger.error("Git timeout after %ss: %s", self.timeout, " ".join(shown))
            raise CommandTimeout(shown, self.timeout) from exc
        except FileNotFoundError as exc:
            raise CommandFailed(shown, 127, f"cannot run git in {workdir}: {exc}") from exc

        if check and proc.returncode != 0:
            logger.error("Git error (%d): %s: %s", proc.returncode, " ".join(shown), proc.stderr.strip())
            raise CommandFailed(shown, proc.returncode, proc.stderr or proc.stdout)
        if proc.stderr and "warning:" not in proc.stderr:
            logger.debug("Git stderr: %s", proc.stderr.strip())
        return proc

    def _out(self, *args: str, **kwargs: Any) -> str:
        return self._run(*args, **kwargs).stdout.strip()

    @staticmethod
    def _message_args(message: str) -> List[str]:
        """One ``-m`` per paragraph, which git joins back with blank lines."""
        args: List[str] = []
        for paragraph in message.strip().split("\n\n"):
            if paragraph.strip():
                args += ["-m", paragraph.strip()]
        return args

    # ------------------------------------------------------------------ #
    # Repository lifecycle                                               #
    # ------------------------------------------------------------------ #

    def init(self) -> None:
        self.repo_path.mkdir(parents=True, exist_ok=True)
        self._run("init")
        self._run("symbolic-ref", "HEAD", f"refs/heads/{self.default_branch}")
        logger.debug("Initialized Git repository at %s", self.repo_path)

    def clone(self, url: str) -> None:
        self.repo_path.parent.mkdir(parents=True, exist_ok=True)
        self._run("clone", url, str(self.repo_path), cwd=self.repo_path.parent)

    def is_repository(self) -> bool:
        if not self.repo_path.is_dir():
            return False
        proc = self._run("rev-parse", "--show-toplevel", check=False)
        if proc.returncode != 0:
            return False
        return Path(proc.stdout.strip()).resolve() == self.repo_path.resolve()

    def has_commits(self) -> bool:
        return self._run("rev-parse", "--verify", "-q", "HEAD", check=False).returncode == 0

    # ------------------------------------------------------------------ #
    # Writes                                                             #
    # ------------------------------------------------------------------ #

    def stage(self, paths: Sequence[Union[str, Path]]) -> None:
        if not paths:
            return
        self._run("add", "--", *(str(p) for p in paths))

    def commit(
        self,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        allow_empty: bool = False,
    ) -> CommitRef:
        args = ["commit", "-F", "-"]
        if allow_empty:
            args.append("--allow-empty")
        self._run(*args, input=format_message(message, metadata))
        return CommitRef(self.rev_parse("HEAD"))

    def create_branch(self, name: str, from_branch: Optional[str] = None) -> None:
        args = ["checkout", "-b", name]
        if from_branch:
            args.append(from_branch)
        self._run(*args)

    def checkout(self, branch: str) -> None:
        self._run("checkout", branch)

    def merge_no_ff(self, branch: str, message: str, metadata: Optional[Mapping[str, Any]] = None) -> CommitRef:
        self._run("merge", "--no-ff", "--no-edit", *self._message_args(format_message(message, metadata)), branch)
        return CommitRef(self.rev_parse("HEAD"))

    def tag(self, name: str, message: str) -> None:
        self._run("tag", "-a", name, "-m", message)

    def revert_commit(self, ref: str, *, mainline: Optional[int] = None, no_commit: bool = False) -> None:
        args = ["revert"]
        args.append("--no-commit" if no_commit else "--no-edit")
        if mainline is not None:
            args += ["-m", str(mainline)]
        self._run(*args, ref)

    def abort_revert(self) -> None:
        try:
            self._run("revert", "--abort")
        except CommandFailed:
            self._run("reset", "--merge")

    def delete_branch(self, name: str) -> None:
        self._run("branch", "-D", name)

    def reset_hard(self, ref: str) -> None:
        """Move the current branch to *ref*, dropping index, working-tree and merge state."""
        self._run("reset", "--hard", ref)

    # ------------------------------------------------------------------ #
    # Reads                                                              #
    # ------------------------------------------------------------------ #

    def log(self, limit: int = 10) -> List[CommitInfo]:
        if not self.has_commits():
            return []
        fmt = _FIELD_SEP.join(("%H", "%an", "%ae", "%at", "%B")) + _RECORD_SEP
        output = self._run("log", f"-n{int(limit)}", f"--pretty=format:{fmt}").stdout
        commits: List[CommitInfo] = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            hash_, author, email, timestamp, raw = record.split(_FIELD_SEP, 4)
            subject, body, metadata = parse_message(raw)
            commits.append(
                CommitInfo(
                    hash=hash_,
                    author=author,
                    email=email,
                    date=datetime.fromtimestamp(int(timestamp), tz=timezone.utc),
                    subject=subject,
                    body=body,
                    metadata=metadata,
                )
            )
        return commits

    def diff(self, from_ref: str, to_ref: Optional[str] = "HEAD") -> List[DiffEntry]:
        args = ["diff", "--name-status", from_ref]
        if to_ref:
            args.append(to_ref)
        entries: List[DiffEntry] = []
        for line in self._out(*args).splitlines():
            status, _, file = line.partition("\t")
            if file:
                entries.append(DiffEntry(status=status, file=file))
        return entries

    def status(self) -> str:
        return self._out("status", "--porcelain")

    def has_conflicts(self) -> bool:
        return any(line[:2] in _UNMERGED_CODES for line in self.status().splitlines())

    def conflicted_files(self) -> List[str]:
        if not self.has_conflicts():
            return []
        output = self._out("diff", "--name-only", "--diff-filter=U")
        return [f for f in output.splitlines() if f.strip()]

    def rev_parse(self, ref: str) -> str:
        return self._out("rev-parse", "--verify", "-q", ref)

    def branch_exists(self, name: str) -> bool:
        return self._run("show-ref", "--verify", "-q", f"refs/heads/{name}", check=False).returncode == 0

    def tag_exists(self, name: str) -> bool:
        return self._run("show-ref", "--verify", "-q", f"refs/tags/{name}", check=False).returncode == 0

    def current_branch(self) -> Optional[str]:
        proc = self._run("symbolic-ref", "--short", "-q", "HEAD", check=False)
        return proc.stdout.strip() or None

    def show_file(self, ref: str, path: str) -> str:
        return self._run("show", f"{ref}:{path}").stdout
