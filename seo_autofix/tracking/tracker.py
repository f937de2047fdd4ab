# === FILE: seo_autofix/tracking/tracker.py ===
"""
Change tracker: turns file edits into auditable, reversible git history.

Per batch::

    start_batch ──> open ──record_change*──> open
                     │
                     ├─ finalize_batch(approved=True)  ──> completed ──rollback_batch──> rolled_back
                     └─ finalize_batch(approved=False) ──> rejected

Each batch lives on its own branch created from the stable fixes branch.
Every public method holds the site lock: branch checkout is global state of
the working directory, so operations on one site never interleave.
"""
from __future__ import annotations

import functools
import json
import re
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, TypeVar, Union

from seo_autofix.config import TrackingConfig
from seo_autofix.errors import (
    BatchAlreadyOpen,
    BatchNotFound,
    CommandFailed,
    EditNotApplicable,
    InvalidState,
    NoOpenBatch,
    PathOutsideRepository,
    RollbackConflict,
    SEOAutofixError,
    TagNotFound,
)
from seo_autofix.logger import logger
from seo_autofix.tracking.messages import generate_commit_message
from seo_autofix.tracking.models import (
    RECORD_FILE,
    BatchStatus,
    BatchSummary,
    Change,
    ChangeBatch,
    ChangeType,
    HistoryEntry,
    RollbackSummary,
)
from seo_autofix.utils import utc_now
from seo_autofix.vcs.adapter import CommitRef, DiffEntry, VCSAdapter

__all__ = ("ChangeTracker",)

_BATCH_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

F = TypeVar("F", bound=Callable[..., Any])


def _serialized(method: F) -> F:
    """Run *method* while holding the tracker's site lock."""

    @functools.wraps(method)
    def wrapper(self: ChangeTracker, *args: Any, **kwargs: Any) -> Any:
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class ChangeTracker:
    """Batches of SEO fixes for one site repository."""

    def __init__(
        self,
        site_id: str,
        repo_path: Union[str, Path],
        adapter: VCSAdapter,
        config: Optional[TrackingConfig] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.site_id = site_id
        self.repo_path = Path(repo_path)
        self.adapter = adapter
        self.config = config or TrackingConfig()
        self.lock = lock or threading.RLock()
        self._batches: Dict[str, ChangeBatch] = {}
        self._open_batch_id: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Naming                                                             #
    # ------------------------------------------------------------------ #

    @property
    def fixes_branch(self) -> str:
        return self.config.fixes_branch

    @property
    def record_path(self) -> Path:
        return self.repo_path / RECORD_FILE

    def branch_name(self, batch_id: str) -> str:
        return f"{self.config.branch_prefix}{batch_id}"

    @staticmethod
    def completion_tag(batch_id: str) -> str:
        return f"seo-batch-{batch_id}"

    @staticmethod
    def rollback_tag(batch_id: str) -> str:
        return f"seo-rollback-{batch_id}"

    @staticmethod
    def rollback_branch(batch_id: str) -> str:
        return f"rollback-{batch_id}"

    @property
    def open_batch(self) -> Optional[ChangeBatch]:
        if self._open_batch_id is None:
            return None
        return self._batches[self._open_batch_id]

    # ------------------------------------------------------------------ #
    # Setup                                                              #
    # ------------------------------------------------------------------ #

    @_serialized
    def initialize(self, is_new_site: bool = False) -> None:
        """Prepare the repository and the fixes branch; resume an open batch left checked out."""
        with self._annotated():
            if is_new_site:
                self.adapter.init()
                logger.info("Initialized new repository for site %s", self.site_id)
            elif not self.adapter.is_repository():
                raise InvalidState(f"Directory at {self.repo_path} is not a valid Git repository")
            else:
                logger.info("Using existing repository for site %s", self.site_id)

            if not self.adapter.has_commits():
                self.adapter.commit("Initialize SEO change tracking", {"siteId": self.site_id}, allow_empty=True)

            current = self.adapter.current_branch()
            if not self.adapter.branch_exists(self.fixes_branch):
                self.adapter.create_branch(self.fixes_branch)
                logger.info("Created %s branch for site %s", self.fixes_branch, self.site_id)

            if current and current.startswith(self.config.branch_prefix) and self._resume_open_batch(current):
                if self.adapter.current_branch() != current:
                    self.adapter.checkout(current)
            elif self.adapter.current_branch() != self.fixes_branch:
                self.adapter.checkout(self.fixes_branch)

    def _resume_open_batch(self, branch: str) -> bool:
        try:
            batch = ChangeBatch.from_json(self.record_path.read_text(encoding="utf-8"))
        except (OSError, ValueError, KeyError) as exc:
            logger.warning("Cannot read batch record on %s: %s", branch, exc)
            return False
        if batch.status is not BatchStatus.OPEN or self.branch_name(batch.batch_id) != branch:
            return False
        self._batches[batch.batch_id] = batch
        self._open_batch_id = batch.batch_id
        logger.info("Resumed open batch %s for site %s", batch.batch_id, self.site_id)
        return True

    # ------------------------------------------------------------------ #
    # Batch lifecycle                                                    #
    # ------------------------------------------------------------------ #

    @_serialized
    def start_batch(self, batch_id: str, description: str) -> str:
        """Open a batch on a new branch from the fixes branch; returns the branch name."""
        if not _BATCH_ID_RE.match(batch_id or ""):
            raise ValueError(f"Invalid batch id {batch_id!r}")
        branch = self.branch_name(batch_id)
        with self._annotated(batch_id):
            if self._open_batch_id is not None:
                raise BatchAlreadyOpen(f"Batch {self._open_batch_id} is still open")
            if batch_id in self._batches or self.adapter.branch_exists(branch):
                raise BatchAlreadyOpen(f"Batch {batch_id} already exists")

            self.adapter.create_branch(branch, self.fixes_branch)
            batch = ChangeBatch(
                batch_id=batch_id,
                site_id=self.site_id,
                description=description,
                start_time=utc_now(),
            )
            try:
                self._write_record(batch)
                self.adapter.stage([RECORD_FILE])
                self.adapter.commit(f"Start SEO fix batch: {description}", {"batchId": batch_id})
            except SEOAutofixError:
                self._restore_record_from_head()
                self._discard_branch(branch)
                raise

        self._batches[batch_id] = batch
        self._open_batch_id = batch_id
        logger.info("Started change batch %s for site %s", batch_id, self.site_id)
        return branch

    @_serialized
    def record_change(
        self,
        file_path: Union[str, Path],
        change_type: Union[str, ChangeType],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> CommitRef:
        """Commit an already edited file as one change of the open batch."""
        kind = ChangeType.parse(change_type)
        batch = self._require_open()
        rel = self._relative(file_path)
        with self._annotated(batch.batch_id):
            self._checkout_batch(batch)
            return self._record(batch, rel, kind, dict(metadata or {}))

    @_serialized
    def apply_change(
        self,
        file_path: Union[str, Path],
        change_type: Union[str, ChangeType],
        original: str,
        modified: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> CommitRef:
        """
        Edit a file and record the change.

        The first occurrence of *original* is replaced by *modified*; an empty
        *original* writes *modified* as the whole file. The file is restored
        when the edit cannot be recorded.
        """
        kind = ChangeType.parse(change_type)
        batch = self._require_open()
        rel = self._relative(file_path)
        target = self.repo_path / rel
        with self._annotated(batch.batch_id):
            self._checkout_batch(batch)
            try:
                before = target.read_text(encoding="utf-8") if target.is_file() else None
            except UnicodeDecodeError as exc:
                raise EditNotApplicable(f"{rel}: not a UTF-8 text file") from exc
            if original:
                if before is None or original not in before:
                    raise EditNotApplicable(f"{rel}: text to replace not found")
                after = before.replace(original, modified, 1)
            else:
                after = modified

            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(after, encoding="utf-8")
            details = {"before": original, "after": modified, **dict(metadata or {})}
            try:
                return self._record(batch, rel, kind, details)
            except Exception:
                if before is None:
                    target.unlink(missing_ok=True)
                else:
                    target.write_text(before, encoding="utf-8")
                raise

    @_serialized
    def finalize_batch(self, batch_id: str, approved: bool = True) -> BatchSummary:
        """Close a batch: merge and tag it when approved, keep it unmerged when rejected."""
        branch = self.branch_name(batch_id)
        with self._annotated(batch_id):
            batch = self._get_batch(batch_id)
            if batch.status is not BatchStatus.OPEN:
                raise InvalidState(f"Batch {batch_id} is {batch.status.value}, expected open")

            self.adapter.checkout(branch)
            final = batch.evolve(
                end_time=utc_now(),
                approved=approved,
                status=BatchStatus.COMPLETED if approved else BatchStatus.REJECTED,
            )
            try:
                self._write_record(final)
                self.adapter.stage([RECORD_FILE])
                self.adapter.commit(
                    f"Finalize SEO fix batch: {'Approved' if approved else 'Rejected'}",
                    {"batchId": batch_id, "approved": approved, "status": final.status.value},
                )
            except SEOAutofixError:
                self._restore_record_from_head()
                raise
            self.adapter.checkout(self.fixes_branch)
            if approved:
                stable = self.adapter.rev_parse("HEAD")
                try:
                    self.adapter.merge_no_ff(
                        branch,
                        f"Merge SEO fixes from batch {batch_id}",
                        {"batchId": batch_id, "action": "merge"},
                    )
                    self.adapter.tag(self.completion_tag(batch_id), f"SEO fixes batch {batch_id}")
                except SEOAutofixError:
                    self._reopen(branch, stable)
                    raise

        self._batches[batch_id] = final
        if self._open_batch_id == batch_id:
            self._open_batch_id = None
        if approved:
            logger.info("Finalized and merged change batch %s for site %s", batch_id, self.site_id)
        else:
            logger.info("Rejected change batch %s for site %s", batch_id, self.site_id)
        return BatchSummary.of(final)

    @_serialized
    def rollback_batch(self, batch_id: str) -> RollbackSummary:
        """Revert the tagged merge commit of a completed batch on the fixes branch."""
        with self._annotated(batch_id):
            if self._open_batch_id is not None:
                raise InvalidState(f"Finalize batch {self._open_batch_id} before rolling back batch {batch_id}")
            batch = self._get_batch(batch_id)
            if batch.status is BatchStatus.ROLLED_BACK:
                raise InvalidState(f"Batch {batch_id} is already rolled back")
            tag = self.completion_tag(batch_id)
            if batch.status is not BatchStatus.COMPLETED or not self.adapter.tag_exists(tag):
                raise TagNotFound(f"Completion tag {tag} not found; batch {batch_id} was never completed")

            merge_commit = self.adapter.rev_parse(f"{tag}^{{commit}}")
            rollback_branch = self.rollback_branch(batch_id)
            self.adapter.checkout(self.fixes_branch)
            if self.adapter.branch_exists(rollback_branch):
                # left over from an earlier failed attempt
                self.adapter.delete_branch(rollback_branch)
            self.adapter.create_branch(rollback_branch, self.fixes_branch)

            rolled = batch.evolve(status=BatchStatus.ROLLED_BACK, rollback_time=utc_now())
            try:
                self._revert(merge_commit, mainline=1)
                self._write_record(rolled)
                self.adapter.stage([RECORD_FILE])
                self.adapter.commit(
                    f"Rollback SEO fix batch {batch_id}",
                    {"batchId": batch_id, "action": "rollback", "revertedCommit": merge_commit},
                )
            except SEOAutofixError:
                self._discard_branch(rollback_branch)
                raise

            self.adapter.checkout(self.fixes_branch)
            self.adapter.merge_no_ff(
                rollback_branch,
                f"Merge rollback of batch {batch_id}",
                {"batchId": batch_id, "action": "rollback"},
            )
            self.adapter.tag(self.rollback_tag(batch_id), f"Rollback of SEO fixes batch {batch_id}")

        self._batches[batch_id] = rolled
        logger.info("Rolled back change batch %s for site %s", batch_id, self.site_id)
        return RollbackSummary(batch_id, self.site_id, BatchStatus.ROLLED_BACK, rolled.rollback_time or "")

    @_serialized
    def revert_change(self, commit_ref: Union[str, CommitRef]) -> CommitRef:
        """Revert a single commit on the fixes branch (changes recorded outside a known batch)."""
        ref = str(commit_ref)
        with self._annotated():
            if self._open_batch_id is not None:
                raise InvalidState(f"Finalize batch {self._open_batch_id} before reverting single changes")
            self.adapter.checkout(self.fixes_branch)
            target = self.adapter.rev_parse(f"{ref}^{{commit}}")
            self._revert(target)
            self._restore_record_from_head()
            try:
                result = self.adapter.commit(
                    f"Revert change {target[:10]}",
                    {"action": "revert", "revertedCommit": target},
                )
            except SEOAutofixError:
                self.adapter.abort_revert()
                raise
        logger.info("Reverted commit %s for site %s", target[:10], self.site_id)
        return result

    # ------------------------------------------------------------------ #
    # Queries                                                            #
    # ------------------------------------------------------------------ #

    @_serialized
    def get_change_history(self, limit: int = 50) -> List[HistoryEntry]:
        """Last *limit* commits of the fixes branch with their metadata split out."""
        with self._annotated():
            previous = self.adapter.current_branch()
            self.adapter.checkout(self.fixes_branch)
            try:
                commits = self.adapter.log(limit)
            finally:
                if previous and previous != self.fixes_branch:
                    self.adapter.checkout(previous)
        return [
            HistoryEntry(c.hash, c.author, c.date.isoformat(), c.subject, dict(c.metadata))
            for c in commits
        ]

    @_serialized
    def get_batch(self, batch_id: str) -> ChangeBatch:
        with self._annotated(batch_id):
            return self._get_batch(batch_id)

    @_serialized
    def batch_diff(self, batch_id: str) -> List[DiffEntry]:
        """Files the batch changed: its merge for completed batches, its branch otherwise."""
        with self._annotated(batch_id):
            self._get_batch(batch_id)
            tag = self.completion_tag(batch_id)
            if self.adapter.tag_exists(tag):
                return self.adapter.diff(f"{tag}^1", tag)
            return self.adapter.diff(f"{self.fixes_branch}...{self.branch_name(batch_id)}", None)

    # ------------------------------------------------------------------ #
    # Internals (callers hold the lock)                                  #
    # ------------------------------------------------------------------ #

    @contextmanager
    def _annotated(self, batch_id: Optional[str] = None) -> Iterator[None]:
        try:
            yield
        except SEOAutofixError as exc:
            exc.annotate(site_id=self.site_id, batch_id=batch_id)
            logger.error("Change tracking failed for site %s: %s", self.site_id, exc)
            raise

    def _require_open(self) -> ChangeBatch:
        batch = self.open_batch
        if batch is None:
            raise NoOpenBatch("No open change batch; call start_batch first", site_id=self.site_id)
        return batch

    def _relative(self, file_path: Union[str, Path]) -> str:
        """Repository-relative POSIX path; ``/x`` is read as relative to the repository root."""
        root = self.repo_path.resolve()
        raw = Path(file_path)
        candidate = raw.resolve() if raw.is_absolute() else (root / raw).resolve()
        if raw.is_absolute() and root not in candidate.parents:
            candidate = (root / str(file_path).lstrip("/\\")).resolve()
        if root not in candidate.parents:
            raise PathOutsideRepository(f"{file_path} is outside the repository {root}", site_id=self.site_id)
        rel = candidate.relative_to(root).as_posix()
        if rel == RECORD_FILE or rel.split("/", 1)[0] == ".git":
            raise PathOutsideRepository(f"{file_path} is reserved for change tracking", site_id=self.site_id)
        return rel

    def _checkout_batch(self, batch: ChangeBatch) -> None:
        """Changes of the open batch are only ever committed on its own branch."""
        branch = self.branch_name(batch.batch_id)
        current = self.adapter.current_branch()
        if current != branch:
            logger.warning("Site %s was on %s; switching back to %s", self.site_id, current, branch)
            self.adapter.checkout(branch)

    def _record(self, batch: ChangeBatch, rel: str, kind: ChangeType, metadata: Dict[str, Any]) -> CommitRef:
        try:
            json.dumps(metadata)
        except (TypeError, ValueError) as exc:
            raise EditNotApplicable(f"{rel}: change metadata is not JSON serializable ({exc})") from exc
        change = Change(file_path=rel, change_type=kind, timestamp=utc_now(), metadata=metadata)
        updated = batch.with_change(change)
        previous = self.record_path.read_text(encoding="utf-8") if self.record_path.is_file() else None
        try:
            self._write_record(updated)
            self.adapter.stage([rel, RECORD_FILE])
            ref = self.adapter.commit(
                generate_commit_message(kind, rel, metadata),
                {
                    "batchId": batch.batch_id,
                    "changeType": kind.value,
                    "filePath": rel,
                    "metadata": metadata,
                },
            )
        except Exception:
            if previous is not None:
                self.record_path.write_text(previous, encoding="utf-8")
            raise
        self._batches[batch.batch_id] = updated
        logger.info("Recorded %s change to %s for site %s", kind.value, rel, self.site_id)
        return ref

    def _write_record(self, batch: ChangeBatch) -> None:
        self.record_path.write_text(batch.to_json(), encoding="utf-8")

    def _get_batch(self, batch_id: str) -> ChangeBatch:
        if batch_id in self._batches:
            return self._batches[batch_id]
        branch = self.branch_name(batch_id)
        if not self.adapter.branch_exists(branch):
            raise BatchNotFound(f"Unknown batch {batch_id}")
        try:
            batch = ChangeBatch.from_json(self.adapter.show_file(branch, RECORD_FILE))
        except (CommandFailed, ValueError, KeyError) as exc:
            raise BatchNotFound(f"Batch {batch_id} has no readable record on {branch}") from exc
        if self.adapter.tag_exists(self.rollback_tag(batch_id)):
            batch = batch.evolve(status=BatchStatus.ROLLED_BACK)
        elif self.adapter.tag_exists(self.completion_tag(batch_id)):
            batch = batch.evolve(status=BatchStatus.COMPLETED)
        elif batch.status is BatchStatus.COMPLETED:
            # finalize commit without a merge: the batch never left the open state
            batch = batch.evolve(status=BatchStatus.OPEN, end_time=None, approved=None)
        self._batches[batch_id] = batch
        return batch

    def _revert(self, ref: str, mainline: Optional[int] = None) -> None:
        """Stage the inverse of *ref*; conflicts on the batch record are left for the caller to overwrite."""
        try:
            self.adapter.revert_commit(ref, mainline=mainline, no_commit=True)
        except CommandFailed:
            conflicts = self.adapter.conflicted_files()
            if not conflicts:
                raise
            unresolved = [f for f in conflicts if f != RECORD_FILE]
            if unresolved:
                self.adapter.abort_revert()
                raise RollbackConflict(f"Cannot revert {ref[:10]} cleanly", unresolved, site_id=self.site_id)
            self._restore_record_from_head()

    def _restore_record_from_head(self) -> None:
        try:
            content = self.adapter.show_file("HEAD", RECORD_FILE)
        except CommandFailed:
            # HEAD has no record yet: nothing to keep
            return
        self.record_path.write_text(content, encoding="utf-8")
        self.adapter.stage([RECORD_FILE])

    def _reopen(self, branch: str, stable: str) -> None:
        """Undo a failed merge: fixes branch back at *stable*, finalize commit dropped from *branch*."""
        try:
            self.adapter.reset_hard(stable)
            self.adapter.checkout(branch)
            self.adapter.reset_hard("HEAD~1")
        except SEOAutofixError as exc:
            logger.warning("Could not reopen branch %s for site %s: %s", branch, self.site_id, exc)

    def _discard_branch(self, branch: str) -> None:
        try:
            if self.adapter.has_conflicts():
                self.adapter.abort_revert()
            self.adapter.checkout(self.fixes_branch)
            self.adapter.delete_branch(branch)
        except SEOAutofixError as exc:
            logger.warning("Could not discard branch %s for site %s: %s", branch, self.site_id, exc)
