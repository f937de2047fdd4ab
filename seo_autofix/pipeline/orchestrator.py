# File: seo_autofix/pipeline/orchestrator.py
"""seo_autofix.pipeline.orchestrator: crawl -> fix -> commit -> verify -> rollback-if-failed.

Change-tracking calls block on git, so they run in worker threads; the
tracker's per-site lock keeps them ordered.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from seo_autofix.analyzer import PrioritizedIssue, prioritize_issues
from seo_autofix.config import PipelineConfig
from seo_autofix.crawler.crawler import SiteCrawler
from seo_autofix.crawler.models import CrawlResult
from seo_autofix.errors import SEOAutofixError
from seo_autofix.logger import logger
from seo_autofix.pipeline.contracts import Fix, FixGenerator, VerificationResult, Verifier, change_type_for
from seo_autofix.tracking.models import BatchStatus, BatchSummary, RollbackSummary
from seo_autofix.tracking.registry import SiteRegistry

__all__ = (
    "FailedFix",
    "ImplementationResult",
    "RollbackResult",
    "WorkflowResult",
    "Orchestrator",
)


@dataclass(slots=True)
class FailedFix:
    fix: Fix
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"fix": self.fix.to_dict(), "error": self.error}


@dataclass(slots=True)
class ImplementationResult:
    """Partial success is a result shape: failures never abort the remaining fixes."""

    batch_id: Optional[str] = None
    applied_fixes: List[Fix] = field(default_factory=list)
    failed_fixes: List[FailedFix] = field(default_factory=list)
    batch: Optional[BatchSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "appliedFixes": [f.to_dict() for f in self.applied_fixes],
            "failedFixes": [f.to_dict() for f in self.failed_fixes],
            "batch": self.batch.to_dict() if self.batch else None,
        }


@dataclass(slots=True)
class RollbackResult:
    rolled_back_fixes: List[Fix] = field(default_factory=list)
    skipped_fixes: List[Fix] = field(default_factory=list)
    failed_rollbacks: List[FailedFix] = field(default_factory=list)
    batches: List[RollbackSummary] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_rollbacks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "rolledBackFixes": [f.to_dict() for f in self.rolled_back_fixes],
            "skippedFixes": [f.to_dict() for f in self.skipped_fixes],
            "failedRollbacks": [f.to_dict() for f in self.failed_rollbacks],
            "batches": [b.to_dict() for b in self.batches],
        }


@dataclass(slots=True)
class WorkflowResult:
    site_id: str
    url: str
    crawl: CrawlResult
    issues: List[PrioritizedIssue] = field(default_factory=list)
    fixes: List[Fix] = field(default_factory=list)
    implementation: Optional[ImplementationResult] = None
    verification: Optional[VerificationResult] = None
    rollback: Optional[RollbackResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "siteId": self.site_id,
            "url": self.url,
            "crawl": self.crawl.to_dict(),
            "issueCount": len(self.issues),
            "fixes": [f.to_dict() for f in self.fixes],
            "implementation": self.implementation.to_dict() if self.implementation else None,
            "verification": self.verification.to_dict() if self.verification else None,
            "rollback": self.rollback.to_dict() if self.rollback else None,
        }


def new_batch_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{stamp}-{uuid.uuid4().hex[:6]}"


class Orchestrator:
    """Facade sequencing the crawler, the external fix generator and verifier, and change tracking."""

    def __init__(
        self,
        registry: SiteRegistry,
        crawler: Optional[SiteCrawler] = None,
        fix_generator: Optional[FixGenerator] = None,
        verifier: Optional[Verifier] = None,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self.registry = registry
        self.crawler = crawler
        self.fix_generator = fix_generator
        self.verifier = verifier
        self.config = config or PipelineConfig()

    async def implement_fixes(
        self,
        fixes: Sequence[Fix],
        site_id: str,
        batch_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ImplementationResult:
        """Apply *fixes* as one batch; approved when at least one applied and auto-approve is on."""
        if not fixes:
            return ImplementationResult()

        tracker = await asyncio.to_thread(self.registry.tracker, site_id)
        batch_id = batch_id or new_batch_id()
        await asyncio.to_thread(
            tracker.start_batch, batch_id, description or f"SEO fixes ({len(fixes)} planned)"
        )

        result = ImplementationResult(batch_id=batch_id)
        for fix in fixes:
            metadata = {"fixId": fix.id, "issueId": fix.issue_id, **fix.metadata}
            try:
                ref = await asyncio.to_thread(
                    tracker.apply_change,
                    fix.path,
                    change_type_for(fix.type),
                    fix.changes.original,
                    fix.changes.modified,
                    metadata,
                )
            except (SEOAutofixError, OSError, ValueError) as exc:
                logger.warning("Fix %s failed for site %s: %s", fix.id, site_id, exc)
                result.failed_fixes.append(FailedFix(fix, str(exc)))
                continue
            result.applied_fixes.append(fix.model_copy(update={"commit_hash": ref.hash, "batch_id": batch_id}))

        approved = bool(result.applied_fixes) and self.config.auto_approve
        result.batch = await asyncio.to_thread(tracker.finalize_batch, batch_id, approved)
        logger.info(
            "Batch %s for site %s: %d applied, %d failed (%s)",
            batch_id, site_id, len(result.applied_fixes), len(result.failed_fixes), result.batch.status.value,
        )
        return result

    async def rollback_fixes(self, fixes: Sequence[Fix], site_id: str) -> RollbackResult:
        """Undo applied fixes: whole batches by their tag, loose commits one by one."""
        result = RollbackResult()
        by_batch: Dict[str, List[Fix]] = {}
        loose: List[Fix] = []
        for fix in fixes:
            if not fix.commit_hash:
                result.skipped_fixes.append(fix)
            elif fix.batch_id:
                by_batch.setdefault(fix.batch_id, []).append(fix)
            else:
                loose.append(fix)

        if not by_batch and not loose:
            return result

        tracker = await asyncio.to_thread(self.registry.tracker, site_id)
        for batch_id, group in by_batch.items():
            try:
                summary = await asyncio.to_thread(tracker.rollback_batch, batch_id)
            except SEOAutofixError as exc:
                logger.error("Rollback of batch %s failed for site %s: %s", batch_id, site_id, exc)
                result.failed_rollbacks.extend(FailedFix(fix, str(exc)) for fix in group)
                continue
            result.batches.append(summary)
            result.rolled_back_fixes.extend(group)

        for fix in loose:
            try:
                await asyncio.to_thread(tracker.revert_change, fix.commit_hash)
            except SEOAutofixError as exc:
                logger.error("Revert of fix %s failed for site %s: %s", fix.id, site_id, exc)
                result.failed_rollbacks.append(FailedFix(fix, str(exc)))
                continue
            result.rolled_back_fixes.append(fix)

        return result

    async def run(self, url: str, site_id: str) -> WorkflowResult:
        """Full workflow for one site; only a failed verification triggers a rollback."""
        if self.crawler is None or self.fix_generator is None:
            raise ValueError("run() needs a crawler and a fix generator")

        logger.info("Workflow started for site %s: %s", site_id, url)
        crawl = await self.crawler.crawl(url)
        issues = prioritize_issues(crawl)
        fixes = await self.fix_generator.generate_fixes(issues)
        result = WorkflowResult(site_id=site_id, url=url, crawl=crawl, issues=issues, fixes=list(fixes))
        if self.config.analysis_only:
            logger.info("Analysis only: %d issues, %d fixes proposed", len(issues), len(fixes))
            return result

        result.implementation = await self.implement_fixes(fixes, site_id)
        batch = result.implementation.batch
        if self.verifier is None or batch is None or batch.status is not BatchStatus.COMPLETED:
            return result

        result.verification = await self.verifier.verify(site_id)
        if not result.verification.success:
            if self.config.rollback_on_failure:
                logger.warning("Verification failed for site %s; rolling back batch %s", site_id, batch.batch_id)
                result.rollback = await self.rollback_fixes(result.implementation.applied_fixes, site_id)
            else:
                logger.warning("Verification failed for site %s; rollback disabled", site_id)
        return result
