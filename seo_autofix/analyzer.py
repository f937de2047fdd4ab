# File: seo_autofix/analyzer.py
"""seo_autofix.analyzer: scoring of page signals and issue prioritization.

:func:`analyze` is pure: no I/O, no clock, same signals -> same analysis.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from seo_autofix.crawler.models import (
    CrawlResult,
    PageSignals,
    SEOAnalysis,
    SEOIssue,
    Severity,
)

__all__: Sequence[str] = ("analyze", "error_analysis", "prioritize_issues", "PrioritizedIssue")

MAX_SCORE = 100
TITLE_MIN, TITLE_MAX = 10, 60
DESCRIPTION_MIN, DESCRIPTION_MAX = 50, 160
MAX_ALT_PENALTY = 10


def analyze(signals: PageSignals) -> SEOAnalysis:
    """Score *signals* from 100 down, one fixed penalty per detected issue, floored at 0."""
    issues: List[SEOIssue] = []
    score = MAX_SCORE

    def deduct(points: int, severity: Severity, code: str, message: str, recommendation: str) -> None:
        nonlocal score
        score -= points
        issues.append(SEOIssue(severity, code, message, recommendation))

    title = signals.title
    if not title:
        deduct(15, Severity.CRITICAL, "title-missing", "Missing page title",
               "Add a descriptive page title using the <title> tag.")
    elif len(title) < TITLE_MIN:
        deduct(5, Severity.WARNING, "title-too-short", "Title too short",
               f"Make the title more descriptive (at least {TITLE_MIN} characters).")
    elif len(title) > TITLE_MAX:
        deduct(5, Severity.WARNING, "title-too-long", "Title too long",
               f"Keep the title under {TITLE_MAX} characters to prevent truncation in SERPs.")

    description = signals.description
    if not description:
        deduct(10, Severity.MAJOR, "description-missing", "Missing meta description",
               "Add a meta description to improve click-through rates from search results.")
    elif len(description) < DESCRIPTION_MIN:
        deduct(5, Severity.WARNING, "description-too-short", "Meta description too short",
               f"Make the meta description more descriptive (at least {DESCRIPTION_MIN} characters).")
    elif len(description) > DESCRIPTION_MAX:
        deduct(2, Severity.INFO, "description-too-long", "Meta description too long",
               f"Keep the meta description under {DESCRIPTION_MAX} characters to prevent truncation in SERPs.")

    h1_count = len(signals.headings.h1)
    if h1_count == 0:
        deduct(10, Severity.MAJOR, "h1-missing", "Missing H1 heading",
               "Add an H1 heading to clearly describe the page content.")
    elif h1_count > 1:
        deduct(5, Severity.WARNING, "h1-multiple", "Multiple H1 headings",
               "Use only one H1 heading per page for clear content hierarchy.")

    if not signals.canonical:
        deduct(3, Severity.INFO, "canonical-missing", "Missing canonical URL",
               "Add a canonical URL to prevent duplicate content issues.")

    missing_alt = len(signals.images_without_alt)
    if missing_alt:
        deduct(min(MAX_ALT_PENALTY, missing_alt), Severity.WARNING, "images-missing-alt",
               f"{missing_alt} images missing alt text",
               "Add descriptive alt text to all images for accessibility and SEO.")

    return SEOAnalysis(score=max(0, score), issues=tuple(issues))


def error_analysis() -> SEOAnalysis:
    """Analysis attached to a page that could not be navigated."""
    return SEOAnalysis(
        score=0,
        issues=(
            SEOIssue(
                Severity.CRITICAL,
                "page-unreachable",
                "Error accessing page",
                "Check if the page is accessible and properly formatted.",
            ),
        ),
    )


@dataclass(frozen=True, slots=True)
class PrioritizedIssue:
    """A page issue flattened for fix generators."""

    id: str
    url: str
    page_score: int
    issue: SEOIssue

    @property
    def severity(self) -> Severity:
        return self.issue.type


def prioritize_issues(result: CrawlResult, limit: Optional[int] = None) -> List[PrioritizedIssue]:
    """Flatten every page's issues, most severe first, then lowest-scoring pages first."""
    flat: List[PrioritizedIssue] = []
    for index, page in enumerate(result.pages):
        for issue in page.analysis.issues:
            flat.append(
                PrioritizedIssue(
                    id=f"{index}-{issue.code}",
                    url=page.url,
                    page_score=page.analysis.score,
                    issue=issue,
                )
            )
    # sorted() is stable, so discovery order breaks ties
    flat = sorted(flat, key=lambda p: (p.severity.rank, p.page_score))
    return flat if limit is None else flat[:limit]
