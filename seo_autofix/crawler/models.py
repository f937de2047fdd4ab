# seo_autofix/crawler/models.py
"""
Data models for the SEO Autofix crawler and issue analyzer.

Everything here is immutable once built: a PageReport is produced once per
visited URL and never edited afterwards.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """0 for critical ... 3 for info."""
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = (Severity.CRITICAL, Severity.MAJOR, Severity.WARNING, Severity.INFO)


@dataclass(frozen=True, slots=True)
class SEOIssue:
    """One detected problem with a human recommendation."""

    type: Severity
    code: str
    message: str
    recommendation: str


@dataclass(frozen=True, slots=True)
class SEOAnalysis:
    score: int
    issues: Tuple[SEOIssue, ...] = ()


@dataclass(frozen=True, slots=True)
class Headings:
    h1: Tuple[str, ...] = ()
    h2_count: int = 0
    h3_count: int = 0


@dataclass(frozen=True, slots=True)
class SocialTags:
    """Open Graph or Twitter card values; missing tags stay None."""

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    card: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ImageWithoutAlt:
    src: Optional[str]
    width: Optional[str] = None
    height: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PerformanceTiming:
    ttfb_ms: float
    load_time_ms: float


@dataclass(frozen=True, slots=True)
class PageSignals:
    """Everything the analyzer looks at, extracted from one HTML document."""

    title: Optional[str] = None
    description: Optional[str] = None
    canonical: Optional[str] = None
    headings: Headings = field(default_factory=Headings)
    structured_data: Tuple[Any, ...] = ()
    meta_robots: Optional[str] = None
    open_graph: SocialTags = field(default_factory=SocialTags)
    twitter: SocialTags = field(default_factory=SocialTags)
    images_without_alt: Tuple[ImageWithoutAlt, ...] = ()
    performance: Optional[PerformanceTiming] = None


@dataclass(frozen=True, slots=True)
class PageReport:
    """Extraction + analysis for one visited URL."""

    url: str
    timestamp: str
    depth: int
    analysis: SEOAnalysis
    signals: Optional[PageSignals] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(slots=True)
class CrawlResult:
    """Output of one crawl() call; never merged with earlier crawls."""

    seed_url: str
    started_at: str
    pages: List[PageReport] = field(default_factory=list)
    disallowed: List[str] = field(default_factory=list)
    finished_at: Optional[str] = None

    def __len__(self) -> int:
        return len(self.pages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed_url": self.seed_url,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "pages": [p.to_dict() for p in self.pages],
            "disallowed": list(self.disallowed),
        }


def _jsonable(value: Any) -> Any:
    """Turn tuples/enums produced by asdict() into plain JSON types."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value
