# === FILE: seo_autofix/crawler/crawler.py ===
"""
Breadth-first, same-origin crawler producing one PageReport per visited URL.

All mutable crawl state lives in a :class:`CrawlState` created by each
:meth:`SiteCrawler.crawl` call, so one crawler can serve concurrent crawls
of different sites.
"""
from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional, Set, Tuple
from urllib.parse import urlparse

from seo_autofix.analyzer import analyze, error_analysis
from seo_autofix.config import CrawlerConfig
from seo_autofix.crawler.extractor import extract_signals
from seo_autofix.crawler.fetcher import PageFetcher
from seo_autofix.crawler.link_extractor import extract_links
from seo_autofix.crawler.models import CrawlResult, PageReport, PerformanceTiming
from seo_autofix.crawler.robots import RobotsPolicy
from seo_autofix.errors import CrawlDisallowed, NavigationFailure
from seo_autofix.logger import logger
from seo_autofix.utils import extract_origin, is_http_url, normalize_url, utc_now

__all__ = ("CrawlState", "SiteCrawler")

FetcherFactory = Callable[[CrawlerConfig], PageFetcher]


@dataclass(slots=True)
class CrawlState:
    """Queue, visited keys and results of a single crawl invocation."""

    origin: str
    max_pages: int
    max_depth: int
    robots: RobotsPolicy
    result: CrawlResult
    queue: Deque[Tuple[str, int]] = field(default_factory=deque)
    visited: Set[str] = field(default_factory=set)

    @property
    def budget_left(self) -> int:
        return self.max_pages - len(self.result.pages)


class SiteCrawler:
    """Crawler with robots.txt policy, page/depth budget and bounded fetch concurrency."""

    def __init__(self, config: CrawlerConfig, fetcher_factory: FetcherFactory = PageFetcher) -> None:
        self.config = config
        self._fetcher_factory = fetcher_factory

    async def crawl(
        self,
        seed_url: str,
        *,
        max_pages: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> CrawlResult:
        """Crawl from *seed_url*; raises CrawlDisallowed when robots.txt closes the origin."""
        if not is_http_url(seed_url):
            raise ValueError(f"Seed URL must be http(s): {seed_url!r}")
        origin = extract_origin(seed_url)
        result = CrawlResult(seed_url=seed_url, started_at=utc_now())
        start = time.monotonic()
        logger.info("Crawl started: %s", seed_url)

        async with self._fetcher_factory(self.config) as fetcher:
            robots = await self._load_robots(fetcher, origin)
            if robots.blocks_origin:
                logger.warning("Crawling disallowed by robots.txt: %s", origin)
                raise CrawlDisallowed(f"robots.txt disallows crawling {origin}")

            state = CrawlState(
                origin=origin,
                max_pages=self.config.max_pages if max_pages is None else max_pages,
                max_depth=self.config.max_depth if max_depth is None else max_depth,
                robots=robots,
                result=result,
            )
            state.queue.append((seed_url, 0))

            while state.queue and state.budget_left > 0:
                wave = self._next_wave(state)
                if not wave:
                    continue
                visits = await asyncio.gather(
                    *(self._visit(fetcher, state, url, depth) for url, depth in wave)
                )
                # applied in pop order so results keep breadth-first discovery order
                for (_, depth), (report, links) in zip(wave, visits):
                    result.pages.append(report)
                    if depth >= state.max_depth:
                        continue
                    for link in links:
                        if normalize_url(link) not in state.visited:
                            state.queue.append((link, depth + 1))

        result.finished_at = utc_now()
        duration = time.monotonic() - start
        logger.info(
            "Crawl finished: %d pages in %.2f s (%d blocked by robots.txt)",
            len(result.pages), duration, len(result.disallowed),
        )
        return result

    def _next_wave(self, state: CrawlState) -> List[Tuple[str, int]]:
        """Pop up to ``concurrency`` visitable entries without exceeding the page budget."""
        wave: List[Tuple[str, int]] = []
        while state.queue and len(wave) < self.config.concurrency and len(wave) < state.budget_left:
            url, depth = state.queue.popleft()
            key = normalize_url(url)
            if key in state.visited or depth > state.max_depth:
                continue
            state.visited.add(key)
            if self.config.respect_robots_txt and not state.robots.can_fetch(urlparse(url).path):
                logger.debug("Blocked by robots.txt: %s", url)
                state.result.disallowed.append(url)
                continue
            wave.append((url, depth))
        return wave

    async def _visit(
        self, fetcher: PageFetcher, state: CrawlState, url: str, depth: int
    ) -> Tuple[PageReport, List[str]]:
        logger.debug("Crawling (%d): %s", depth, url)
        try:
            page = await fetcher.fetch(url)
        except NavigationFailure as exc:
            logger.warning("Error crawling %s: %s", url, exc.reason)
            return self._error_report(url, depth, str(exc)), []

        if not page.is_html:
            return (
                self._error_report(url, depth, f"Unsupported content type {page.content_type or 'unknown'}", page.status),
                [],
            )

        signals = extract_signals(page.text, PerformanceTiming(page.ttfb_ms, page.load_time_ms))
        report = PageReport(
            url=url,
            timestamp=utc_now(),
            depth=depth,
            analysis=analyze(signals),
            signals=signals,
            status_code=page.status,
        )
        links: List[str] = []
        if depth < state.max_depth:
            links = extract_links(page.text, url, self.config.deny_patterns)
        return report, links

    @staticmethod
    def _error_report(url: str, depth: int, error: str, status: Optional[int] = None) -> PageReport:
        return PageReport(
            url=url,
            timestamp=utc_now(),
            depth=depth,
            analysis=error_analysis(),
            status_code=status,
            error=error,
        )

    async def _load_robots(self, fetcher: PageFetcher, origin: str) -> RobotsPolicy:
        if not self.config.respect_robots_txt:
            return RobotsPolicy.allow_all()
        text = await fetcher.fetch_robots(origin)
        return RobotsPolicy(text) if text else RobotsPolicy.allow_all()
