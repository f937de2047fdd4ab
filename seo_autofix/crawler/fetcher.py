# seo_autofix/crawler/fetcher.py
"""
Fetcher module: the navigation session owned by one crawl.

Handles HTTP requests with rate limiting, retry/backoff on 5xx/429 and a
per-request timeout, and measures time to first byte and total load time.
"""
from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from seo_autofix.config import CrawlerConfig
from seo_autofix.errors import NavigationFailure
from seo_autofix.logger import logger

_HTML_TYPES = ("text/html", "application/xhtml+xml")


@dataclass(frozen=True, slots=True)
class FetchedPage:
    """Raw response of one navigation."""

    url: str
    status: int
    content_type: str
    text: str
    ttfb_ms: float
    load_time_ms: float

    @property
    def is_html(self) -> bool:
        return self.content_type in _HTML_TYPES


class PageFetcher:
    """Async context manager wrapping one aiohttp session."""

    _RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

    def __init__(self, config: CrawlerConfig, backoff_factor: float = 1.0) -> None:
        self.config = config
        self.backoff_factor = backoff_factor
        self.session: Optional[ClientSession] = None
        self._rate_lock = asyncio.Lock()
        self._last_request_ts = 0.0

    async def __aenter__(self) -> PageFetcher:
        self.session = ClientSession(
            timeout=ClientTimeout(total=self.config.timeout),
            headers={"User-Agent": self.config.user_agent},
            raise_for_status=False,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def fetch(self, url: str) -> FetchedPage:
        """
        Navigate to *url*.

        Raises NavigationFailure on timeout, connection errors, or when
        retryable statuses persist after ``retry_times`` retries.
        """
        if not self.session:
            raise RuntimeError("Session not initialized")
        attempts = 0
        while True:
            await self._wait_for_rate_limit()
            start = time.perf_counter()
            try:
                async with self.session.get(url) as resp:
                    ttfb = (time.perf_counter() - start) * 1000
                    if resp.status in self._RETRY_STATUS:
                        raise ClientError(f"retryable status {resp.status}")
                    mime = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                    text = await resp.text(errors="replace") if mime in _HTML_TYPES else ""
                    load_time = (time.perf_counter() - start) * 1000
                    return FetchedPage(str(resp.url), resp.status, mime, text, ttfb, load_time)
            except asyncio.TimeoutError as exc:
                # no retry on timeout
                raise NavigationFailure(url, f"timeout after {self.config.timeout:g}s") from exc
            except ClientError as exc:
                attempts += 1
                if attempts > self.config.retry_times:
                    raise NavigationFailure(url, str(exc) or type(exc).__name__) from exc
                backoff = min(60, self.backoff_factor * (2**attempts + random.random()))
                logger.debug("Retry %d/%d for %s after %.2f s", attempts, self.config.retry_times, url, backoff)
                await asyncio.sleep(backoff)

    async def fetch_robots(self, origin: str) -> Optional[str]:
        """Best-effort fetch of ``<origin>/robots.txt``; None when unavailable."""
        if not self.session:
            raise RuntimeError("Session not initialized")
        robots_url = f"{origin}/robots.txt"
        try:
            async with self.session.get(robots_url) as resp:
                if resp.status == 200:
                    return await resp.text(errors="replace")
                logger.debug("robots.txt %s -> HTTP %s", robots_url, resp.status)
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Error loading robots.txt: %s", exc)
        return None

    async def _wait_for_rate_limit(self) -> None:
        interval = 1 / self.config.rate_limit
        async with self._rate_lock:
            now = time.monotonic()
            wait = interval - (now - self._last_request_ts)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_request_ts = time.monotonic()
