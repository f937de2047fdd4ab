# File: tests/test_crawler.py
# Crawler tests against local aiohttp servers plus a scripted fetcher
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Dict, Optional

import pytest
import pytest_asyncio
from aiohttp import web

from seo_autofix.config import CrawlerConfig
from seo_autofix.crawler.crawler import SiteCrawler
from seo_autofix.crawler.fetcher import FetchedPage, PageFetcher
from seo_autofix.errors import CrawlDisallowed, NavigationFailure

#: seconds the slow handler sleeps; well above the test navigation timeout
SLOW_SLEEP: float = 1.0
FAN_OUT: int = 20


def html_page(body: str, title: str = "Test page title") -> web.Response:
    return web.Response(
        text=f"<html><head><title>{title}</title></head><body>{body}</body></html>",
        content_type="text/html",
    )


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


# --------------------------------------------------------------------------- #
#                            Test-server fixtures                             #
# --------------------------------------------------------------------------- #


@pytest_asyncio.fixture
async def chain_server(unused_tcp_port: int) -> AsyncIterator[str]:
    """/ -> /page1 -> /page2 -> /page3, each page linking back to the root."""
    app = web.Application()

    def link_to(target: str):
        async def handler(_):
            return html_page(f'<a href="{target}">next</a><a href="/">home</a>')
        return handler

    app.router.add_get("/", link_to("/page1"))
    app.router.add_get("/page1", link_to("/page2"))
    app.router.add_get("/page2", link_to("/page3"))
    app.router.add_get("/page3", link_to("/"))

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest_asyncio.fixture
async def policy_server(unused_tcp_port: int) -> AsyncIterator[str]:
    """Root links to a private page, a slow page, a PDF and a public page."""
    app = web.Application()

    async def handle_root(_):
        return html_page(
            '<a href="/private/x">P</a><a href="/slow">S</a>'
            '<a href="/public">Pub</a><a href="/data.json">J</a>'
        )

    async def handle_public(_):
        return html_page("<h1>Public</h1>")

    async def handle_private(_):
        return html_page("<h1>Private</h1>")

    async def handle_slow(_):
        await asyncio.sleep(SLOW_SLEEP)
        return html_page("<h1>Slow</h1>")

    async def handle_json(_):
        return web.json_response({"ok": True})

    async def handle_robots(_):
        return web.Response(
            text="User-agent: Googlebot\nDisallow: /public\n\nUser-agent: *\nDisallow: /private\n",
            content_type="text/plain",
        )

    app.router.add_get("/", handle_root)
    app.router.add_get("/public", handle_public)
    app.router.add_get("/private/x", handle_private)
    app.router.add_get("/slow", handle_slow)
    app.router.add_get("/data.json", handle_json)
    app.router.add_get("/robots.txt", handle_robots)

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest_asyncio.fixture
async def fan_out_server(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()
    links = "".join(f'<a href="/page{i}">Page{i}</a>' for i in range(1, FAN_OUT + 1))

    async def handle_root(_):
        return html_page(links)

    async def handle_page(_):
        return html_page("<h1>Page</h1>")

    app.router.add_get("/", handle_root)
    for i in range(1, FAN_OUT + 1):
        app.router.add_get(f"/page{i}", handle_page)

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest_asyncio.fixture
async def closed_server(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()

    async def handle_root(_):
        return html_page("<h1>Root</h1>")

    async def handle_robots(_):
        return web.Response(text="User-agent: *\nDisallow: /\n", content_type="text/plain")

    app.router.add_get("/", handle_root)
    app.router.add_get("/robots.txt", handle_robots)

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest_asyncio.fixture
async def flaky_server(unused_tcp_port: int) -> AsyncIterator[tuple[str, Dict[str, int]]]:
    """Root answers 503 twice before succeeding."""
    app = web.Application()
    hits = {"root": 0}

    async def handle_root(_):
        hits["root"] += 1
        if hits["root"] <= 2:
            return web.Response(status=503, text="busy")
        return html_page("<h1>Finally</h1>")

    app.router.add_get("/", handle_root)

    async for url in _serve_app(app, unused_tcp_port):
        yield url, hits


# --------------------------------------------------------------------------- #
#                                   Tests                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_basic_crawl_is_breadth_first(crawler_config: CrawlerConfig, chain_server: str):
    result = await SiteCrawler(crawler_config).crawl(chain_server)

    assert [p.url for p in result.pages] == [
        chain_server,
        f"{chain_server}/page1",
        f"{chain_server}/page2",
        f"{chain_server}/page3",
    ]
    assert [p.depth for p in result.pages] == [0, 1, 2, 3]
    assert all(p.ok and p.status_code == 200 for p in result.pages)
    assert result.finished_at is not None


@pytest.mark.asyncio()
async def test_depth_limit(crawler_config: CrawlerConfig, chain_server: str):
    result = await SiteCrawler(crawler_config).crawl(chain_server, max_depth=1)

    assert [p.url for p in result.pages] == [chain_server, f"{chain_server}/page1"]
    assert max(p.depth for p in result.pages) <= 1


@pytest.mark.asyncio()
async def test_page_budget(crawler_config: CrawlerConfig, fan_out_server: str):
    result = await SiteCrawler(crawler_config).crawl(fan_out_server, max_pages=5)

    assert len(result) == 5
    assert result.pages[0].url == fan_out_server
    assert [p.url for p in result.pages[1:]] == [f"{fan_out_server}/page{i}" for i in range(1, 5)]
    assert len({p.url for p in result.pages}) == 5


@pytest.mark.asyncio()
async def test_robots_path_skip_timeout_and_non_html(crawler_config: CrawlerConfig, policy_server: str):
    config = crawler_config.model_copy(update={"timeout": 0.3})
    result = await SiteCrawler(config).crawl(policy_server)
    by_url = {p.url: p for p in result.pages}

    assert f"{policy_server}/private/x" not in by_url
    assert result.disallowed == [f"{policy_server}/private/x"]
    # only the wildcard group applies
    assert by_url[f"{policy_server}/public"].ok

    slow = by_url[f"{policy_server}/slow"]
    assert not slow.ok
    assert "timeout" in slow.error
    assert slow.analysis.score == 0
    assert slow.analysis.issues[0].message == "Error accessing page"

    data = by_url[f"{policy_server}/data.json"]
    assert not data.ok
    assert data.status_code == 200
    assert "application/json" in data.error


@pytest.mark.asyncio()
async def test_robots_disallow_all_raises(crawler_config: CrawlerConfig, closed_server: str):
    with pytest.raises(CrawlDisallowed):
        await SiteCrawler(crawler_config).crawl(closed_server)

    ignoring = crawler_config.model_copy(update={"respect_robots_txt": False})
    result = await SiteCrawler(ignoring).crawl(closed_server)
    assert len(result) == 1


@pytest.mark.asyncio()
async def test_retry_on_server_error(crawler_config: CrawlerConfig, flaky_server):
    url, hits = flaky_server
    config = crawler_config.model_copy(update={"retry_times": 2})
    crawler = SiteCrawler(config, fetcher_factory=lambda cfg: PageFetcher(cfg, backoff_factor=0.01))

    result = await crawler.crawl(url)

    assert hits["root"] == 3
    assert result.pages[0].ok


@pytest.mark.asyncio()
async def test_retries_exhausted_become_error_report(crawler_config: CrawlerConfig, flaky_server):
    url, hits = flaky_server
    config = crawler_config.model_copy(update={"retry_times": 1})
    crawler = SiteCrawler(config, fetcher_factory=lambda cfg: PageFetcher(cfg, backoff_factor=0.01))

    result = await crawler.crawl(url)

    assert hits["root"] == 2
    assert len(result) == 1
    assert not result.pages[0].ok


@pytest.mark.asyncio()
async def test_rejects_non_http_seed(crawler_config: CrawlerConfig):
    with pytest.raises(ValueError):
        await SiteCrawler(crawler_config).crawl("ftp://example.com/")


# --------------------------------------------------------------------------- #
#                       Scripted fetcher (no network)                         #
# --------------------------------------------------------------------------- #

SITE: Dict[str, str] = {
    "https://example.com": '<title>Home page title</title><a href="/a">A</a><a href="/b">B</a>',
    "https://example.com/a": '<a href="/a/1">A1</a><a href="/a/2">A2</a><a href="/">home</a>',
    "https://example.com/b": '<a href="/b/1">B1</a>',
    "https://example.com/a/1": '<a href="/a/1/deep">deep</a>',
    "https://example.com/a/2": "<p>leaf</p>",
    "https://example.com/b/1": "<p>leaf</p>",
}


class ScriptedFetcher:
    """Serves SITE from memory; unknown URLs fail navigation."""

    def __init__(self, config: CrawlerConfig, robots: Optional[str] = None) -> None:
        self.config = config
        self.robots = robots
        self.fetched: list[str] = []

    async def __aenter__(self) -> "ScriptedFetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def fetch(self, url: str) -> FetchedPage:
        self.fetched.append(url)
        key = url.rstrip("/") if url.endswith("/") and url.count("/") == 3 else url
        if key not in SITE:
            raise NavigationFailure(url, "not found")
        return FetchedPage(url, 200, "text/html", SITE[key], 1.0, 2.0)

    async def fetch_robots(self, origin: str) -> Optional[str]:
        return self.robots


@pytest.mark.asyncio()
async def test_example_site_with_budget_and_depth():
    config = CrawlerConfig(max_pages=5, max_depth=2, rate_limit=1000.0)
    result = await SiteCrawler(config, fetcher_factory=ScriptedFetcher).crawl("https://example.com")

    assert result.pages[0].url == "https://example.com"
    assert result.pages[0].signals.title == "Home page title"
    assert len(result) <= 5
    assert all(p.depth <= 2 for p in result.pages)
    assert [p.url for p in result.pages] == [
        "https://example.com",
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/a/1",
        "https://example.com/a/2",
    ]


@pytest.mark.asyncio()
async def test_crawls_are_independent():
    config = CrawlerConfig(max_pages=3, max_depth=1, rate_limit=1000.0)
    crawler = SiteCrawler(config, fetcher_factory=ScriptedFetcher)

    first, second = await asyncio.gather(
        crawler.crawl("https://example.com"), crawler.crawl("https://example.com")
    )

    assert [p.url for p in first.pages] == [p.url for p in second.pages]
    assert first is not second
