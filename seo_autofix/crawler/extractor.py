# === FILE: seo_autofix/crawler/extractor.py ===
"""HTML signal extraction for the SEO Autofix crawler.

:func:`extract_signals` turns raw markup into a :class:`PageSignals` value
holding exactly what the issue analyzer and the fix generators look at:

* title, meta description, canonical link and meta robots;
* H1 texts plus H2/H3 counts;
* JSON-LD structured data blocks (invalid JSON is skipped);
* Open Graph and Twitter card tags;
* images lacking an ``alt`` attribute.

Timing is not visible in the markup, so the crawler passes the values the
fetcher measured.
"""
from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from seo_autofix.crawler.models import (
    Headings,
    ImageWithoutAlt,
    PageSignals,
    PerformanceTiming,
    SocialTags,
)

__all__: Sequence[str] = ("extract_signals",)


def _attr(tag: Any, name: str) -> Optional[str]:
    if not isinstance(tag, Tag):
        return None
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value if isinstance(value, str) else None


def _meta(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    return _attr(soup.find("meta", attrs=attrs), "content")


def _structured_data(soup: BeautifulSoup) -> tuple[Any, ...]:
    blocks: list[Any] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        try:
            blocks.append(json.loads(raw))
        except (TypeError, ValueError):
            continue
    return tuple(blocks)


def _images_without_alt(soup: BeautifulSoup) -> tuple[ImageWithoutAlt, ...]:
    missing: list[ImageWithoutAlt] = []
    for img in soup.find_all("img"):
        if _attr(img, "alt"):
            continue
        missing.append(
            ImageWithoutAlt(
                src=_attr(img, "src"),
                width=_attr(img, "width"),
                height=_attr(img, "height"),
            )
        )
    return tuple(missing)


def extract_signals(html: str, performance: Optional[PerformanceTiming] = None) -> PageSignals:
    """Parse *html* and collect the on-page SEO signals."""
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else None

    canonical = None
    for link in soup.find_all("link", href=True):
        rel = link.get("rel") or []
        rels = rel if isinstance(rel, list) else str(rel).split()
        if "canonical" in (r.lower() for r in rels):
            canonical = _attr(link, "href")
            break

    headings = Headings(
        h1=tuple(h.get_text(strip=True) for h in soup.find_all("h1")),
        h2_count=len(soup.find_all("h2")),
        h3_count=len(soup.find_all("h3")),
    )

    return PageSignals(
        title=title or None,
        description=_meta(soup, name="description"),
        canonical=canonical,
        headings=headings,
        structured_data=_structured_data(soup),
        meta_robots=_meta(soup, name="robots"),
        open_graph=SocialTags(
            title=_meta(soup, property="og:title"),
            description=_meta(soup, property="og:description"),
            image=_meta(soup, property="og:image"),
        ),
        twitter=SocialTags(
            card=_meta(soup, name="twitter:card"),
            title=_meta(soup, name="twitter:title"),
            description=_meta(soup, name="twitter:description"),
            image=_meta(soup, name="twitter:image"),
        ),
        images_without_alt=_images_without_alt(soup),
        performance=performance,
    )
