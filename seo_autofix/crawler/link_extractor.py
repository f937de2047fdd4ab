# seo_autofix/crawler/link_extractor.py
"""
Link extraction for the SEO Autofix crawler.
"""
from __future__ import annotations

import posixpath
from typing import Iterable, List
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from seo_autofix.utils import extract_origin, is_same_origin, normalize_url, remove_duplicates

NON_HTML_EXTENSIONS = frozenset(
    {
        ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg",
        ".pdf", ".zip", ".doc", ".docx", ".xls", ".xlsx", ".csv",
        ".mp4", ".mp3",
    }
)


def extract_links(
    html: str,
    page_url: str,
    deny_patterns: Iterable[str] = ("logout", "delete"),
) -> List[str]:
    """
    Extract followable same-origin links from *html*.

    Drops non-HTTP(S) schemes, other origins, known non-HTML files and paths
    containing a deny pattern. Results are normalized (query stripped) and
    deduplicated in document order.
    """
    soup = BeautifulSoup(html, "html.parser")
    origin = extract_origin(page_url)
    deny = [p.lower() for p in deny_patterns]
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        absolute = urljoin(page_url, href_val.strip())
        if not is_same_origin(absolute, origin):
            continue
        path = urlparse(absolute).path
        if posixpath.splitext(path.lower())[1] in NON_HTML_EXTENSIONS:
            continue
        if any(p in path.lower() for p in deny):
            continue
        links.append(normalize_url(absolute))
    return remove_duplicates(links)
