# File: seo_autofix/utils.py
"""seo_autofix.utils: URL helpers shared by the crawler plus small time/list utilities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Collection, List, Sequence
from urllib.parse import urlparse, urlunparse

from seo_autofix.logger import logger

__all__: Sequence[str] = (
    "normalize_url",
    "extract_origin",
    "is_same_origin",
    "is_http_url",
    "remove_duplicates",
    "utc_now",
)


def normalize_url(url: str) -> str:
    """Reduce a URL to ``scheme://host[:port]/path``: query and fragment are dropped, an empty path becomes ``/``."""
    parsed = urlparse(url)
    path = parsed.path or "/"
    normalized = urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), path, "", "", ""))
    logger.debug("Normalized URL: %s -> %s", url, normalized)
    return normalized


def extract_origin(url: str) -> str:
    """Return ``scheme://host[:port]`` of *url*."""
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


def is_http_url(url: str) -> bool:
    return urlparse(url).scheme in ("http", "https")


def is_same_origin(url: str, origin: str) -> bool:
    """Check that *url* uses http(s) and belongs to *origin*."""
    valid = is_http_url(url) and extract_origin(url) == origin.lower()
    logger.debug("Same origin: %s -> %s", url, valid)
    return valid


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Remove duplicate URLs, keeping the first occurrence."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate URLs", removed)
    return unique


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()
