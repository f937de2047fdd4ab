# File: seo_autofix/tracking/registry.py
"""seo_autofix.tracking.registry: one change tracker and one lock per site repository."""

from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from seo_autofix.config import TrackingConfig
from seo_autofix.errors import InvalidState
from seo_autofix.logger import logger
from seo_autofix.tracking.tracker import ChangeTracker
from seo_autofix.vcs.adapter import GitAdapter, VCSAdapter

__all__ = ("SiteRegistry",)

_SITE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

AdapterFactory = Callable[[Path], VCSAdapter]


class SiteRegistry:
    """
    Hands out a single ChangeTracker per site.

    Operations on the same site are serialized by that site's lock; different
    sites proceed independently.
    """

    def __init__(self, config: Optional[TrackingConfig] = None, adapter_factory: Optional[AdapterFactory] = None) -> None:
        self.config = config or TrackingConfig()
        self._adapter_factory = adapter_factory or self._git_adapter
        self._trackers: Dict[str, ChangeTracker] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _git_adapter(self, path: Path) -> VCSAdapter:
        return GitAdapter(
            path,
            author_name=self.config.author_name,
            author_email=self.config.author_email,
            default_branch=self.config.default_branch,
            timeout=self.config.git_timeout,
        )

    @property
    def base_path(self) -> Path:
        return Path(self.config.repos_base_path)

    def lock_for(self, site_id: str) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault(site_id, threading.RLock())

    def site_path(self, site_id: str) -> Path:
        if not _SITE_ID_RE.match(site_id or ""):
            raise ValueError(f"Invalid site id {site_id!r}")
        return self.base_path / site_id

    def tracker(self, site_id: str, repo_path: Union[str, Path, None] = None) -> ChangeTracker:
        """Return the site's tracker, initializing the repository on first use."""
        path = Path(repo_path) if repo_path is not None else self.site_path(site_id)
        lock = self.lock_for(site_id)
        with lock:
            with self._guard:
                cached = self._trackers.get(site_id)
            if cached is not None:
                return cached

            path.mkdir(parents=True, exist_ok=True)
            is_new = not any(path.iterdir())
            tracker = ChangeTracker(site_id, path, self._adapter_factory(path), self.config, lock=lock)
            tracker.initialize(is_new_site=is_new)
            with self._guard:
                self._trackers[site_id] = tracker
            logger.debug("Tracker ready for site %s at %s", site_id, path)
            return tracker

    def clone(self, site_id: str, url: str) -> ChangeTracker:
        """Clone *url* as the repository of a new site."""
        path = self.site_path(site_id)
        lock = self.lock_for(site_id)
        with lock:
            if path.exists() and any(path.iterdir()):
                raise InvalidState(f"Directory {path} already exists and is not empty", site_id=site_id)
            path.mkdir(parents=True, exist_ok=True)
            adapter = self._adapter_factory(path)
            adapter.clone(url)
            tracker = ChangeTracker(site_id, path, adapter, self.config, lock=lock)
            tracker.initialize(is_new_site=False)
            with self._guard:
                self._trackers[site_id] = tracker
            logger.info("Cloned %s for site %s", url, site_id)
            return tracker

    def list_sites(self) -> List[str]:
        """Site ids with a directory under the repositories base path."""
        if not self.base_path.is_dir():
            return []
        return sorted(p.name for p in self.base_path.iterdir() if p.is_dir() and _SITE_ID_RE.match(p.name))
