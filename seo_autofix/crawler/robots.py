# seo_autofix/crawler/robots.py
"""
Parser and checker for robots.txt rules.

Only the wildcard (``User-agent: *``) group is honored. A ``Disallow`` of
``/`` or an empty ``Disallow`` in that group closes the whole origin; any
other value is a path prefix.
"""
from __future__ import annotations

from typing import List, Optional


class RobotsPolicy:
    """Wildcard-group Disallow rules of one origin."""

    def __init__(self, text: Optional[str] = None) -> None:
        self.disallow: List[str] = []
        self.blocks_origin = False
        if text:
            self._parse(text)

    @classmethod
    def allow_all(cls) -> RobotsPolicy:
        return cls()

    def can_fetch(self, path: str) -> bool:
        """Return True if *path* is not covered by a wildcard Disallow rule."""
        if self.blocks_origin:
            return False
        path = path or "/"
        return not any(path.startswith(rule) for rule in self.disallow)

    def _parse(self, text: str) -> None:
        """Collect Disallow values of every ``User-agent: *`` group."""
        agents: List[str] = []
        in_rules = False
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue
            key, _, val = line.partition(":")
            key = key.strip().lower()
            val = val.strip()
            if key == "user-agent":
                # consecutive User-agent lines share one group
                if in_rules:
                    agents = []
                    in_rules = False
                agents.append(val.lower())
                continue
            in_rules = True
            if key != "disallow" or "*" not in agents:
                continue
            if val in ("", "/"):
                self.blocks_origin = True
            elif val not in self.disallow:
                self.disallow.append(val)
