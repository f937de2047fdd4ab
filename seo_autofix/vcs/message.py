# File: seo_autofix/vcs/message.py
"""seo_autofix.vcs.message: structured commit messages.

A message is a human summary line, an optional free-text body and a final
trailer line carrying a versioned JSON payload::

    Fix: Updated meta tags in index.html (title)

    SEO-Autofix-Metadata-v1: {"batchId": "b1", "changeType": "meta_tag"}

Only the *last* trailer line counts, so bodies quoting the token do not
confuse the parser. A broken payload parses as ``{}``.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

__all__: Sequence[str] = ("METADATA_VERSION", "METADATA_TAG", "format_message", "parse_message")

METADATA_VERSION = 1
METADATA_TAG = f"SEO-Autofix-Metadata-v{METADATA_VERSION}"

_TRAILER_RE = re.compile(r"^SEO-Autofix-Metadata-v(\d+):\s?(.*)$")


def format_message(summary: str, metadata: Optional[Mapping[str, Any]] = None, body: str = "") -> str:
    """Build a commit message; the summary is forced onto one line."""
    summary = " ".join(summary.split())
    parts = [summary]
    if body.strip():
        parts.append(body.strip())
    if metadata:
        payload = json.dumps(dict(metadata), ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)
        parts.append(f"{METADATA_TAG}: {payload}")
    return "\n\n".join(parts) + "\n"


def parse_message(message: str) -> Tuple[str, str, Dict[str, Any]]:
    """Split a full commit message into ``(summary, body, metadata)``."""
    lines = message.strip("\n").splitlines()
    if not lines:
        return "", "", {}

    summary = lines[0].strip()
    rest = lines[1:]

    trailer_index = None
    for index in range(len(rest) - 1, -1, -1):
        if _TRAILER_RE.match(rest[index].strip()):
            trailer_index = index
            break

    metadata: Dict[str, Any] = {}
    if trailer_index is not None:
        match = _TRAILER_RE.match(rest[trailer_index].strip())
        version, payload = int(match.group(1)), match.group(2)  # type: ignore[union-attr]
        metadata = _decode(payload)
        if metadata and version != METADATA_VERSION:
            metadata["_version"] = version
        rest = rest[:trailer_index] + rest[trailer_index + 1:]

    body = "\n".join(rest).strip()
    return summary, body, metadata


def _decode(payload: str) -> Dict[str, Any]:
    try:
        data = json.loads(payload)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
