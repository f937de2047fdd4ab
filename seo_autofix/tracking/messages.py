# File: seo_autofix/tracking/messages.py
"""seo_autofix.tracking.messages: commit summaries for recorded changes.

Deterministic in ``(change_type, file_path, metadata)``; audit tooling and
the tests rely on the exact wording.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Mapping, Optional

from seo_autofix.tracking.models import ChangeType


def _detail(metadata: Mapping[str, Any], key: str) -> str:
    value = metadata.get(key)
    return f" ({value})" if value else ""


def generate_commit_message(
    change_type: ChangeType, file_path: str, metadata: Optional[Mapping[str, Any]] = None
) -> str:
    """Summary line for a change, e.g. ``Fix: Updated meta tags in index.html (title)``."""
    metadata = metadata or {}
    name = PurePosixPath(file_path.replace("\\", "/")).name or file_path

    if change_type is ChangeType.META_TAG:
        text = f"Updated meta tags in {name}{_detail(metadata, 'tag')}"
    elif change_type is ChangeType.IMAGE_OPTIMIZATION:
        text = f"Optimized image {name}{_detail(metadata, 'optimization')}"
    elif change_type is ChangeType.HEADER_STRUCTURE:
        text = f"Improved header structure in {name}"
    elif change_type is ChangeType.SCHEMA_MARKUP:
        text = f"Added/updated schema markup in {name}{_detail(metadata, 'schemaType')}"
    elif change_type is ChangeType.ROBOTS_TXT:
        text = f"Updated robots.txt{_detail(metadata, 'changes')}"
    elif change_type is ChangeType.PERFORMANCE:
        text = f"Performance improvement in {name}{_detail(metadata, 'improvement')}"
    elif change_type is ChangeType.SECURITY:
        text = f"Security enhancement in {name}"
    else:
        text = f"Updated {name}"
        if metadata.get("description"):
            text += f": {metadata['description']}"
    return f"Fix: {text}"
