# === FILE: seo_autofix/pipeline/contracts.py ===
"""
Contracts between the pipeline and its external collaborators.

Fix generators and verifiers live outside this package; they exchange
:class:`Fix` and :class:`VerificationResult` objects whose JSON form uses
camelCase keys (``issueId``, ``commitHash``, ``verifiedIssues`` ...).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from seo_autofix.analyzer import PrioritizedIssue
from seo_autofix.tracking.models import ChangeType

__all__: Sequence[str] = (
    "FixChanges",
    "Fix",
    "VerifiedIssue",
    "VerificationResult",
    "FixGenerator",
    "Verifier",
    "change_type_for",
)


class _Contract(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class FixChanges(_Contract):
    """Text edit: first occurrence of *original* becomes *modified*; empty *original* rewrites the file."""

    original: str = ""
    modified: str


class Fix(_Contract):
    id: str
    issue_id: str
    type: str
    path: str
    changes: FixChanges
    metadata: Dict[str, Any] = Field(default_factory=dict)
    commit_hash: Optional[str] = None
    batch_id: Optional[str] = None


class VerifiedIssue(_Contract):
    issue_id: str
    fixed: bool
    message: str = ""


class VerificationResult(_Contract):
    success: bool
    metrics: Dict[str, Any] = Field(default_factory=dict)
    verified_issues: List[VerifiedIssue] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class FixGenerator(Protocol):
    async def generate_fixes(self, issues: Sequence[PrioritizedIssue]) -> List[Fix]: ...


@runtime_checkable
class Verifier(Protocol):
    async def verify(self, site_id: str) -> VerificationResult: ...


# Fix types as produced by generators, by issue family.
_FIX_TYPES: Dict[str, ChangeType] = {
    "meta_tag": ChangeType.META_TAG,
    "meta_tags": ChangeType.META_TAG,
    "meta_description": ChangeType.META_TAG,
    "missing-meta-tags": ChangeType.META_TAG,
    "title": ChangeType.META_TAG,
    "canonical": ChangeType.META_TAG,
    "image_optimization": ChangeType.IMAGE_OPTIMIZATION,
    "image_alt": ChangeType.IMAGE_OPTIMIZATION,
    "images-missing-alt": ChangeType.IMAGE_OPTIMIZATION,
    "header_structure": ChangeType.HEADER_STRUCTURE,
    "heading": ChangeType.HEADER_STRUCTURE,
    "h1": ChangeType.HEADER_STRUCTURE,
    "schema_markup": ChangeType.SCHEMA_MARKUP,
    "structured_data": ChangeType.SCHEMA_MARKUP,
    "robots_txt": ChangeType.ROBOTS_TXT,
    "performance": ChangeType.PERFORMANCE,
    "security": ChangeType.SECURITY,
}

_FIX_PREFIXES = (
    ("title-", ChangeType.META_TAG),
    ("description-", ChangeType.META_TAG),
    ("h1-", ChangeType.HEADER_STRUCTURE),
)


def change_type_for(fix_type: str) -> ChangeType:
    """Map a generator's fix type onto a ChangeType; unknown types become ``other``."""
    key = fix_type.strip().lower()
    if key in _FIX_TYPES:
        return _FIX_TYPES[key]
    for prefix, change_type in _FIX_PREFIXES:
        if key.startswith(prefix):
            return change_type
    return ChangeType.OTHER
