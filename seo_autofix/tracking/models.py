# seo_autofix/tracking/models.py
"""
Data models for batches and changes.

The batch record is persisted as JSON with camelCase keys at
``RECORD_FILE`` in the repository root; that file is the human-auditable
trail kept next to the git history.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Union

from seo_autofix.errors import UnsupportedChangeType

RECORD_FILE = ".seo-autofix-batch.json"


class ChangeType(str, Enum):
    META_TAG = "meta_tag"
    IMAGE_OPTIMIZATION = "image_optimization"
    HEADER_STRUCTURE = "header_structure"
    SCHEMA_MARKUP = "schema_markup"
    ROBOTS_TXT = "robots_txt"
    PERFORMANCE = "performance"
    SECURITY = "security"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Union[str, ChangeType]) -> ChangeType:
        """Accept an enum member or its value; anything else is refused."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise UnsupportedChangeType(f"Unsupported change type {value!r} (expected one of: {allowed})") from None


class BatchStatus(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"
    REJECTED = "rejected"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True, slots=True)
class Change:
    file_path: str
    change_type: ChangeType
    timestamp: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filePath": self.file_path,
            "changeType": self.change_type.value,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Change:
        return cls(
            file_path=data["filePath"],
            change_type=ChangeType.parse(data.get("changeType", "other")),
            timestamp=data.get("timestamp", ""),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True, slots=True)
class ChangeBatch:
    """Snapshot of a batch; transitions produce a new value via :meth:`evolve`."""

    batch_id: str
    site_id: str
    description: str
    start_time: str
    status: BatchStatus = BatchStatus.OPEN
    changes: tuple[Change, ...] = ()
    end_time: Optional[str] = None
    approved: Optional[bool] = None
    rollback_time: Optional[str] = None

    def evolve(self, **changes: Any) -> ChangeBatch:
        return replace(self, **changes)

    def with_change(self, change: Change) -> ChangeBatch:
        return replace(self, changes=self.changes + (change,))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "batchId": self.batch_id,
            "description": self.description,
            "siteId": self.site_id,
            "startTime": self.start_time,
            "changes": [c.to_dict() for c in self.changes],
            "status": self.status.value,
        }
        if self.end_time is not None:
            data["endTime"] = self.end_time
        if self.approved is not None:
            data["approved"] = self.approved
        if self.rollback_time is not None:
            data["rollbackTime"] = self.rollback_time
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2) + "\n"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChangeBatch:
        return cls(
            batch_id=data["batchId"],
            site_id=data.get("siteId", ""),
            description=data.get("description", ""),
            start_time=data.get("startTime", ""),
            status=BatchStatus(data.get("status", BatchStatus.OPEN.value)),
            changes=tuple(Change.from_dict(c) for c in data.get("changes", [])),
            end_time=data.get("endTime"),
            approved=data.get("approved"),
            rollback_time=data.get("rollbackTime"),
        )

    @classmethod
    def from_json(cls, text: str) -> ChangeBatch:
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True, slots=True)
class BatchSummary:
    batch_id: str
    site_id: str
    status: BatchStatus
    change_count: int
    start_time: str
    end_time: Optional[str]

    @classmethod
    def of(cls, batch: ChangeBatch) -> BatchSummary:
        return cls(batch.batch_id, batch.site_id, batch.status, len(batch.changes), batch.start_time, batch.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "siteId": self.site_id,
            "status": self.status.value,
            "changeCount": self.change_count,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


@dataclass(frozen=True, slots=True)
class RollbackSummary:
    batch_id: str
    site_id: str
    status: BatchStatus
    rollback_time: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "siteId": self.site_id,
            "status": self.status.value,
            "rollbackTime": self.rollback_time,
        }


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    hash: str
    author: str
    date: str
    subject: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "author": self.author,
            "date": self.date,
            "subject": self.subject,
            "metadata": dict(self.metadata),
        }
