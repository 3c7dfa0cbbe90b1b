"""Records persisted by the email finder and the helpers that shape them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

SEARCH_FOUND = "found"
SEARCH_NOT_FOUND = "not_found"
SEARCH_ERROR = "error"

SEARCH_TYPES = ("single", "batch", "advanced", "company_domain")

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
JOB_CANCELLED = "cancelled"

TERMINAL_JOB_STATUSES = frozenset({JOB_COMPLETED, JOB_FAILED, JOB_CANCELLED})

# Optional result columns of a search record, in export order.
OPTIONAL_SEARCH_FIELDS = (
    "email",
    "confidence",
    "title",
    "domain",
    "full_name",
    "industry",
    "website",
    "company_size",
    "country",
    "city",
    "email_status",
    "error_message",
    "batch_id",
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(slots=True)
class Contact:
    """Person to look up; the subject of a single email search."""

    first_name: str
    last_name: str
    company: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(slots=True)
class LookupOutcome:
    """Normalized result of one GetProspect call: either fields or an error."""

    email: Optional[str] = None
    confidence: Optional[int] = None
    title: Optional[str] = None
    domain: Optional[str] = None
    full_name: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    company_size: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    email_status: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SearchRecord:
    id: str
    first_name: str
    last_name: str
    company: str
    status: str
    search_type: str
    created_at: datetime
    email: Optional[str] = None
    confidence: Optional[int] = None
    title: Optional[str] = None
    domain: Optional[str] = None
    full_name: Optional[str] = None
    industry: Optional[str] = None
    website: Optional[str] = None
    company_size: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    email_status: Optional[str] = None
    error_message: Optional[str] = None
    batch_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "company": self.company,
        }
        for name in OPTIONAL_SEARCH_FIELDS:
            payload[_camel(name)] = getattr(self, name)
        payload["status"] = self.status
        payload["searchType"] = self.search_type
        payload["createdAt"] = _iso(self.created_at)
        return payload


@dataclass(slots=True)
class BatchJob:
    id: str
    file_name: str
    total_records: int
    status: str
    created_at: datetime
    processed_records: int = 0
    successful_records: int = 0
    completed_at: Optional[datetime] = None

    @property
    def progress_percentage(self) -> float:
        if not self.total_records:
            return 0.0
        return round(self.processed_records / self.total_records * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "totalRecords": self.total_records,
            "processedRecords": self.processed_records,
            "successfulRecords": self.successful_records,
            "progressPercentage": self.progress_percentage,
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "completedAt": _iso(self.completed_at),
        }


@dataclass(slots=True)
class ApiConfig:
    id: str
    api_key: str = field(repr=False)
    is_active: str = "true"
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        # The key itself never leaves the server.
        return {"id": self.id, "isActive": self.is_active == "true", "createdAt": _iso(self.created_at)}
