"""Repository interface shared by the in-memory and PostgreSQL stores."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol

from email_finder.core.models import OPTIONAL_SEARCH_FIELDS, ApiConfig, BatchJob, SearchRecord

DEFAULT_PAGE_SIZE = 50

# Columns a caller may change on an existing batch job.
BATCH_JOB_UPDATABLE = ("file_name", "processed_records", "successful_records", "status")


class StoreError(RuntimeError):
    """Raised when the storage backend fails; distinct from a missing record."""


def search_record_defaults(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Return creation data with every optional column present (``None`` when absent)."""
    values = {name: data.get(name) for name in OPTIONAL_SEARCH_FIELDS}
    values.update(
        first_name=data["first_name"],
        last_name=data["last_name"],
        company=data["company"],
        status=data["status"],
        search_type=data.get("search_type") or "single",
    )
    return values


def batch_job_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(changes) - set(BATCH_JOB_UPDATABLE)
    if unknown:
        raise ValueError(f"cannot update batch job fields: {', '.join(sorted(unknown))}")
    return dict(changes)


class RecordStore(Protocol):
    name: str

    def create_search_record(self, data: Mapping[str, Any]) -> SearchRecord:
        ...

    def list_search_records(self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> List[SearchRecord]:
        ...

    def list_search_records_by_batch(self, batch_id: str) -> List[SearchRecord]:
        ...

    def clear_search_records(self) -> None:
        ...

    def save_api_config(self, data: Mapping[str, Any]) -> ApiConfig:
        ...

    def get_active_api_config(self) -> Optional[ApiConfig]:
        ...

    def get_api_config(self, config_id: str) -> Optional[ApiConfig]:
        ...

    def create_batch_job(self, data: Mapping[str, Any]) -> BatchJob:
        ...

    def get_batch_job(self, job_id: str) -> Optional[BatchJob]:
        ...

    def update_batch_job(self, job_id: str, changes: Mapping[str, Any]) -> Optional[BatchJob]:
        ...

    def list_batch_jobs(self, limit: int = 10) -> List[BatchJob]:
        ...
