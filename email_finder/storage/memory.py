"""Process-local record store backed by dictionaries."""

from __future__ import annotations

import itertools
import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from email_finder.core.models import TERMINAL_JOB_STATUSES, ApiConfig, BatchJob, SearchRecord
from email_finder.storage.base import DEFAULT_PAGE_SIZE, batch_job_changes, search_record_defaults

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore:
    """Keeps everything in dicts guarded by one lock; lost when the process exits."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # Insertion counter breaks ties between records created in the same tick.
        self._sequence = itertools.count()
        self._searches: Dict[str, Tuple[int, SearchRecord]] = {}
        self._configs: Dict[str, ApiConfig] = {}
        self._jobs: Dict[str, Tuple[int, BatchJob]] = {}

    # ---------- Search records ----------

    def create_search_record(self, data: Mapping[str, Any]) -> SearchRecord:
        record = SearchRecord(id=str(uuid.uuid4()), created_at=_now(), **search_record_defaults(data))
        with self._lock:
            self._searches[record.id] = (next(self._sequence), record)
        return record

    def _recent_searches(self) -> List[SearchRecord]:
        entries = sorted(self._searches.values(), key=lambda e: (e[1].created_at, e[0]), reverse=True)
        return [record for _, record in entries]

    def list_search_records(self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> List[SearchRecord]:
        with self._lock:
            records = self._recent_searches()
        return records[offset : offset + limit]

    def list_search_records_by_batch(self, batch_id: str) -> List[SearchRecord]:
        with self._lock:
            records = self._recent_searches()
        return [record for record in records if record.batch_id == batch_id]

    def clear_search_records(self) -> None:
        with self._lock:
            removed = len(self._searches)
            self._searches.clear()
        logger.info("Cleared %d search records", removed)

    # ---------- API configuration ----------

    def save_api_config(self, data: Mapping[str, Any]) -> ApiConfig:
        config = ApiConfig(id=str(uuid.uuid4()), api_key=data["api_key"], is_active="true", created_at=_now())
        with self._lock:
            for existing in self._configs.values():
                existing.is_active = "false"
            self._configs[config.id] = config
        return replace(config)

    def get_active_api_config(self) -> Optional[ApiConfig]:
        with self._lock:
            for config in self._configs.values():
                if config.is_active == "true":
                    return replace(config)
        return None

    def get_api_config(self, config_id: str) -> Optional[ApiConfig]:
        with self._lock:
            config = self._configs.get(config_id)
            return replace(config) if config else None

    # ---------- Batch jobs ----------

    def create_batch_job(self, data: Mapping[str, Any]) -> BatchJob:
        job = BatchJob(
            id=str(uuid.uuid4()),
            file_name=data["file_name"],
            total_records=int(data["total_records"]),
            status=data["status"],
            created_at=_now(),
            processed_records=int(data.get("processed_records") or 0),
            successful_records=int(data.get("successful_records") or 0),
        )
        with self._lock:
            self._jobs[job.id] = (next(self._sequence), job)
        return replace(job)

    def get_batch_job(self, job_id: str) -> Optional[BatchJob]:
        with self._lock:
            entry = self._jobs.get(job_id)
            return replace(entry[1]) if entry else None

    def update_batch_job(self, job_id: str, changes: Mapping[str, Any]) -> Optional[BatchJob]:
        changes = batch_job_changes(changes)
        with self._lock:
            entry = self._jobs.get(job_id)
            if entry is None:
                return None
            seq, job = entry
            updated = replace(job, **changes)
            if updated.status in TERMINAL_JOB_STATUSES and updated.completed_at is None:
                updated.completed_at = _now()
            self._jobs[job_id] = (seq, updated)
            return replace(updated)

    def list_batch_jobs(self, limit: int = 10) -> List[BatchJob]:
        with self._lock:
            entries = sorted(self._jobs.values(), key=lambda e: (e[1].created_at, e[0]), reverse=True)
            return [replace(job) for _, job in entries[:limit]]
