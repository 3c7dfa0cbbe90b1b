"""PostgreSQL-backed record store."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

import psycopg2
from psycopg2 import extras

from email_finder.core import db
from email_finder.core.models import TERMINAL_JOB_STATUSES, ApiConfig, BatchJob, SearchRecord
from email_finder.storage.base import (
    BATCH_JOB_UPDATABLE,
    DEFAULT_PAGE_SIZE,
    StoreError,
    batch_job_changes,
    search_record_defaults,
)

logger = logging.getLogger(__name__)

_SEARCH_COLUMNS = (
    "id, first_name, last_name, company, email, confidence, title, domain, full_name, industry, "
    "website, company_size, country, city, email_status, status, error_message, search_type, "
    "batch_id, created_at"
)
_JOB_COLUMNS = (
    "id, file_name, total_records, processed_records, successful_records, status, created_at, completed_at"
)
_CONFIG_COLUMNS = "id, api_key, is_active, created_at"

_INSERT_SEARCH = f"""
INSERT INTO email_searches (
    id, first_name, last_name, company, email, confidence, title, domain, full_name, industry,
    website, company_size, country, city, email_status, status, error_message, search_type, batch_id
) VALUES (
    %(id)s, %(first_name)s, %(last_name)s, %(company)s, %(email)s, %(confidence)s, %(title)s,
    %(domain)s, %(full_name)s, %(industry)s, %(website)s, %(company_size)s, %(country)s, %(city)s,
    %(email_status)s, %(status)s, %(error_message)s, %(search_type)s, %(batch_id)s
)
RETURNING {_SEARCH_COLUMNS};
"""

_INSERT_JOB = f"""
INSERT INTO batch_jobs (id, file_name, total_records, processed_records, successful_records, status)
VALUES (%(id)s, %(file_name)s, %(total_records)s, %(processed_records)s, %(successful_records)s, %(status)s)
RETURNING {_JOB_COLUMNS};
"""

# SET expressions see the old row, so the terminal check uses the incoming status.
_UPDATE_JOB = f"""
UPDATE batch_jobs SET
    file_name = COALESCE(%(file_name)s, file_name),
    processed_records = COALESCE(%(processed_records)s, processed_records),
    successful_records = COALESCE(%(successful_records)s, successful_records),
    status = COALESCE(%(status)s, status),
    completed_at = CASE
        WHEN completed_at IS NULL AND COALESCE(%(status)s, status) = ANY(%(terminal)s) THEN NOW()
        ELSE completed_at
    END
WHERE id = %(id)s
RETURNING {_JOB_COLUMNS};
"""


class PostgresStore:
    """Durable store; every call runs in its own transaction on a pooled connection."""

    name = "postgres"

    @contextmanager
    def _cursor(self, action: str) -> Iterator[Any]:
        try:
            with db.get_connection() as conn:
                try:
                    with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                        yield cur
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
        except psycopg2.Error as exc:
            logger.error("Failed to %s: %s", action, exc)
            raise StoreError(f"Failed to {action}") from exc

    # ---------- Search records ----------

    def create_search_record(self, data: Mapping[str, Any]) -> SearchRecord:
        params = search_record_defaults(data)
        params["id"] = str(uuid.uuid4())
        with self._cursor("create search record") as cur:
            cur.execute(_INSERT_SEARCH, params)
            row = cur.fetchone()
        return SearchRecord(**row)

    def list_search_records(self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> List[SearchRecord]:
        with self._cursor("fetch search records") as cur:
            cur.execute(
                f"SELECT {_SEARCH_COLUMNS} FROM email_searches ORDER BY created_at DESC LIMIT %s OFFSET %s",
                (limit, offset),
            )
            rows = cur.fetchall()
        return [SearchRecord(**row) for row in rows]

    def list_search_records_by_batch(self, batch_id: str) -> List[SearchRecord]:
        with self._cursor("fetch batch results") as cur:
            cur.execute(
                f"SELECT {_SEARCH_COLUMNS} FROM email_searches WHERE batch_id = %s ORDER BY created_at DESC",
                (batch_id,),
            )
            rows = cur.fetchall()
        return [SearchRecord(**row) for row in rows]

    def clear_search_records(self) -> None:
        with self._cursor("clear search records") as cur:
            cur.execute("DELETE FROM email_searches")
            logger.info("Cleared %d search records", cur.rowcount)

    # ---------- API configuration ----------

    def save_api_config(self, data: Mapping[str, Any]) -> ApiConfig:
        params = {"id": str(uuid.uuid4()), "api_key": data["api_key"]}
        with self._cursor("save api config") as cur:
            # Serialises concurrent saves; the partial unique index backs this up.
            cur.execute("LOCK TABLE api_config IN SHARE ROW EXCLUSIVE MODE")
            cur.execute("UPDATE api_config SET is_active = 'false' WHERE is_active = 'true'")
            cur.execute(
                f"INSERT INTO api_config (id, api_key, is_active) VALUES (%(id)s, %(api_key)s, 'true') "
                f"RETURNING {_CONFIG_COLUMNS}",
                params,
            )
            row = cur.fetchone()
        return ApiConfig(**row)

    def get_active_api_config(self) -> Optional[ApiConfig]:
        with self._cursor("fetch api config") as cur:
            cur.execute(f"SELECT {_CONFIG_COLUMNS} FROM api_config WHERE is_active = 'true' LIMIT 1")
            row = cur.fetchone()
        return ApiConfig(**row) if row else None

    def get_api_config(self, config_id: str) -> Optional[ApiConfig]:
        with self._cursor("fetch api config") as cur:
            cur.execute(f"SELECT {_CONFIG_COLUMNS} FROM api_config WHERE id = %s", (config_id,))
            row = cur.fetchone()
        return ApiConfig(**row) if row else None

    # ---------- Batch jobs ----------

    def create_batch_job(self, data: Mapping[str, Any]) -> BatchJob:
        params = {
            "id": str(uuid.uuid4()),
            "file_name": data["file_name"],
            "total_records": int(data["total_records"]),
            "processed_records": int(data.get("processed_records") or 0),
            "successful_records": int(data.get("successful_records") or 0),
            "status": data["status"],
        }
        with self._cursor("create batch job") as cur:
            cur.execute(_INSERT_JOB, params)
            row = cur.fetchone()
        return BatchJob(**row)

    def get_batch_job(self, job_id: str) -> Optional[BatchJob]:
        with self._cursor("fetch batch job") as cur:
            cur.execute(f"SELECT {_JOB_COLUMNS} FROM batch_jobs WHERE id = %s", (job_id,))
            row = cur.fetchone()
        return BatchJob(**row) if row else None

    def update_batch_job(self, job_id: str, changes: Mapping[str, Any]) -> Optional[BatchJob]:
        params: Dict[str, Any] = {name: None for name in BATCH_JOB_UPDATABLE}
        params.update(batch_job_changes(changes))
        params["id"] = job_id
        params["terminal"] = sorted(TERMINAL_JOB_STATUSES)
        with self._cursor("update batch job") as cur:
            cur.execute(_UPDATE_JOB, params)
            row = cur.fetchone()
        return BatchJob(**row) if row else None

    def list_batch_jobs(self, limit: int = 10) -> List[BatchJob]:
        with self._cursor("fetch batch jobs") as cur:
            cur.execute(f"SELECT {_JOB_COLUMNS} FROM batch_jobs ORDER BY created_at DESC LIMIT %s", (limit,))
            rows = cur.fetchall()
        return [BatchJob(**row) for row in rows]
