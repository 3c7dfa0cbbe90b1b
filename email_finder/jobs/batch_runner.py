"""Background processing of uploaded contact lists.

``submit_batch`` runs inside the request: it validates, creates the job row
and hands the contacts to a thread pool. ``process_batch`` then walks the
contacts one at a time, pausing between lookups so the GetProspect rate
limit holds, and writes progress onto the job after every contact so
pollers see it move.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Sequence

from email_finder.core.config import get_settings
from email_finder.core.models import JOB_COMPLETED, JOB_FAILED, JOB_PROCESSING
from email_finder.etl.transform import parse_contact, to_invalid_row, to_search_row
from email_finder.jobs.search import SearchRejected, require_api_key
from email_finder.storage.base import RecordStore, StoreError
from email_finder.vendors import getprospect

logger = logging.getLogger(__name__)

# Jobs beyond `batch_workers` wait in the pool queue while their rows already read "processing".
_executor = ThreadPoolExecutor(max_workers=get_settings().batch_workers, thread_name_prefix="batch")


class BatchRejected(SearchRejected):
    """Raised when a batch is refused before a job is created."""


def submit_batch(store: RecordStore, file_name: str, contacts: Sequence[Any]) -> str:
    """Create a processing job for ``contacts`` and schedule it; returns the job id."""
    if not isinstance(contacts, (list, tuple)) or not contacts:
        raise BatchRejected("No contacts provided")
    try:
        api_key = require_api_key(store)
    except SearchRejected as exc:
        raise BatchRejected(str(exc)) from exc

    job = store.create_batch_job(
        {
            "file_name": file_name or "contacts.csv",
            "total_records": len(contacts),
            "processed_records": 0,
            "successful_records": 0,
            "status": JOB_PROCESSING,
        }
    )
    logger.info("Queueing batch %s (%s) with %d contacts", job.id, job.file_name, job.total_records)
    # The task gets its own copy of the contacts, nothing from the request.
    _executor.submit(_run_batch_safe, store, job.id, list(contacts), api_key)
    return job.id


def process_batch(
    store: RecordStore,
    batch_id: str,
    contacts: Sequence[Any],
    api_key: str,
    pacing_seconds: Optional[float] = None,
) -> None:
    """Look up every contact in order and keep the job's counters current."""
    delay = get_settings().batch_pacing_seconds if pacing_seconds is None else pacing_seconds
    processed = 0
    successful = 0
    logger.info("Starting batch %s with %d contacts", batch_id, len(contacts))

    for raw in contacts:
        contact, subject = parse_contact(raw)
        if contact is None:
            row = to_invalid_row(subject, "batch", batch_id)
            outcome = None
        else:
            outcome = getprospect.find_email(contact, api_key)
            row = to_search_row(contact, outcome, "batch", batch_id)

        try:
            store.create_search_record(row)
        except StoreError as exc:
            logger.error("Aborting batch %s after %d contacts: %s", batch_id, processed, exc)
            _finish(store, batch_id, JOB_FAILED, processed, successful)
            return

        processed += 1
        if outcome is not None and not outcome.error:
            successful += 1
        _write_progress(store, batch_id, processed, successful)

        if outcome is not None:
            time.sleep(delay)

    _finish(store, batch_id, JOB_COMPLETED, processed, successful)
    logger.info("Completed batch %s: processed=%d successful=%d", batch_id, processed, successful)


def _write_progress(store: RecordStore, batch_id: str, processed: int, successful: int) -> None:
    try:
        job = store.update_batch_job(
            batch_id, {"processed_records": processed, "successful_records": successful}
        )
    except StoreError as exc:
        logger.warning("Progress update for batch %s failed at %d: %s", batch_id, processed, exc)
        return
    if job is None:
        logger.warning("Batch %s disappeared while processing", batch_id)


def _finish(store: RecordStore, batch_id: str, status: str, processed: int, successful: int) -> None:
    try:
        store.update_batch_job(
            batch_id,
            {"status": status, "processed_records": processed, "successful_records": successful},
        )
    except StoreError as exc:
        logger.error("Could not mark batch %s as %s: %s", batch_id, status, exc)


def _run_batch_safe(store: RecordStore, batch_id: str, contacts: Sequence[Any], api_key: str) -> None:
    try:
        process_batch(store, batch_id, contacts, api_key)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Batch %s crashed: %s", batch_id, exc)
        try:
            job = store.get_batch_job(batch_id)
        except StoreError as store_exc:
            logger.error("Could not read batch %s after crash: %s", batch_id, store_exc)
            return
        if job is not None and job.status == JOB_PROCESSING:
            _finish(store, batch_id, JOB_FAILED, job.processed_records, job.successful_records)
