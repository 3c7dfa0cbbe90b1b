"""Single contact lookups issued directly from a request."""

import logging
from typing import Any, Optional, Tuple

from email_finder.core.models import SEARCH_TYPES, SearchRecord
from email_finder.etl.transform import parse_contact, to_search_row
from email_finder.storage.base import RecordStore
from email_finder.vendors import getprospect

logger = logging.getLogger(__name__)

API_KEY_MISSING = "API key not configured"


class SearchRejected(ValueError):
    """Raised before any lookup is made when the request cannot be served."""


def require_api_key(store: RecordStore) -> str:
    config = store.get_active_api_config()
    if config is None:
        raise SearchRejected(API_KEY_MISSING)
    return config.api_key


def run_single_search(store: RecordStore, raw: Any, search_type: str = "single") -> Tuple[SearchRecord, Optional[str]]:
    """Look up one contact and persist the attempt, returning the record and any lookup error."""
    if search_type not in SEARCH_TYPES:
        raise SearchRejected(f"unknown search type: {search_type}")
    contact, _ = parse_contact(raw)
    if contact is None:
        raise SearchRejected("firstName, lastName and company are required")
    api_key = require_api_key(store)

    outcome = getprospect.find_email(contact, api_key)
    record = store.create_search_record(to_search_row(contact, outcome, search_type))
    logger.info("Single search %s for %s at %s: %s", record.id, contact.full_name, contact.company, record.status)
    return record, outcome.error
