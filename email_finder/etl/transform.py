"""Utilities for turning lookup outcomes into search record rows."""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from email_finder.core.models import (
    SEARCH_ERROR,
    SEARCH_FOUND,
    SEARCH_NOT_FOUND,
    Contact,
    LookupOutcome,
    SearchRecord,
)

logger = logging.getLogger(__name__)

INVALID_CONTACT_MESSAGE = "Invalid contact data"
UNKNOWN_SUBJECT = "Unknown"

_FIELD_ALIASES = {
    "first_name": ("firstName", "first_name"),
    "last_name": ("lastName", "last_name"),
    "company": ("company",),
}


def _pick(raw: Mapping[str, Any], field: str) -> Any:
    for key in _FIELD_ALIASES[field]:
        if key in raw:
            return raw[key]
    return None


def parse_contact(raw: Any) -> Tuple[Optional[Contact], Dict[str, str]]:
    """Validate one raw contact.

    Returns the contact (or ``None`` when a field is missing, blank or not a
    string) together with the subject fields that could be recovered, using
    "Unknown" for the rest.
    """
    values: Dict[str, Any] = {}
    if isinstance(raw, Mapping):
        values = {field: _pick(raw, field) for field in _FIELD_ALIASES}

    recovered = {}
    valid = True
    for field in _FIELD_ALIASES:
        value = values.get(field)
        if isinstance(value, str) and value.strip():
            recovered[field] = value.strip()
        else:
            recovered[field] = UNKNOWN_SUBJECT
            valid = False

    if not valid:
        return None, recovered
    return Contact(**recovered), recovered


def to_search_row(
    contact: Contact,
    outcome: LookupOutcome,
    search_type: str,
    batch_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build ``create_search_record`` data from a lookup outcome."""
    failed = bool(outcome.error)
    row: Dict[str, Any] = {
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "company": contact.company,
        "status": SEARCH_NOT_FOUND if failed else SEARCH_FOUND,
        "error_message": outcome.error if failed else None,
        "search_type": search_type,
        "batch_id": batch_id,
    }
    if not failed:
        row.update(
            email=outcome.email,
            confidence=outcome.confidence,
            title=outcome.title,
            domain=outcome.domain,
            full_name=outcome.full_name,
            industry=outcome.industry,
            website=outcome.website,
            company_size=outcome.company_size,
            country=outcome.country,
            city=outcome.city,
            email_status=outcome.email_status,
        )
    return row


def to_invalid_row(subject: Mapping[str, str], search_type: str, batch_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "first_name": subject.get("first_name") or UNKNOWN_SUBJECT,
        "last_name": subject.get("last_name") or UNKNOWN_SUBJECT,
        "company": subject.get("company") or UNKNOWN_SUBJECT,
        "status": SEARCH_ERROR,
        "error_message": INVALID_CONTACT_MESSAGE,
        "search_type": search_type,
        "batch_id": batch_id,
    }


def summarize_industries(records: Iterable[SearchRecord]) -> List[Dict[str, Any]]:
    """Count found emails and distinct companies per industry, busiest first."""
    buckets: Dict[str, Dict[str, Any]] = {}
    for record in records:
        if record.status != SEARCH_FOUND or not record.industry:
            continue
        bucket = buckets.setdefault(record.industry, {"industry": record.industry, "count": 0, "companies": set()})
        bucket["count"] += 1
        bucket["companies"].add(record.company)

    summary = [
        {"industry": b["industry"], "count": b["count"], "companies": len(b["companies"])}
        for b in buckets.values()
    ]
    summary.sort(key=lambda item: (-item["count"], item["industry"]))
    return summary
