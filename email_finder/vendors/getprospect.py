"""Client for the GetProspect email finder API."""

import logging
from typing import Any, Dict, Optional

import requests

from email_finder.core.config import get_settings
from email_finder.core.models import Contact, LookupOutcome

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

UNKNOWN = "Unknown"
UNKNOWN_EMAIL_STATUS = "UNKNOWN"
NO_EMAIL_FOUND = "No email found"

_STATUS_MESSAGES = {
    401: "Invalid API key",
    402: "Insufficient credits. Please upgrade your plan.",
    429: "Rate limit exceeded. Please try again later.",
}


class GetProspectError(RuntimeError):
    """Raised internally when the API answers with a non-2xx status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_for(response: requests.Response) -> GetProspectError:
    status = response.status_code
    message = _STATUS_MESSAGES.get(status) or f"API error: {status} {response.reason or ''}".rstrip()
    return GetProspectError(status, message)


def _request(contact: Contact, api_key: str) -> Dict[str, Any]:
    settings = get_settings()
    params = {"name": contact.full_name, "company": contact.company, "apiKey": api_key}
    response = _SESSION.get(settings.getprospect_base_url, params=params, timeout=settings.lookup_timeout)
    if not 200 <= response.status_code < 300:
        raise _error_for(response)
    payload = response.json()
    return payload if isinstance(payload, dict) else {}


def _confidence(payload: Dict[str, Any]) -> int:
    raw = payload.get("confidence") or payload.get("score") or 0
    try:
        return max(0, min(100, int(raw)))
    except (TypeError, ValueError):
        return 0


def to_outcome(payload: Dict[str, Any], contact: Contact) -> LookupOutcome:
    """Normalise a successful response body into a lookup outcome."""
    email = payload.get("email")
    if not email:
        return LookupOutcome(error=NO_EMAIL_FOUND)

    return LookupOutcome(
        email=email,
        confidence=_confidence(payload),
        title=payload.get("title") or payload.get("position"),
        domain=payload.get("domain") or contact.company,
        full_name=payload.get("fullName") or payload.get("name") or contact.full_name,
        industry=payload.get("industry") or UNKNOWN,
        website=payload.get("website") or UNKNOWN,
        company_size=_as_text(payload.get("companySize") or payload.get("company_size")) or UNKNOWN,
        country=payload.get("country") or UNKNOWN,
        city=payload.get("city") or UNKNOWN,
        email_status=payload.get("emailStatus") or payload.get("email_status") or UNKNOWN_EMAIL_STATUS,
    )


def _as_text(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def find_email(contact: Contact, api_key: str) -> LookupOutcome:
    """Look up one contact; failures come back as ``LookupOutcome.error``, never raised."""
    try:
        payload = _request(contact, api_key)
    except GetProspectError as exc:
        logger.warning("GetProspect lookup failed for %s at %s: status=%s", contact.full_name, contact.company, exc.status_code)
        return LookupOutcome(error=str(exc))
    except ValueError as exc:
        logger.warning("GetProspect returned an unreadable body: %s", exc)
        return LookupOutcome(error="Invalid response from email lookup service")
    except requests.RequestException as exc:
        # The exception text carries the request URL, api key included.
        logger.warning("GetProspect request failed for %s at %s: %s", contact.full_name, contact.company, exc.__class__.__name__)
        return LookupOutcome(error=f"Request failed: {exc.__class__.__name__}")

    return to_outcome(payload, contact)
