"""CSV import of contact lists and CSV export of search records."""

import csv
import io
import logging
from typing import Dict, Iterable, List, Optional

from email_finder.core.models import SearchRecord

logger = logging.getLogger(__name__)


def _find_column(headers: List[str], *checks) -> Optional[int]:
    for index, header in enumerate(headers):
        if any(check(header) for check in checks):
            return index
    return None


def parse_contacts_csv(text: str) -> List[Dict[str, str]]:
    """Read first name, last name and company columns from an uploaded CSV.

    Header matching is loose ("First Name", "first_name", "firstname",
    "Organization"...). Blank and incomplete rows are skipped.
    """
    rows = list(csv.reader(io.StringIO(text.lstrip("\ufeff"))))
    if len(rows) < 2:
        raise ValueError("CSV file must contain at least a header row and one data row")

    headers = [h.strip().lower() for h in rows[0]]
    first_idx = _find_column(headers, lambda h: "first" in h and "name" in h, lambda h: h == "firstname")
    last_idx = _find_column(headers, lambda h: "last" in h and "name" in h, lambda h: h == "lastname")
    company_idx = _find_column(headers, lambda h: "company" in h, lambda h: "organization" in h, lambda h: h == "org")
    if first_idx is None or last_idx is None or company_idx is None:
        raise ValueError("CSV must contain first_name, last_name, and company columns")

    needed = max(first_idx, last_idx, company_idx)
    contacts = []
    skipped = 0
    for row in rows[1:]:
        if len(row) <= needed:
            skipped += 1
            continue
        contact = {
            "firstName": row[first_idx].strip(),
            "lastName": row[last_idx].strip(),
            "company": row[company_idx].strip(),
        }
        if contact["firstName"] and contact["lastName"] and contact["company"]:
            contacts.append(contact)
        else:
            skipped += 1

    if skipped:
        logger.info("Skipped %d incomplete CSV rows", skipped)
    if not contacts:
        raise ValueError("No valid contacts found in CSV file")
    return contacts


def export_records_csv(records: Iterable[SearchRecord]) -> str:
    buffer = io.StringIO()
    writer = None
    for record in records:
        row = record.to_dict()
        if writer is None:
            writer = csv.DictWriter(buffer, fieldnames=list(row), lineterminator="\n")
            writer.writeheader()
        writer.writerow({key: "" if value is None else value for key, value in row.items()})
    return buffer.getvalue()
