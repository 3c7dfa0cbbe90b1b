"""CLI job to run a CSV batch of email lookups in the foreground."""

import argparse
import logging
from pathlib import Path
from typing import Optional

from email_finder.core.config import get_settings
from email_finder.core.db import init_schema
from email_finder.core.models import JOB_PROCESSING
from email_finder.etl.csv_io import parse_contacts_csv
from email_finder.jobs.batch_runner import process_batch
from email_finder.storage.factory import build_store

logger = logging.getLogger(__name__)


def run_batch_job(*, csv_path: str, api_key: Optional[str] = None, pacing_seconds: Optional[float] = None) -> str:
    """Process every contact in ``csv_path`` and return the batch job id."""
    path = Path(csv_path)
    contacts = parse_contacts_csv(path.read_text(encoding="utf-8"))

    store = build_store()
    if api_key:
        store.save_api_config({"api_key": api_key})
    config = store.get_active_api_config()
    if config is None:
        raise RuntimeError("An API key is required (--api-key or DEFAULT_API_KEY)")

    job = store.create_batch_job(
        {
            "file_name": path.name,
            "total_records": len(contacts),
            "status": JOB_PROCESSING,
        }
    )
    logger.info("Running batch %s for %d contacts from %s", job.id, len(contacts), path)

    process_batch(store, job.id, contacts, config.api_key, pacing_seconds=pacing_seconds)

    finished = store.get_batch_job(job.id)
    if finished is not None:
        logger.info(
            "Batch %s %s: processed=%d successful=%d",
            finished.id,
            finished.status,
            finished.processed_records,
            finished.successful_records,
        )
    return job.id


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a GetProspect email lookup batch from a CSV file")
    parser.add_argument("--file", dest="csv_path", help="CSV with first name, last name and company columns")
    parser.add_argument("--api-key", dest="api_key", help="GetProspect API key to activate before running")
    parser.add_argument(
        "--pacing",
        dest="pacing_seconds",
        type=float,
        default=get_settings().batch_pacing_seconds,
        help="Seconds to wait between lookups",
    )
    parser.add_argument("--init-db", dest="init_db", action="store_true", help="Create the PostgreSQL schema and exit")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    if args.init_db:
        init_schema()
        return
    if not args.csv_path:
        parser.error("--file is required unless --init-db is given")

    run_batch_job(csv_path=args.csv_path, api_key=args.api_key, pacing_seconds=args.pacing_seconds)


if __name__ == "__main__":
    main()
