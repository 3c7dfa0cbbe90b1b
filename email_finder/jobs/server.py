"""HTTP entrypoint for email searches and batch uploads."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request

from email_finder.core.config import get_settings
from email_finder.etl.csv_io import export_records_csv, parse_contacts_csv
from email_finder.etl.transform import summarize_industries
from email_finder.jobs import batch_runner
from email_finder.jobs.search import SearchRejected, run_single_search
from email_finder.storage.base import RecordStore, StoreError
from email_finder.storage.factory import build_store

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & store ----------
app = Flask(__name__)
_store: Optional[RecordStore] = None

EXPORT_LIMIT = 10000


def get_store() -> RecordStore:
    global _store
    if _store is None:
        _store = build_store()
    return _store


def _int_arg(name: str, default: int, minimum: int = 0) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default
    return max(minimum, value)


def _csv_response(body: str, filename: str) -> Response:
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.errorhandler(StoreError)
def handle_store_error(exc: StoreError) -> Any:
    logger.error("Storage failure: %s", exc)
    return jsonify({"error": str(exc)}), 500


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return jsonify({"status": "ok", "storage": settings.storage_backend}), 200


@app.post("/api/config")
def save_config() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    api_key = payload.get("apiKey")
    if not isinstance(api_key, str) or not api_key.strip():
        return jsonify({"error": "apiKey is required"}), 400

    config = get_store().save_api_config({"api_key": api_key.strip()})
    logger.info("Saved API config %s", config.id)
    return jsonify({"success": True, "config": {"id": config.id, "isActive": config.is_active == "true"}}), 200


@app.get("/api/config")
def get_config() -> Any:
    config = get_store().get_active_api_config()
    if config is None:
        return jsonify({"hasApiKey": False, "isActive": False}), 200
    return jsonify({"hasApiKey": True, "isActive": config.is_active == "true"}), 200


@app.post("/api/search/single")
def search_single() -> Any:
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    try:
        record, error = run_single_search(get_store(), payload)
    except SearchRejected as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({"success": error is None, "result": record.to_dict(), "error": error}), 200


@app.post("/api/search/batch")
def search_batch() -> Any:
    """
    Start a batch lookup.
    Accepts JSON {fileName, contacts: [{firstName, lastName, company}]}
    or a multipart upload with the CSV in the ``file`` field.
    """
    upload = request.files.get("file")
    if upload is not None:
        file_name = upload.filename or "contacts.csv"
        try:
            contacts = parse_contacts_csv(upload.read().decode("utf-8"))
        except UnicodeDecodeError:
            return jsonify({"error": "CSV file must be UTF-8 encoded"}), 400
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
    else:
        payload: Dict[str, Any] = request.get_json(silent=True) or {}
        file_name = str(payload.get("fileName") or "contacts.csv")
        contacts = payload.get("contacts")

    try:
        batch_id = batch_runner.submit_batch(get_store(), file_name, contacts)
    except batch_runner.BatchRejected as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({"success": True, "batchId": batch_id, "message": "Batch processing started"}), 202


@app.get("/api/searches")
def list_searches() -> Any:
    limit = _int_arg("limit", 50, minimum=1)
    offset = _int_arg("offset", 0)
    searches = get_store().list_search_records(limit=limit, offset=offset)
    return jsonify({"searches": [record.to_dict() for record in searches]}), 200


@app.delete("/api/searches")
def clear_searches() -> Any:
    get_store().clear_search_records()
    return jsonify({"success": True, "message": "Search results cleared"}), 200


@app.get("/api/searches/export")
def export_searches() -> Any:
    records = get_store().list_search_records(limit=EXPORT_LIMIT)
    return _csv_response(export_records_csv(records), "email-searches.csv")


@app.get("/api/batches")
def list_batches() -> Any:
    jobs = get_store().list_batch_jobs(limit=_int_arg("limit", 10, minimum=1))
    return jsonify({"jobs": [job.to_dict() for job in jobs]}), 200


@app.get("/api/batch/<batch_id>")
def get_batch(batch_id: str) -> Any:
    job = get_store().get_batch_job(batch_id)
    if job is None:
        return jsonify({"error": "Batch job not found"}), 404
    return jsonify({"job": job.to_dict()}), 200


@app.get("/api/batch/<batch_id>/results")
def get_batch_results(batch_id: str) -> Any:
    results = get_store().list_search_records_by_batch(batch_id)
    return jsonify({"results": [record.to_dict() for record in results]}), 200


@app.get("/api/batch/<batch_id>/export")
def export_batch(batch_id: str) -> Any:
    store = get_store()
    if store.get_batch_job(batch_id) is None:
        return jsonify({"error": "Batch job not found"}), 404
    records = store.list_search_records_by_batch(batch_id)
    return _csv_response(export_records_csv(records), f"batch-{batch_id}.csv")


@app.get("/api/analytics/industries")
def industry_analytics() -> Any:
    records = get_store().list_search_records(limit=EXPORT_LIMIT)
    return jsonify({"industries": summarize_industries(records)}), 200


def main() -> None:
    port = get_settings().port
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    get_store()
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
