import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from email_finder.core.models import LookupOutcome
from email_finder.jobs import batch_runner
from email_finder.storage.base import StoreError
from email_finder.storage.memory import MemoryStore


class DummyExecutor:
    def __init__(self):
        self.submitted = []

    def submit(self, fn, *args):
        self.submitted.append((fn, args))


@pytest.fixture
def store():
    store = MemoryStore()
    store.save_api_config({"api_key": "gp-key"})
    return store


@pytest.fixture
def executor(monkeypatch):
    executor = DummyExecutor()
    monkeypatch.setattr(batch_runner, "_executor", executor)
    return executor


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(batch_runner.time, "sleep", calls.append)
    return calls


@pytest.fixture
def lookups(monkeypatch):
    calls = []

    def fake_find_email(contact, api_key):
        calls.append((contact.full_name, api_key))
        if contact.company == "Nowhere":
            return LookupOutcome(error="No email found")
        return LookupOutcome(email=f"{contact.first_name.lower()}@{contact.company.lower()}.com", confidence=80)

    monkeypatch.setattr(batch_runner.getprospect, "find_email", fake_find_email)
    return calls


def _contact(first, last="Doe", company="Acme"):
    return {"firstName": first, "lastName": last, "company": company}


def _new_job(store, total):
    return store.create_batch_job({"file_name": "leads.csv", "total_records": total, "status": "processing"}).id


def test_submit_batch_creates_processing_job_and_schedules(store, executor):
    contacts = [_contact("John"), _contact("Jane")]

    batch_id = batch_runner.submit_batch(store, "leads.csv", contacts)

    job = store.get_batch_job(batch_id)
    assert job.status == "processing"
    assert job.total_records == 2
    assert job.processed_records == 0
    assert job.successful_records == 0
    assert job.file_name == "leads.csv"

    fn, args = executor.submitted[0]
    assert fn is batch_runner._run_batch_safe
    assert args[1] == batch_id
    assert args[2] == contacts and args[2] is not contacts
    assert args[3] == "gp-key"


def test_submit_batch_rejects_empty_list(store, executor):
    with pytest.raises(batch_runner.BatchRejected, match="No contacts provided"):
        batch_runner.submit_batch(store, "leads.csv", [])

    with pytest.raises(batch_runner.BatchRejected):
        batch_runner.submit_batch(store, "leads.csv", None)

    assert store.list_batch_jobs() == []
    assert executor.submitted == []


def test_submit_batch_requires_active_config(executor):
    store = MemoryStore()

    with pytest.raises(batch_runner.BatchRejected, match="API key not configured"):
        batch_runner.submit_batch(store, "leads.csv", [_contact("John")])

    assert store.list_batch_jobs() == []


def test_process_batch_with_invalid_contact(store, lookups, sleeps):
    batch_id = _new_job(store, 2)

    batch_runner.process_batch(store, batch_id, [_contact("John"), _contact("", "", "")], "gp-key", pacing_seconds=1.0)

    job = store.get_batch_job(batch_id)
    assert job.status == "completed"
    assert job.completed_at is not None
    assert (job.total_records, job.processed_records, job.successful_records) == (2, 2, 1)

    records = store.list_search_records_by_batch(batch_id)
    errors = [r for r in records if r.status == "error"]
    assert len(errors) == 1
    assert errors[0].error_message == "Invalid contact data"
    assert (errors[0].first_name, errors[0].last_name, errors[0].company) == ("Unknown", "Unknown", "Unknown")
    assert lookups == [("John Doe", "gp-key")]
    # pause only follows real lookups
    assert sleeps == [1.0]


def test_process_batch_records_in_input_order(store, lookups, sleeps):
    batch_id = _new_job(store, 3)
    contacts = [_contact("Ann"), _contact("Bob", company="Nowhere"), _contact("Cid")]

    batch_runner.process_batch(store, batch_id, contacts, "gp-key", pacing_seconds=0)

    records = store.list_search_records_by_batch(batch_id)
    assert [r.first_name for r in reversed(records)] == ["Ann", "Bob", "Cid"]
    assert [r.status for r in reversed(records)] == ["found", "not_found", "found"]
    assert all(r.search_type == "batch" and r.batch_id == batch_id for r in records)
    assert records[1].error_message == "No email found"
    assert records[1].email is None
    assert len(sleeps) == 3


def test_process_batch_completes_when_every_lookup_fails(store, lookups, sleeps):
    batch_id = _new_job(store, 3)
    contacts = [_contact(name, company="Nowhere") for name in ("A", "B", "C")]

    batch_runner.process_batch(store, batch_id, contacts, "gp-key", pacing_seconds=0)

    job = store.get_batch_job(batch_id)
    assert job.status == "completed"
    assert job.processed_records == 3
    assert job.successful_records == 0


def test_progress_is_visible_and_monotonic(store, monkeypatch, sleeps):
    batch_id = _new_job(store, 4)
    snapshots = []

    def observing_find_email(contact, api_key):
        job = store.get_batch_job(batch_id)
        results = store.list_search_records_by_batch(batch_id)
        snapshots.append((job.processed_records, job.successful_records, len(results), job.status))
        return LookupOutcome(error="No email found") if contact.first_name == "B" else LookupOutcome(email="x@y.z")

    monkeypatch.setattr(batch_runner.getprospect, "find_email", observing_find_email)
    contacts = [_contact("A"), _contact("B"), {"firstName": "bad"}, _contact("C")]

    batch_runner.process_batch(store, batch_id, contacts, "gp-key", pacing_seconds=0)

    assert snapshots == [
        (0, 0, 0, "processing"),
        (1, 1, 1, "processing"),
        (3, 1, 3, "processing"),
    ]
    for (processed_a, successful_a, _, _), (processed_b, successful_b, _, _) in zip(snapshots, snapshots[1:]):
        assert processed_b >= processed_a
        assert successful_b >= successful_a
        assert successful_b <= processed_b <= 4

    job = store.get_batch_job(batch_id)
    assert (job.processed_records, job.successful_records, job.status) == (4, 2, "completed")
    assert len(store.list_search_records_by_batch(batch_id)) == job.total_records


def test_failed_progress_write_does_not_stop_the_batch(store, lookups, sleeps, monkeypatch):
    batch_id = _new_job(store, 3)
    original_update = store.update_batch_job
    calls = {"n": 0}

    def flaky_update(job_id, changes):
        calls["n"] += 1
        if calls["n"] == 2:
            raise StoreError("Failed to update batch job")
        return original_update(job_id, changes)

    monkeypatch.setattr(store, "update_batch_job", flaky_update)
    seen = []

    def watching_find_email(contact, api_key):
        seen.append(store.get_batch_job(batch_id).processed_records)
        return LookupOutcome(email="x@y.z")

    monkeypatch.setattr(batch_runner.getprospect, "find_email", watching_find_email)

    batch_runner.process_batch(store, batch_id, [_contact("A"), _contact("B"), _contact("C")], "gp-key", pacing_seconds=0)

    # the lost write leaves the job behind its records until the next update
    assert seen == [0, 1, 1]
    job = store.get_batch_job(batch_id)
    assert (job.processed_records, job.status) == (3, "completed")
    assert len(store.list_search_records_by_batch(batch_id)) == 3


def test_failed_record_write_marks_job_failed(store, lookups, sleeps, monkeypatch):
    batch_id = _new_job(store, 3)
    original_create = store.create_search_record
    calls = {"n": 0}

    def flaky_create(data):
        calls["n"] += 1
        if calls["n"] == 2:
            raise StoreError("Failed to create search record")
        return original_create(data)

    monkeypatch.setattr(store, "create_search_record", flaky_create)

    batch_runner.process_batch(store, batch_id, [_contact("A"), _contact("B"), _contact("C")], "gp-key", pacing_seconds=0)

    job = store.get_batch_job(batch_id)
    assert job.status == "failed"
    assert job.completed_at is not None
    assert job.processed_records == 1
    assert len(lookups) == 2


def test_run_batch_safe_marks_crashed_job_failed(store, monkeypatch, caplog):
    batch_id = _new_job(store, 1)

    def explode(*args, **kwargs):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(batch_runner, "process_batch", explode)

    with caplog.at_level("ERROR"):
        batch_runner._run_batch_safe(store, batch_id, [_contact("A")], "gp-key")

    assert store.get_batch_job(batch_id).status == "failed"
    assert "crashed" in " ".join(caplog.messages)


def test_submitted_batch_runs_in_background(store, lookups, monkeypatch):
    monkeypatch.setenv("BATCH_PACING_SECONDS", "0")
    pool = ThreadPoolExecutor(max_workers=1)
    monkeypatch.setattr(batch_runner, "_executor", pool)

    batch_id = batch_runner.submit_batch(store, "leads.csv", [_contact("John"), _contact("Jane")])
    pool.shutdown(wait=True)

    job = store.get_batch_job(batch_id)
    assert job.status == "completed"
    assert job.processed_records == 2
    assert job.successful_records == 2


def test_batch_beyond_worker_limit_waits_as_processing(store, monkeypatch):
    monkeypatch.setenv("BATCH_PACING_SECONDS", "0")
    started = threading.Event()
    release = threading.Event()

    def slow_find_email(contact, api_key):
        if contact.first_name == "Slow":
            started.set()
            release.wait(timeout=5)
        return LookupOutcome(email=f"{contact.first_name.lower()}@acme.com", confidence=80)

    monkeypatch.setattr(batch_runner.getprospect, "find_email", slow_find_email)
    pool = ThreadPoolExecutor(max_workers=1)
    monkeypatch.setattr(batch_runner, "_executor", pool)

    first = batch_runner.submit_batch(store, "first.csv", [_contact("Slow")])
    assert started.wait(timeout=5)
    second = batch_runner.submit_batch(store, "second.csv", [_contact("Jane")])

    queued = store.get_batch_job(second)
    assert queued.status == "processing"
    assert queued.processed_records == 0

    release.set()
    pool.shutdown(wait=True)

    assert store.get_batch_job(first).status == "completed"
    assert store.get_batch_job(second).status == "completed"
    assert store.get_batch_job(second).processed_records == 1


def test_module_executor_is_a_thread_pool():
    assert isinstance(batch_runner._executor, ThreadPoolExecutor)
