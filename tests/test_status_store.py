"""
Tests for batch job status tracking.
"""

import json
import threading
import time

import pytest

from invoice_parity.models.comparison import ComparisonSummary, OverallResult
from invoice_parity.models.job import JobState, job_created_at, new_job_id, progress_percentage
from invoice_parity.stores.status_store import (
    INTERRUPTED_MESSAGE,
    RESTARTED_MESSAGE,
    FileStatusStore,
    InMemoryStatusStore,
    JobNotFoundError,
    RestartConflictError,
)


def summary(name="a.pdf", result=OverallResult.PASS):
    return ComparisonSummary(old_file_name=name, new_file_name=name, overall_result=result)


def test_progress_percentage_rounds_half_up():
    assert progress_percentage(1, 8) == 13
    assert progress_percentage(1, 3) == 33
    assert progress_percentage(2, 3) == 67
    assert progress_percentage(0, 0) == 100


def test_job_id_embeds_creation_time():
    job_id = new_job_id(now=1700000000.5)

    assert job_created_at(job_id) == pytest.approx(1700000000.5)
    assert job_created_at("not-a-stamp") is None


def test_job_lifecycle():
    store = InMemoryStatusStore()
    job = store.create(total=4)

    assert job.status == JobState.PROCESSING
    assert store.update_progress(job.id, 2, [summary(), summary()])
    assert store.get(job.id).progress_percent == 50
    assert store.complete(job.id)

    final = store.get(job.id)
    assert final.status == JobState.COMPLETED
    assert final.processed == 2
    assert len(final.results) == 2


def test_processed_never_exceeds_total():
    store = InMemoryStatusStore()
    job = store.create(total=2)

    store.update_progress(job.id, 5, [])

    assert store.get(job.id).processed == 2
    assert store.get(job.id).progress_percent == 100


def test_terminal_jobs_ignore_updates():
    store = InMemoryStatusStore()
    job = store.create(total=2)
    store.fail(job.id, "boom")

    assert store.update_progress(job.id, 1, [summary()]) is False
    assert store.complete(job.id) is False
    assert store.get(job.id).status == JobState.ERROR
    assert store.get(job.id).error == "boom"


def test_restart_processing_job_cannot_complete_later():
    store = InMemoryStatusStore()
    job = store.create(total=3)

    restarted = store.restart(job.id)

    assert restarted.status == JobState.ERROR
    assert restarted.error == RESTARTED_MESSAGE
    assert store.complete(job.id) is False
    assert store.get(job.id).status == JobState.ERROR


def test_restart_completed_job_conflicts():
    store = InMemoryStatusStore()
    job = store.create(total=0)
    store.complete(job.id)

    with pytest.raises(RestartConflictError):
        store.restart(job.id)
    assert store.get(job.id).status == JobState.COMPLETED


def test_unknown_job():
    store = InMemoryStatusStore()

    with pytest.raises(JobNotFoundError):
        store.get("123-abc")
    with pytest.raises(JobNotFoundError):
        store.restart("123-abc")


def test_returned_jobs_are_snapshots():
    store = InMemoryStatusStore()
    job = store.create(total=1)

    job.status = JobState.COMPLETED

    assert store.get(job.id).status == JobState.PROCESSING


def test_evict_stale_releases_inputs(tmp_path):
    inputs = tmp_path / "upload"
    inputs.mkdir()
    (inputs / "pairs.json").write_text("[]")
    store = InMemoryStatusStore()
    with_inputs = store.create(total=1, input_path=str(inputs))
    plain = store.create(total=1)

    evicted = store.evict_stale(60, now=job_created_at(plain.id) + 120)

    assert sorted(evicted) == sorted([with_inputs.id, plain.id])
    assert not inputs.exists()


def test_evict_stale_keeps_recent_jobs():
    store = InMemoryStatusStore()
    job = store.create(total=1)

    assert store.evict_stale(3600) == []
    assert store.get(job.id).id == job.id


def test_file_store_round_trip(tmp_path):
    path = tmp_path / "jobs.json"
    store = FileStatusStore(path, flush_interval=10)
    job = store.create(total=2)
    store.update_progress(job.id, 2, [summary("x.pdf", OverallResult.FAIL), summary()])
    store.complete(job.id)
    store.close()

    reloaded = FileStatusStore(path).get(job.id)

    assert reloaded.status == JobState.COMPLETED
    assert [r.overall_result for r in reloaded.results] == [OverallResult.FAIL, OverallResult.PASS]


def test_file_store_debounces_writes(tmp_path):
    path = tmp_path / "jobs.json"
    store = FileStatusStore(path, flush_interval=0.05)
    job = store.create(total=3)
    for _ in range(3):
        store.update_progress(job.id, 1, [summary()])

    deadline = time.time() + 5
    while time.time() < deadline:
        if path.exists() and json.loads(path.read_text())[job.id]["processed"] == 3:
            break
        time.sleep(0.02)

    assert json.loads(path.read_text())[job.id]["processed"] == 3
    store.close()


def test_interrupted_jobs_are_marked_errored_on_reload(tmp_path):
    path = tmp_path / "jobs.json"
    store = FileStatusStore(path, flush_interval=10)
    job = store.create(total=5)
    store.close()

    reloaded = FileStatusStore(path, flush_interval=10)

    assert reloaded.get(job.id).status == JobState.ERROR
    assert reloaded.get(job.id).error == INTERRUPTED_MESSAGE
    reloaded.close()


def test_file_store_evicts_expired_jobs_on_startup(tmp_path):
    path = tmp_path / "jobs.json"
    store = FileStatusStore(path, flush_interval=10)
    job = store.create(total=1)
    store.complete(job.id)
    store.close()

    time.sleep(0.01)
    reloaded = FileStatusStore(path, flush_interval=10, retention_seconds=0.001)

    with pytest.raises(JobNotFoundError):
        reloaded.get(job.id)
    reloaded.close()


def test_unreadable_snapshot_starts_empty(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text("{not json")

    store = FileStatusStore(path, flush_interval=10)

    assert store.list_jobs() == []
    store.close()


def test_failed_write_keeps_memory_state(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file where a directory is needed")
    store = FileStatusStore(blocker / "jobs.json", flush_interval=10)
    job = store.create(total=1)

    assert store.flush() is False
    assert store.get(job.id).status == JobState.PROCESSING
    store.close()


def test_concurrent_progress_updates_are_not_lost():
    """Every writer's increment and result lands when many threads update one job."""
    writers = 32
    store = InMemoryStatusStore()
    job = store.create(total=writers)
    start = threading.Barrier(writers)

    def report():
        start.wait()
        store.update_progress(job.id, 1, [summary()])

    threads = [threading.Thread(target=report) for _ in range(writers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    final = store.get(job.id)
    assert final.processed == writers
    assert len(final.results) == writers
    assert final.progress_percent == 100


def test_read_only_store_reports_processing_jobs_as_written(tmp_path):
    path = tmp_path / "jobs.json"
    owner = FileStatusStore(path, flush_interval=10)
    job = owner.create(total=4)
    owner.update_progress(job.id, 2, [summary(), summary()])
    owner.flush()
    written = path.read_bytes()

    reader = FileStatusStore(path, retention_seconds=0.000001, read_only=True)

    observed = reader.get(job.id)
    assert observed.status == JobState.PROCESSING
    assert observed.processed == 2
    assert reader.flush() is False
    reader.close()
    assert path.read_bytes() == written
    owner.close()
