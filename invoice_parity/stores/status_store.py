"""
Batch Job Status Store

Tracks the lifecycle of batch jobs:

    processing -> completed | error   (terminal, one way)

The in-memory store applies updates to a job under that job's lock. The file
store adds a debounced JSON snapshot that is reloaded on startup, where jobs
older than the retention window are evicted together with their temporary
inputs.
"""

import json
import os
import shutil
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from invoice_parity.core.logging import get_logger
from invoice_parity.models.comparison import ComparisonSummary
from invoice_parity.models.job import BatchJob, JobState, job_created_at, new_job_id, progress_percentage

logger = get_logger(__name__)

INTERRUPTED_MESSAGE = "Interrupted by service restart"
RESTARTED_MESSAGE = "Job restarted by administrator"

_job_map = TypeAdapter(Dict[str, BatchJob])


class JobNotFoundError(Exception):
    """Raised when a job id is unknown."""

    pass


class RestartConflictError(Exception):
    """Raised when restarting a job that is no longer processing."""

    pass


class StatusStore(ABC):
    """Storage interface for batch job status."""

    @abstractmethod
    def create(self, total: int, input_path: Optional[str] = None) -> BatchJob:
        """Register a new processing job."""

    @abstractmethod
    def get(self, job_id: str) -> BatchJob:
        """Return a snapshot of a job or raise JobNotFoundError."""

    @abstractmethod
    def update_progress(self, job_id: str, processed: int, results: Sequence[ComparisonSummary]) -> bool:
        """Add processed records and their results. Returns False if the job is terminal."""

    @abstractmethod
    def complete(self, job_id: str) -> bool:
        """Mark a processing job completed. Returns False if it was already terminal."""

    @abstractmethod
    def fail(self, job_id: str, error: str) -> bool:
        """Mark a processing job failed. Returns False if it was already terminal."""

    @abstractmethod
    def restart(self, job_id: str) -> BatchJob:
        """Mark a processing job as errored so its outcome is ignored."""

    @abstractmethod
    def evict_stale(self, max_age_seconds: float, now: Optional[float] = None) -> List[str]:
        """Drop jobs older than ``max_age_seconds`` and return their ids."""

    def close(self) -> None:
        """Release resources held by the store."""


class InMemoryStatusStore(StatusStore):
    """Process-local status store with one lock per job."""

    def __init__(self):
        self._jobs: Dict[str, BatchJob] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def _locked(self, job_id: str) -> Iterator[BatchJob]:
        with self._registry_lock:
            lock = self._locks.get(job_id)
        if lock is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        with lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(f"Job not found: {job_id}")
            yield job

    def _put(self, job: BatchJob) -> None:
        with self._registry_lock:
            self._jobs[job.id] = job
            self._locks.setdefault(job.id, threading.Lock())

    def _changed(self) -> None:
        """Hook called after every mutation."""

    def create(self, total: int, input_path: Optional[str] = None) -> BatchJob:
        job = BatchJob(
            id=new_job_id(),
            total=total,
            progress_percent=progress_percentage(0, total),
            input_path=input_path,
        )
        self._put(job)
        self._changed()
        logger.info("job_created", job_id=job.id, total=total)
        return job.model_copy(deep=True)

    def get(self, job_id: str) -> BatchJob:
        with self._locked(job_id) as job:
            return job.model_copy(deep=True)

    def list_jobs(self) -> List[BatchJob]:
        with self._registry_lock:
            ids = list(self._jobs)
        jobs = []
        for job_id in ids:
            try:
                jobs.append(self.get(job_id))
            except JobNotFoundError:
                continue
        return jobs

    def update_progress(self, job_id: str, processed: int, results: Sequence[ComparisonSummary]) -> bool:
        with self._locked(job_id) as job:
            if job.status.is_terminal:
                logger.info("progress_ignored_for_terminal_job", job_id=job_id, status=job.status.value)
                return False
            job.processed = min(job.total, job.processed + processed)
            job.progress_percent = progress_percentage(job.processed, job.total)
            job.results.extend(results)
            job.updated_at = datetime.now(timezone.utc)
        self._changed()
        return True

    def _finish(self, job_id: str, status: JobState, error: Optional[str] = None) -> bool:
        with self._locked(job_id) as job:
            if job.status.is_terminal:
                return False
            job.status = status
            job.error = error
            job.updated_at = datetime.now(timezone.utc)
        self._changed()
        logger.info("job_finished", job_id=job_id, status=status.value, error=error)
        return True

    def complete(self, job_id: str) -> bool:
        return self._finish(job_id, JobState.COMPLETED)

    def fail(self, job_id: str, error: str) -> bool:
        return self._finish(job_id, JobState.ERROR, error)

    def restart(self, job_id: str) -> BatchJob:
        """
        Mark a processing job as errored.

        In-flight comparisons keep running; their results are ignored.

        Raises:
            JobNotFoundError: If the job is unknown
            RestartConflictError: If the job is already terminal
        """
        with self._locked(job_id) as job:
            if job.status.is_terminal:
                raise RestartConflictError(f"Job {job_id} is already {job.status.value}")
            job.status = JobState.ERROR
            job.error = RESTARTED_MESSAGE
            job.updated_at = datetime.now(timezone.utc)
            snapshot = job.model_copy(deep=True)
        self._changed()
        logger.warning("job_restarted", job_id=job_id)
        return snapshot

    def evict_stale(self, max_age_seconds: float, now: Optional[float] = None) -> List[str]:
        now = time.time() if now is None else now
        evicted = []
        with self._registry_lock:
            for job_id, job in list(self._jobs.items()):
                created = job_created_at(job_id)
                if created is not None and now - created <= max_age_seconds:
                    continue
                del self._jobs[job_id]
                self._locks.pop(job_id, None)
                evicted.append(job)

        for job in evicted:
            self._release_inputs(job)
        if evicted:
            self._changed()
            logger.info("stale_jobs_evicted", count=len(evicted), job_ids=[j.id for j in evicted])
        return [job.id for job in evicted]

    @staticmethod
    def _release_inputs(job: BatchJob) -> None:
        if not job.input_path:
            return
        path = Path(job.input_path)
        try:
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()
        except OSError as e:
            logger.warning("job_input_cleanup_failed", job_id=job.id, path=str(path), error=str(e))


class FileStatusStore(InMemoryStatusStore):
    """
    Status store persisted to a JSON snapshot.

    Mutations schedule a flush after ``flush_interval`` seconds, so bursts of
    progress updates are coalesced into one write. A failed write is logged
    and retried on the next mutation; memory stays authoritative.

    Only the process that runs batches owns the snapshot. Readers open it
    with ``read_only=True``: jobs are reported exactly as written, nothing
    is marked interrupted or evicted, and nothing is written back.

    Attributes:
        path: Snapshot file
        flush_interval: Debounce window in seconds
        read_only: Whether this store only observes the snapshot
    """

    def __init__(
        self,
        path: Path,
        flush_interval: float = 1.0,
        retention_seconds: Optional[float] = None,
        read_only: bool = False
    ):
        super().__init__()
        self.path = Path(path)
        self.flush_interval = flush_interval
        self.read_only = read_only
        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()
        self._write_lock = threading.Lock()

        self.load()
        if retention_seconds is not None and not read_only:
            self.evict_stale(retention_seconds)

    def load(self) -> None:
        """
        Reload the snapshot.

        An owning store marks jobs left processing by a previous run as
        errored; a read-only store keeps them as they are.
        """
        if not self.path.exists():
            return
        try:
            jobs = _job_map.validate_json(self.path.read_bytes())
        except (OSError, ValidationError, ValueError) as e:
            logger.error("status_snapshot_unreadable", path=str(self.path), error=str(e))
            return

        interrupted = 0
        for job in jobs.values():
            if job.status == JobState.PROCESSING and not self.read_only:
                job.status = JobState.ERROR
                job.error = INTERRUPTED_MESSAGE
                interrupted += 1
            self._put(job)
        if interrupted:
            self._changed()
        logger.info(
            "status_snapshot_loaded",
            path=str(self.path),
            jobs=len(jobs),
            interrupted=interrupted,
            read_only=self.read_only
        )

    def _changed(self) -> None:
        if self.read_only:
            return
        with self._timer_lock:
            if self._timer is not None:
                return
            self._timer = threading.Timer(self.flush_interval, self._flush_from_timer)
            self._timer.daemon = True
            self._timer.start()

    def _flush_from_timer(self) -> None:
        with self._timer_lock:
            self._timer = None
        self.flush()

    def flush(self) -> bool:
        """
        Write the snapshot now.

        Returns:
            True if the snapshot was written; always False when read-only
        """
        if self.read_only:
            return False
        snapshot = {job.id: job.model_dump(mode="json") for job in self.list_jobs()}
        with self._write_lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                tmp_path.write_text(json.dumps(snapshot, indent=2), encoding="utf-8")
                os.replace(tmp_path, self.path)
            except OSError as e:
                logger.error("status_snapshot_write_failed", path=str(self.path), error=str(e))
                return False
        logger.debug("status_snapshot_written", path=str(self.path), jobs=len(snapshot))
        return True

    def close(self) -> None:
        with self._timer_lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        if not self.read_only:
            self.flush()
