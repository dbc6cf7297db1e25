"""
Batch Orchestrator

Runs many document comparisons with bounded parallelism:
1. Register the job in the status store
2. Process records chunk by chunk, at most ``batch_concurrency`` in flight
   across every batch the orchestrator runs
3. Convert every per-record failure into an Error outcome
4. Report progress once per chunk and finish the job

A job restarted by an administrator is abandoned at the next chunk boundary;
comparisons already in flight run to completion and are discarded.
"""

import asyncio
import time
from typing import Callable, Dict, List, Optional, Sequence

from invoice_parity.core.config import Settings, get_settings
from invoice_parity.core.logging import bind_job_context, get_logger
from invoice_parity.models.comparison import ComparisonOutcome, ComparisonRecord, ComparisonSummary
from invoice_parity.models.job import BatchJob, BatchProgress, progress_percentage
from invoice_parity.services.comparison_service import ComparisonService
from invoice_parity.stores.status_store import RestartConflictError, StatusStore

logger = get_logger(__name__)

ProgressCallback = Callable[[BatchProgress], None]


class BatchOrchestrator:
    """
    Drives batch comparisons and owns their task handles.

    An orchestrator belongs to the event loop it is first used on.

    Attributes:
        service: Compares one pair and stores its outcome
        status_store: Tracks job lifecycle and progress
        concurrency: Maximum comparisons in flight
        chunk_size: Records per progress report
    """

    def __init__(
        self,
        service: ComparisonService,
        status_store: StatusStore,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self.service = service
        self.status_store = status_store
        self.concurrency = settings.batch_concurrency
        self.chunk_size = settings.batch_chunk_size
        # Shared by every batch so the ceiling holds across concurrent jobs
        self._semaphore = asyncio.Semaphore(self.concurrency)
        self._tasks: Dict[str, asyncio.Task] = {}

        logger.info(
            "batch_orchestrator_initialized",
            concurrency=self.concurrency,
            chunk_size=self.chunk_size
        )

    def submit(
        self,
        records: Sequence[ComparisonRecord],
        on_progress: Optional[ProgressCallback] = None,
        input_path: Optional[str] = None
    ) -> BatchJob:
        """
        Register a batch and start processing it in the background.

        Must be called from a running event loop.

        Args:
            records: Pairs to compare, in submission order
            on_progress: Called with the progress after every chunk
            input_path: Temporary inputs released when the job is evicted

        Returns:
            The newly created job, still processing
        """
        records = list(records)
        job = self.status_store.create(len(records), input_path=input_path)

        task = asyncio.get_running_loop().create_task(self._process(job.id, records, on_progress))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _, job_id=job.id: self._tasks.pop(job_id, None))

        logger.info("batch_submitted", job_id=job.id, total=len(records))
        return job

    async def wait(self, job_id: str) -> BatchJob:
        """
        Wait for a submitted batch to finish.

        Returns:
            The job as recorded in the status store

        Raises:
            JobNotFoundError: If the job is unknown
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return self.status_store.get(job_id)

    async def run(
        self,
        records: Sequence[ComparisonRecord],
        on_progress: Optional[ProgressCallback] = None
    ) -> BatchJob:
        """Submit a batch and wait for it to finish."""
        job = self.submit(records, on_progress)
        return await self.wait(job.id)

    def restart(self, job_id: str) -> BatchJob:
        """
        Stop caring about a processing job by marking it errored.

        Restarting a job that already finished changes nothing.

        Raises:
            JobNotFoundError: If the job is unknown
        """
        try:
            return self.status_store.restart(job_id)
        except RestartConflictError as e:
            logger.warning("restart_ignored", job_id=job_id, reason=str(e))
            return self.status_store.get(job_id)

    async def _process(
        self,
        job_id: str,
        records: List[ComparisonRecord],
        on_progress: Optional[ProgressCallback]
    ) -> None:
        bind_job_context(job_id)
        total = len(records)
        processed = 0

        try:
            for start in range(0, total, self.chunk_size):
                chunk = records[start:start + self.chunk_size]
                settled = await asyncio.gather(
                    *(self._run_record(record) for record in chunk),
                    return_exceptions=True
                )
                summaries = [
                    result if isinstance(result, ComparisonSummary) else self._error_summary(record, result)
                    for record, result in zip(chunk, settled)
                ]
                processed += len(chunk)

                if not self.status_store.update_progress(job_id, len(chunk), summaries):
                    logger.warning("batch_abandoned", processed=processed, total=total)
                    return

                progress = BatchProgress(
                    processed=processed,
                    total=total,
                    percentage=progress_percentage(processed, total)
                )
                logger.info("batch_progress", **progress.model_dump())
                if on_progress is not None:
                    on_progress(progress)

            self.status_store.complete(job_id)
        except Exception as e:
            logger.error("batch_failed", error=str(e), exc_info=True)
            self.status_store.fail(job_id, str(e))

    async def _run_record(self, record: ComparisonRecord) -> ComparisonSummary:
        async with self._semaphore:
            start = time.perf_counter()
            try:
                outcome = await self.service.compare(record)
                return self.service.result_store.save(outcome).summary()
            except Exception as e:
                elapsed_ms = int((time.perf_counter() - start) * 1000)
                logger.warning(
                    "comparison_failed",
                    sequence_number=record.sequence_number,
                    old_ref=record.old_ref,
                    new_ref=record.new_ref,
                    error=str(e)
                )
                return ComparisonOutcome.from_error(record, str(e), elapsed_ms).summary()

    @staticmethod
    def _error_summary(record: ComparisonRecord, error: BaseException) -> ComparisonSummary:
        message = str(error) or type(error).__name__
        return ComparisonOutcome.from_error(record, message).summary()
