"""
Data models for batch job tracking.
"""

import math
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from invoice_parity.models.comparison import ComparisonSummary


class JobState(str, Enum):
    """Lifecycle state of a batch job. Completed and Error are terminal."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not JobState.PROCESSING


def new_job_id(now: Optional[float] = None) -> str:
    """Job ids embed their creation time: ``<epoch_ms>-<random hex>``."""
    stamp = int((time.time() if now is None else now) * 1000)
    return f"{stamp}-{uuid.uuid4().hex[:12]}"


def job_created_at(job_id: str) -> Optional[float]:
    """Creation time in epoch seconds parsed from a job id, or None."""
    stamp, sep, _ = job_id.partition("-")
    if not sep or not stamp.isdigit():
        return None
    return int(stamp) / 1000


def progress_percentage(processed: int, total: int) -> int:
    """Percentage rounded half up; an empty batch counts as done."""
    if total <= 0:
        return 100
    return int(math.floor(processed * 100 / total + 0.5))


class BatchProgress(BaseModel):
    """Progress report emitted once per completed chunk."""

    processed: int
    total: int
    percentage: int


class BatchJob(BaseModel):
    """
    Status of a batch comparison job.

    Mutable until it reaches a terminal state. ``processed`` never exceeds
    ``total``.
    """

    id: str = Field(..., description="Job identifier with embedded creation time")
    status: JobState = Field(default=JobState.PROCESSING)
    total: int = Field(..., ge=0)
    processed: int = Field(default=0, ge=0)
    progress_percent: int = Field(default=0, ge=0, le=100)
    results: List[ComparisonSummary] = Field(default_factory=list)
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    input_path: Optional[str] = Field(None, description="Temporary inputs owned by the job")

    def progress(self) -> BatchProgress:
        return BatchProgress(processed=self.processed, total=self.total, percentage=self.progress_percent)
