"""
Data models for document comparison operations.

These models define the structure of batch input, verdicts, and comparison
outcomes used throughout the comparison process.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, List, Optional
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def display_name(ref: str) -> str:
    """Last path segment of a URL or path, falling back to the reference itself."""
    name = PurePosixPath(unquote(urlparse(ref).path)).name
    return name or ref


class VerdictResult(str, Enum):
    """Result of one compared unit."""

    PASS = "Pass"
    FAIL = "Fail"


class OverallResult(str, Enum):
    """Result of a whole comparison."""

    PASS = "Pass"
    FAIL = "Fail"
    ERROR = "Error"


class ComparisonRecord(BaseModel):
    """
    One document pair in a batch.

    Display names default to the last path segment of each reference.
    """

    model_config = ConfigDict(frozen=True)

    sequence_number: int = Field(..., ge=0, description="Position in the submitted batch")
    old_ref: str = Field(..., min_length=1, description="Reference document")
    new_ref: str = Field(..., min_length=1, description="Migrated document")
    old_name: Optional[str] = Field(None, description="Display name of the reference document")
    new_name: Optional[str] = Field(None, description="Display name of the migrated document")

    @model_validator(mode="before")
    @classmethod
    def default_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for name_key, ref_key in (("old_name", "old_ref"), ("new_name", "new_ref")):
            if not data.get(name_key) and isinstance(data.get(ref_key), str):
                data[name_key] = display_name(data[ref_key])
        return data


class FieldVerdict(BaseModel):
    """Pass/Fail result for one special field, line, or page check."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Human readable identifier of the compared unit")
    old_value: str = Field(..., description="Value in the reference document")
    new_value: str = Field(..., description="Value in the migrated document")
    result: VerdictResult
    group: str = Field(..., description="Report group")
    y: Optional[float] = Field(None, description="Vertical position of the line, when known")


class ComparisonOutcome(BaseModel):
    """
    Full result of comparing two documents.

    Error outcomes carry an ``error`` message and an empty verdict list.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = Field(None, description="Identifier assigned by the result store")
    overall_result: OverallResult
    verdicts: List[FieldVerdict] = Field(default_factory=list)
    execution_time_ms: int = Field(default=0, ge=0)
    old_ref: str
    new_ref: str
    old_file_name: str
    new_file_name: str
    error: Optional[str] = Field(None, description="Error message if the comparison failed")
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_error(cls, record: ComparisonRecord, error: str, execution_time_ms: int = 0) -> "ComparisonOutcome":
        return cls(
            overall_result=OverallResult.ERROR,
            execution_time_ms=execution_time_ms,
            old_ref=record.old_ref,
            new_ref=record.new_ref,
            old_file_name=record.old_name,
            new_file_name=record.new_name,
            error=error,
        )

    @property
    def failed_verdicts(self) -> List[FieldVerdict]:
        return [v for v in self.verdicts if v.result == VerdictResult.FAIL]

    def summary(self) -> "ComparisonSummary":
        return ComparisonSummary(
            id=self.id,
            old_file_name=self.old_file_name,
            new_file_name=self.new_file_name,
            overall_result=self.overall_result,
            execution_time_ms=self.execution_time_ms,
            error=self.error,
        )


class ComparisonSummary(BaseModel):
    """Inline summary of a comparison; the detail is fetched by ``id``."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    old_file_name: str
    new_file_name: str
    overall_result: OverallResult
    execution_time_ms: int = 0
    error: Optional[str] = None


class HighlightKind(str, Enum):
    """Type of positional difference."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class HighlightBox(BaseModel):
    """Rectangle to highlight on a rendered page."""

    x: float
    y: float
    width: float
    height: float
    kind: HighlightKind


class PageHighlights(BaseModel):
    """Highlight boxes for one page index of both documents."""

    page_number: int
    old_boxes: List[HighlightBox] = Field(default_factory=list)
    new_boxes: List[HighlightBox] = Field(default_factory=list)

    @property
    def has_differences(self) -> bool:
        return bool(self.old_boxes or self.new_boxes)


class DifferenceReport(BaseModel):
    """Positional differences between two documents."""

    pages: List[PageHighlights] = Field(default_factory=list)
    total_differences: int = 0
    pages_with_differences: List[int] = Field(default_factory=list)
