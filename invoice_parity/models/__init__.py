"""
Data models for the Invoice Parity service.
"""

from invoice_parity.models.comparison import (
    ComparisonOutcome,
    ComparisonRecord,
    ComparisonSummary,
    DifferenceReport,
    FieldVerdict,
    HighlightBox,
    HighlightKind,
    OverallResult,
    PageHighlights,
    VerdictResult,
)
from invoice_parity.models.document import FieldMatch, Line, Page, Token
from invoice_parity.models.job import BatchJob, BatchProgress, JobState
from invoice_parity.models.rules import Custom, MustDiffer, MustMatchWhole, SpecialFieldDefinition

__all__ = [
    "BatchJob",
    "BatchProgress",
    "ComparisonOutcome",
    "ComparisonRecord",
    "ComparisonSummary",
    "Custom",
    "DifferenceReport",
    "FieldMatch",
    "FieldVerdict",
    "HighlightBox",
    "HighlightKind",
    "JobState",
    "Line",
    "MustDiffer",
    "MustMatchWhole",
    "OverallResult",
    "Page",
    "PageHighlights",
    "SpecialFieldDefinition",
    "Token",
    "VerdictResult",
]
