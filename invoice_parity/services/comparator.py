"""
Document Comparison Service

Compares the extracted pages of a reference and a migrated document:
1. Page alignment: page count and pages present on one side only
2. Special field evaluation per page
3. Line diff of everything the special fields did not claim
4. Aggregation into an overall Pass/Fail

Matching lines produce no verdict; only anomalies are reported for generic
content, while special fields always report Pass or Fail.
"""

import re
from typing import List, Optional, Sequence, Set

from pydantic import BaseModel, Field

from invoice_parity.core.config import Settings, get_settings
from invoice_parity.core.logging import get_logger
from invoice_parity.models.comparison import FieldVerdict, OverallResult, VerdictResult
from invoice_parity.models.document import Page
from invoice_parity.services.field_rules import NOT_AVAILABLE, FieldRuleEngine
from invoice_parity.services.line_assembler import assemble_lines

logger = get_logger(__name__)

PAGE_STRUCTURE_GROUP = "Page Structure"
REMAINING_LINES_GROUP = "Remaining lines (must match)"

_LINE_NOISE = re.compile(r"[€\s]+")


def normalize_line(text: str) -> str:
    """Collapse currency symbols and whitespace runs into single spaces."""
    return _LINE_NOISE.sub(" ", text).strip()


class Comparison(BaseModel):
    """Verdicts of one document comparison."""

    verdicts: List[FieldVerdict] = Field(default_factory=list)
    structural_mismatch: bool = Field(default=False, description="Page counts differ")

    @property
    def overall_result(self) -> OverallResult:
        if self.structural_mismatch or any(v.result == VerdictResult.FAIL for v in self.verdicts):
            return OverallResult.FAIL
        return OverallResult.PASS


class Comparator:
    """
    Compares two extracted documents.

    Attributes:
        rule_engine: Evaluates special fields
        line_tolerance: Maximum Y distance for pairing an old and a new line
        line_precision: Y rounding step used when assembling lines
    """

    def __init__(self, rule_engine: FieldRuleEngine, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.rule_engine = rule_engine
        self.line_tolerance = settings.line_match_tolerance
        self.line_precision = settings.line_group_precision

    def compare(self, old_pages: Sequence[Page], new_pages: Sequence[Page]) -> Comparison:
        """
        Compare two documents page by page.

        Args:
            old_pages: Pages of the reference document
            new_pages: Pages of the migrated document

        Returns:
            Comparison with all verdicts and the structural mismatch flag
        """
        comparison = Comparison()
        self._align_pages(old_pages, new_pages, comparison)

        for index in range(min(len(old_pages), len(new_pages))):
            old_page, new_page = old_pages[index], new_pages[index]
            field_verdicts, claimed = self.rule_engine.evaluate_page(old_page, new_page)
            comparison.verdicts.extend(field_verdicts)
            comparison.verdicts.extend(self._diff_lines(old_page, new_page, claimed))

        logger.debug(
            "documents_compared",
            old_pages=len(old_pages),
            new_pages=len(new_pages),
            verdicts=len(comparison.verdicts),
            overall_result=comparison.overall_result.value
        )
        return comparison

    def _align_pages(self, old_pages: Sequence[Page], new_pages: Sequence[Page], comparison: Comparison) -> None:
        if len(old_pages) == len(new_pages):
            return

        comparison.structural_mismatch = True
        comparison.verdicts.append(FieldVerdict(
            key="Page Count",
            old_value=f"{len(old_pages)} pages",
            new_value=f"{len(new_pages)} pages",
            result=VerdictResult.FAIL,
            group=PAGE_STRUCTURE_GROUP,
        ))

        for index in range(min(len(old_pages), len(new_pages)), max(len(old_pages), len(new_pages))):
            if index < len(old_pages):
                old_value, new_value = "Page exists", "Page does not exist (Removed)"
            else:
                old_value, new_value = "Page does not exist (Added)", "Page exists"
            comparison.verdicts.append(FieldVerdict(
                key=f"Page {index + 1}",
                old_value=old_value,
                new_value=new_value,
                result=VerdictResult.FAIL,
                group=PAGE_STRUCTURE_GROUP,
            ))

    def _diff_lines(self, old_page: Page, new_page: Page, claimed: Set[float]) -> List[FieldVerdict]:
        page_number = old_page.number
        old_lines = assemble_lines((t for t in old_page.tokens if t.y not in claimed), self.line_precision)
        new_lines = assemble_lines((t for t in new_page.tokens if t.y not in claimed), self.line_precision)
        old_lines.sort(key=lambda line: line.y)
        new_lines.sort(key=lambda line: line.y)

        verdicts = []
        matched_y: Set[float] = set()

        for line_index, old_line in enumerate(old_lines):
            new_line = next(
                (nl for nl in new_lines if abs(nl.y - old_line.y) < self.line_tolerance),
                None
            )
            new_text = normalize_line(new_line.text) if new_line else ""
            if normalize_line(old_line.text) != new_text:
                key = f"Line {line_index + 1} (Page {page_number})"
                verdicts.append(FieldVerdict(
                    key=key,
                    old_value=old_line.text,
                    new_value=new_line.text if new_line else NOT_AVAILABLE,
                    result=VerdictResult.FAIL,
                    group=REMAINING_LINES_GROUP,
                    y=old_line.y,
                ))
            if new_line is not None:
                matched_y.add(new_line.y)

        added = [nl for nl in new_lines if nl.y not in matched_y]
        for added_index, new_line in enumerate(added):
            key = f"New Line {added_index + 1} (Page {page_number}) on Y:{new_line.y:.2f}"
            verdicts.append(FieldVerdict(
                key=key,
                old_value=NOT_AVAILABLE,
                new_value=new_line.text,
                result=VerdictResult.FAIL,
                group=REMAINING_LINES_GROUP,
                y=new_line.y,
            ))

        return verdicts
