"""
Comparison Service

Runs the single-pair pipeline:
1. Fetch both documents
2. Extract positional pages (blocking parse runs in a worker thread)
3. Compare special fields and lines
4. Persist the full outcome and return the inline summary
"""

import asyncio
import time
from typing import List, Optional, Sequence, Tuple

from invoice_parity.core.config import Settings, get_settings
from invoice_parity.core.logging import get_logger
from invoice_parity.core.special_fields import load_special_fields
from invoice_parity.models.comparison import (
    ComparisonOutcome,
    ComparisonRecord,
    ComparisonSummary,
    DifferenceReport,
)
from invoice_parity.models.document import Page
from invoice_parity.models.rules import SpecialFieldDefinition
from invoice_parity.services.comparator import Comparator
from invoice_parity.services.extractor import DocumentExtractor
from invoice_parity.services.fetcher import DocumentFetcher
from invoice_parity.services.field_rules import FieldRuleEngine
from invoice_parity.services.highlights import find_differences
from invoice_parity.stores.result_store import InMemoryResultStore, ResultStore

logger = get_logger(__name__)


class ComparisonService:
    """
    Compares document pairs end to end.

    Attributes:
        settings: Application settings
        fetcher: Resolves references to bytes
        extractor: Parses bytes into pages
        comparator: Produces verdicts for two documents
        result_store: Holds full comparison outcomes
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        fetcher: Optional[DocumentFetcher] = None,
        result_store: Optional[ResultStore] = None,
        definitions: Optional[Sequence[SpecialFieldDefinition]] = None
    ):
        self.settings = settings or get_settings()
        definitions = load_special_fields(self.settings) if definitions is None else list(definitions)

        self.fetcher = fetcher or DocumentFetcher(self.settings)
        self.extractor = DocumentExtractor(definitions)
        self.comparator = Comparator(FieldRuleEngine(definitions), self.settings)
        self.result_store = result_store if result_store is not None else InMemoryResultStore()

        logger.info(
            "comparison_service_initialized",
            special_fields=len(definitions),
            line_match_tolerance=self.settings.line_match_tolerance,
            line_group_precision=self.settings.line_group_precision
        )

    async def load_pages(self, ref: str) -> List[Page]:
        """
        Fetch and extract one document.

        Raises:
            DownloadError: If the document cannot be fetched
            ExtractError: If the document cannot be parsed
        """
        data = await self.fetcher.fetch(ref)
        return await asyncio.to_thread(self.extractor.extract, data, ref)

    async def _load_pair(self, record: ComparisonRecord) -> Tuple[List[Page], List[Page]]:
        old_pages = await self.load_pages(record.old_ref)
        new_pages = await self.load_pages(record.new_ref)
        return old_pages, new_pages

    async def compare(self, record: ComparisonRecord) -> ComparisonOutcome:
        """
        Compare one document pair.

        Args:
            record: The pair to compare

        Returns:
            Outcome with verdicts and execution time; not yet persisted

        Raises:
            DownloadError: If either document cannot be fetched
            ExtractError: If either document cannot be parsed
        """
        start = time.perf_counter()
        logger.info("comparison_started", old_ref=record.old_ref, new_ref=record.new_ref)

        old_pages, new_pages = await self._load_pair(record)
        comparison = self.comparator.compare(old_pages, new_pages)
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        outcome = ComparisonOutcome(
            overall_result=comparison.overall_result,
            verdicts=comparison.verdicts,
            execution_time_ms=elapsed_ms,
            old_ref=record.old_ref,
            new_ref=record.new_ref,
            old_file_name=record.old_name,
            new_file_name=record.new_name,
        )

        logger.info(
            "comparison_completed",
            old_ref=record.old_ref,
            new_ref=record.new_ref,
            overall_result=outcome.overall_result.value,
            failed_verdicts=len(outcome.failed_verdicts),
            execution_time_ms=elapsed_ms
        )
        return outcome

    async def compare_and_store(self, old_ref: str, new_ref: str) -> ComparisonSummary:
        """
        Compare a single pair and persist the full outcome.

        Returns:
            Inline summary carrying the id of the stored detail
        """
        record = ComparisonRecord(sequence_number=0, old_ref=old_ref, new_ref=new_ref)
        outcome = await self.compare(record)
        return self.result_store.save(outcome).summary()

    def get_detail(self, result_id: str) -> ComparisonOutcome:
        """
        Fetch the full detail of a stored comparison.

        Raises:
            ResultNotFoundError: If no result exists for the id
        """
        return self.result_store.get(result_id)

    async def highlight(self, old_ref: str, new_ref: str) -> DifferenceReport:
        """Positional differences between two documents for side-by-side display."""
        record = ComparisonRecord(sequence_number=0, old_ref=old_ref, new_ref=new_ref)
        old_pages, new_pages = await self._load_pair(record)
        return find_differences(old_pages, new_pages)
