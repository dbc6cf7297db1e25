"""
Result Store

Persists the full detail of each comparison under a generated id so the
inline summary can stay small.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict

from invoice_parity.core.logging import get_logger
from invoice_parity.models.comparison import ComparisonOutcome

logger = get_logger(__name__)


class ResultNotFoundError(Exception):
    """Raised when no comparison result exists for an id."""

    pass


class ResultStore(ABC):
    """Storage interface for comparison outcomes."""

    @abstractmethod
    def save(self, outcome: ComparisonOutcome) -> ComparisonOutcome:
        """Persist an outcome and return it with its assigned id."""

    @abstractmethod
    def get(self, result_id: str) -> ComparisonOutcome:
        """Return a stored outcome or raise ResultNotFoundError."""

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex


class InMemoryResultStore(ResultStore):
    """Process-local result store."""

    def __init__(self):
        self._results: Dict[str, ComparisonOutcome] = {}
        self._lock = threading.Lock()

    def save(self, outcome: ComparisonOutcome) -> ComparisonOutcome:
        stored = outcome.model_copy(update={"id": self._new_id()})
        with self._lock:
            self._results[stored.id] = stored
        return stored

    def get(self, result_id: str) -> ComparisonOutcome:
        with self._lock:
            outcome = self._results.get(result_id)
        if outcome is None:
            raise ResultNotFoundError(f"Comparison result not found: {result_id}")
        return outcome


class FileResultStore(ResultStore):
    """
    File-backed result store writing one JSON document per outcome.

    Attributes:
        root: Directory holding ``<id>.json`` files
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, result_id: str) -> Path:
        return self.root / f"{result_id}.json"

    def save(self, outcome: ComparisonOutcome) -> ComparisonOutcome:
        stored = outcome.model_copy(update={"id": self._new_id()})
        self._path(stored.id).write_text(stored.model_dump_json(indent=2), encoding="utf-8")
        logger.debug("comparison_result_saved", result_id=stored.id)
        return stored

    def get(self, result_id: str) -> ComparisonOutcome:
        # Ids are uuid hex; anything else cannot name a stored file
        if not result_id.isalnum():
            raise ResultNotFoundError(f"Comparison result not found: {result_id}")
        path = self._path(result_id)
        if not path.exists():
            raise ResultNotFoundError(f"Comparison result not found: {result_id}")
        return ComparisonOutcome.model_validate_json(path.read_text(encoding="utf-8"))
