"""
Shared fixtures and builders for the test suite.
"""

from typing import List, Sequence, Tuple

import fitz
import pytest

from invoice_parity.core.config import Settings, get_settings
from invoice_parity.models.document import FieldMatch, Page, Token
from invoice_parity.models.rules import SpecialFieldDefinition
from invoice_parity.services.extractor import build_page


def tok(text: str, x: float, y: float) -> Token:
    return Token(text=text, x=x, y=y, width=10.0, height=10.0)


def page_of(number: int, tokens: Sequence[Token], definitions: Sequence[SpecialFieldDefinition] = ()) -> Page:
    """Build a page the way the extractor does, locating special fields."""
    return build_page(number, list(tokens), definitions)


def field_match(definition: SpecialFieldDefinition, *texts: str, y: float = 100.0) -> FieldMatch:
    tokens = [tok(text, 50.0 + 100.0 * i, y) for i, text in enumerate(texts)]
    return FieldMatch(definition=definition, tokens=tokens)


def make_pdf(pages: List[List[Tuple[float, float, str]]]) -> bytes:
    """Render pages of (x, baseline y, text) entries into PDF bytes."""
    doc = fitz.open()
    for entries in pages:
        page = doc.new_page()
        for x, y, text in entries:
            page.insert_text((x, y), text, fontname="helv", fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated to a temporary data directory."""
    return Settings(
        data_dir=str(tmp_path / "data"),
        status_flush_interval_seconds=0.05,
        download_timeout_seconds=2.0,
        batch_concurrency=5,
        batch_chunk_size=10,
    )


@pytest.fixture
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def invoice_pdf() -> bytes:
    return make_pdf([
        [
            (50, 100, "Factuurnummer 2024-001"),
            (50, 130, "Klantnummer 12345"),
            (50, 160, "Periode september 2024"),
        ],
        [
            (50, 100, "Bedankt voor je betaling"),
        ],
    ])
