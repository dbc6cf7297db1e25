"""
Document Extraction Service

Parses PDF bytes into a positional page model:
- one Token per PyMuPDF text span, whitespace-only spans excluded
- special fields located per page by their label

The service uses PyMuPDF span bounding boxes for X and size, and the span
baseline origin for Y, so fragments printed on the same baseline share the
exact same Y.
"""

import threading
from typing import List, Optional, Sequence

import fitz  # PyMuPDF

from invoice_parity.core.logging import get_logger
from invoice_parity.models.document import FieldMatch, Page, Token
from invoice_parity.models.rules import SpecialFieldDefinition

logger = get_logger(__name__)

PLACEHOLDER_TEXTS = {"", "-"}

# MuPDF keeps global state; parse one document at a time
_mupdf_lock = threading.Lock()


class ExtractError(Exception):
    """Raised when a document cannot be parsed."""

    pass


def locate_field(tokens: Sequence[Token], definition: SpecialFieldDefinition) -> Optional[FieldMatch]:
    """
    Locate a special field on a page.

    Finds the first token containing the label, then collects every token on
    exactly the same Y, drops blanks and lone dashes, and sorts by X.

    Args:
        tokens: Page tokens in reading order
        definition: Field to locate

    Returns:
        The match, or None if the label does not occur on the page
    """
    anchor = next((t for t in tokens if definition.label in t.text), None)
    if anchor is None:
        return None

    same_line = [
        t for t in tokens
        if t.y == anchor.y and t.text.strip() not in PLACEHOLDER_TEXTS
    ]
    same_line.sort(key=lambda t: t.x)
    return FieldMatch(definition=definition, tokens=same_line)


def build_page(number: int, raw_tokens: Sequence[Token], definitions: Sequence[SpecialFieldDefinition]) -> Page:
    """
    Assemble a Page from raw tokens.

    Args:
        number: 1-based page number
        raw_tokens: Tokens as produced by the parser, possibly whitespace-only
        definitions: Special fields to locate

    Returns:
        Page with whitespace-only tokens removed and field matches attached
    """
    matches = []
    for definition in definitions:
        match = locate_field(raw_tokens, definition)
        if match is not None and match.tokens:
            matches.append(match)

    tokens = [t for t in raw_tokens if t.text.strip()]
    return Page(number=number, tokens=tokens, field_matches=matches)


class DocumentExtractor:
    """
    Service for turning PDF bytes into pages of positioned tokens.

    Attributes:
        definitions: Special fields located on every page
    """

    def __init__(self, definitions: Sequence[SpecialFieldDefinition]):
        self.definitions = list(definitions)

    def extract(self, data: bytes, source: str = "document") -> List[Page]:
        """
        Extract pages from a PDF.

        Args:
            data: Raw PDF bytes
            source: Name used in log entries and error messages

        Returns:
            Pages in document order

        Raises:
            ExtractError: If the bytes are empty, corrupt, or not a PDF
        """
        if not data:
            raise ExtractError(f"Empty document: {source}")

        with _mupdf_lock:
            raw_pages = self._read_pages(data, source)

        pages = [
            build_page(index + 1, tokens, self.definitions)
            for index, tokens in enumerate(raw_pages)
        ]

        logger.debug(
            "document_extracted",
            source=source,
            pages=len(pages),
            tokens=sum(len(p.tokens) for p in pages),
            special_fields=sum(len(p.field_matches) for p in pages)
        )
        return pages

    def _read_pages(self, data: bytes, source: str) -> List[List[Token]]:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise ExtractError(f"Invalid PDF {source}: {e}") from e

        try:
            if doc.page_count == 0:
                raise ExtractError(f"Document has no pages: {source}")
            return [self._page_tokens(page) for page in doc]
        except ExtractError:
            raise
        except Exception as e:
            raise ExtractError(f"Failed to extract text from {source}: {e}") from e
        finally:
            doc.close()

    def _page_tokens(self, page: fitz.Page) -> List[Token]:
        tokens = []
        text_dict = page.get_text("dict")
        for block in text_dict.get("blocks", []):
            # Image blocks have type 1
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    x0, y0, x1, y1 = span["bbox"]
                    tokens.append(Token(
                        text=span.get("text", ""),
                        x=round(x0, 2),
                        y=round(span["origin"][1], 2),
                        width=round(x1 - x0, 2),
                        height=round(y1 - y0, 2),
                    ))
        return tokens
