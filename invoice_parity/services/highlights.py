"""
Positional difference highlighting.

Computes the boxes a side-by-side viewer draws over both documents:
tokens removed from the reference, tokens added to the migrated document,
and tokens modified in place.
"""

from typing import Dict, List, Sequence, Tuple

from invoice_parity.models.comparison import DifferenceReport, HighlightBox, HighlightKind, PageHighlights
from invoice_parity.models.document import FieldMatch, Page, Token

DEFAULT_BOX_WIDTH = 50.0
DEFAULT_BOX_HEIGHT = 12.0
MODIFIED_DISTANCE = 5.0

_EMPTY_PAGE = Page(number=1)


def _position_key(token: Token) -> Tuple[str, str, str]:
    return f"{token.x:.2f}", f"{token.y:.2f}", token.text


def _box(token: Token, kind: HighlightKind) -> HighlightBox:
    return HighlightBox(
        x=token.x,
        y=token.y,
        width=token.width or DEFAULT_BOX_WIDTH,
        height=token.height or DEFAULT_BOX_HEIGHT,
        kind=kind,
    )


def _page_differences(old_page: Page, new_page: Page) -> Tuple[List[HighlightBox], List[HighlightBox], int]:
    old_boxes: List[HighlightBox] = []
    new_boxes: List[HighlightBox] = []
    count = 0

    old_keys = {_position_key(t) for t in old_page.tokens}
    new_keys = {_position_key(t) for t in new_page.tokens}

    for token in old_page.tokens:
        if _position_key(token) not in new_keys:
            old_boxes.append(_box(token, HighlightKind.REMOVED))
            count += 1

    for token in new_page.tokens:
        if _position_key(token) not in old_keys:
            new_boxes.append(_box(token, HighlightKind.ADDED))
            count += 1

    for old_token in old_page.tokens:
        new_token = next(
            (
                t for t in new_page.tokens
                if abs(t.x - old_token.x) < MODIFIED_DISTANCE and abs(t.y - old_token.y) < MODIFIED_DISTANCE
            ),
            None
        )
        if new_token is not None and new_token.text != old_token.text:
            old_boxes.append(_box(old_token, HighlightKind.MODIFIED))
            new_boxes.append(_box(new_token, HighlightKind.MODIFIED))
            count += 1

    new_matches: Dict[str, FieldMatch] = {m.label: m for m in new_page.field_matches}
    old_labels = {m.label for m in old_page.field_matches}

    for old_match in old_page.field_matches:
        new_match = new_page.find_match(old_match.label)
        if new_match is None:
            old_boxes.extend(_box(t, HighlightKind.REMOVED) for t in old_match.tokens)
            count += 1
        elif old_match.text != new_match.text:
            old_boxes.extend(_box(t, HighlightKind.MODIFIED) for t in old_match.tokens)
            new_boxes.extend(_box(t, HighlightKind.MODIFIED) for t in new_match.tokens)
            count += 1

    for label, new_match in new_matches.items():
        if label not in old_labels:
            new_boxes.extend(_box(t, HighlightKind.ADDED) for t in new_match.tokens)
            count += 1

    return old_boxes, new_boxes, count


def find_differences(old_pages: Sequence[Page], new_pages: Sequence[Page]) -> DifferenceReport:
    """
    Locate positional differences between two documents.

    A page missing on one side is treated as empty, so all its tokens show
    up as removed or added.

    Args:
        old_pages: Pages of the reference document
        new_pages: Pages of the migrated document

    Returns:
        DifferenceReport with one PageHighlights per page index
    """
    report = DifferenceReport()
    for index in range(max(len(old_pages), len(new_pages))):
        old_page = old_pages[index] if index < len(old_pages) else _EMPTY_PAGE
        new_page = new_pages[index] if index < len(new_pages) else _EMPTY_PAGE

        old_boxes, new_boxes, count = _page_differences(old_page, new_page)
        highlights = PageHighlights(page_number=index + 1, old_boxes=old_boxes, new_boxes=new_boxes)
        report.pages.append(highlights)
        report.total_differences += count
        if highlights.has_differences:
            report.pages_with_differences.append(index + 1)

    return report
