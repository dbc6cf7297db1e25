"""
Tests for positional difference highlighting.
"""

from invoice_parity.models.comparison import HighlightKind
from invoice_parity.models.document import Token
from invoice_parity.models.rules import MustDiffer, SpecialFieldDefinition
from invoice_parity.services.highlights import DEFAULT_BOX_HEIGHT, DEFAULT_BOX_WIDTH, find_differences

from conftest import page_of, tok

TOTAL = SpecialFieldDefinition(label="Door jou te betalen", policy=MustDiffer(index=1), group="Must differ")


def test_identical_pages_have_no_differences():
    page = page_of(1, [tok("Factuurnummer", 50, 100)])

    report = find_differences([page], [page])

    assert report.total_differences == 0
    assert report.pages_with_differences == []
    assert not report.pages[0].has_differences


def test_modified_token_in_place():
    old_page = page_of(1, [tok("Periode september", 50, 130)])
    new_page = page_of(1, [tok("Periode oktober", 51, 131)])

    report = find_differences([old_page], [new_page])

    kinds = {box.kind for box in report.pages[0].old_boxes}
    assert HighlightKind.REMOVED in kinds
    assert HighlightKind.MODIFIED in kinds
    assert {box.kind for box in report.pages[0].new_boxes} == {HighlightKind.ADDED, HighlightKind.MODIFIED}
    assert report.pages_with_differences == [1]


def test_missing_page_shows_every_token_as_added():
    page_one = page_of(1, [tok("Factuurnummer", 50, 100)])
    page_two = page_of(2, [tok("Bijlage", 50, 100), tok("Verbruik", 50, 200)])

    report = find_differences([page_one], [page_one, page_two])

    assert len(report.pages) == 2
    assert [b.kind for b in report.pages[1].new_boxes] == [HighlightKind.ADDED, HighlightKind.ADDED]
    assert report.pages[1].old_boxes == []
    assert report.pages_with_differences == [2]


def test_boxes_fall_back_to_default_size():
    old_page = page_of(1, [Token(text="Oud", x=50, y=100)])
    new_page = page_of(1, [])

    box = find_differences([old_page], [new_page]).pages[0].old_boxes[0]

    assert (box.width, box.height) == (DEFAULT_BOX_WIDTH, DEFAULT_BOX_HEIGHT)


def test_changed_special_field_is_highlighted_on_both_sides():
    old_page = page_of(1, [tok("Door jou te betalen", 50, 300), tok("120,50", 400, 300)], [TOTAL])
    new_page = page_of(1, [tok("Door jou te betalen", 50, 300), tok("98,00", 400, 300)], [TOTAL])

    page = find_differences([old_page], [new_page]).pages[0]

    modified_old = [b for b in page.old_boxes if b.kind == HighlightKind.MODIFIED]
    modified_new = [b for b in page.new_boxes if b.kind == HighlightKind.MODIFIED]
    assert {b.x for b in modified_old} == {50, 400}
    assert {b.x for b in modified_new} == {50, 400}
