"""
Tests for document comparison.
"""

import pytest

from invoice_parity.models.comparison import OverallResult, VerdictResult
from invoice_parity.models.rules import MustDiffer, SpecialFieldDefinition
from invoice_parity.services.comparator import (
    PAGE_STRUCTURE_GROUP,
    REMAINING_LINES_GROUP,
    Comparator,
    Comparison,
    normalize_line,
)
from invoice_parity.services.field_rules import NOT_AVAILABLE, FieldRuleEngine

from conftest import page_of, tok

TOTAL = SpecialFieldDefinition(label="Door jou te betalen", policy=MustDiffer(index=2), group="Must differ")


@pytest.fixture
def comparator(settings):
    return Comparator(FieldRuleEngine([TOTAL]), settings)


def invoice_page(number, amount="€ 120,50", period="Periode september 2024"):
    return page_of(number, [
        tok("Factuurnummer", 50, 100), tok("2024-001", 200, 100),
        tok(period, 50, 130),
        tok("Door jou te betalen", 50, 300), tok("incl. btw", 200, 300), tok(amount, 400, 300),
    ], [TOTAL])


def test_identical_documents_pass(comparator):
    """Identical lines produce no verdicts at all."""
    pages = [page_of(1, [tok("Factuurnummer", 50, 100), tok("2024-001", 200, 100)])]

    comparison = comparator.compare(pages, pages)

    assert comparison.overall_result == OverallResult.PASS
    assert comparison.verdicts == []


def test_changed_total_with_matching_lines_passes(comparator):
    comparison = comparator.compare([invoice_page(1)], [invoice_page(1, amount="€ 98,00")])

    assert comparison.overall_result == OverallResult.PASS
    assert [v.key for v in comparison.verdicts] == ["Door jou te betalen (Page 1)"]


def test_special_field_lines_are_not_diffed_again(comparator):
    """The total line differs but is only reported by its field verdict."""
    comparison = comparator.compare([invoice_page(1)], [invoice_page(1, amount="€ 98,00")])

    assert not any(v.group == REMAINING_LINES_GROUP for v in comparison.verdicts)


def test_page_count_mismatch_fails_without_raising(comparator):
    old_pages = [invoice_page(1), invoice_page(2), invoice_page(3)]
    new_pages = [invoice_page(1, amount="€ 1,00"), invoice_page(2, amount="€ 2,00")]

    comparison = comparator.compare(old_pages, new_pages)

    assert comparison.overall_result == OverallResult.FAIL
    structure = {v.key: v for v in comparison.verdicts if v.group == PAGE_STRUCTURE_GROUP}
    assert structure["Page Count"].old_value == "3 pages"
    assert structure["Page Count"].new_value == "2 pages"
    assert structure["Page 3"].result == VerdictResult.FAIL
    assert structure["Page 3"].new_value == "Page does not exist (Removed)"


def test_added_page_is_reported(comparator):
    comparison = comparator.compare([invoice_page(1)], [invoice_page(1, amount="€ 1,00"), invoice_page(2)])

    page_two = next(v for v in comparison.verdicts if v.key == "Page 2")
    assert page_two.old_value == "Page does not exist (Added)"


def test_changed_line_fails(comparator):
    old_pages = [invoice_page(1)]
    new_pages = [invoice_page(1, amount="€ 1,00", period="Periode oktober 2024")]

    comparison = comparator.compare(old_pages, new_pages)

    assert comparison.overall_result == OverallResult.FAIL
    changed = next(v for v in comparison.verdicts if v.group == REMAINING_LINES_GROUP)
    assert changed.key == "Line 2 (Page 1)"
    assert changed.old_value == "Periode september 2024"
    assert changed.new_value == "Periode oktober 2024"


def test_missing_line_reports_not_available(comparator):
    old_page = page_of(1, [tok("Factuurnummer", 50, 100), tok("Klantnummer 12345", 50, 130)])
    new_page = page_of(1, [tok("Factuurnummer", 50, 100)])

    comparison = comparator.compare([old_page], [new_page])

    verdict = comparison.verdicts[0]
    assert verdict.key == "Line 2 (Page 1)"
    assert verdict.new_value == NOT_AVAILABLE


def test_added_line_is_reported_with_position(comparator):
    old_page = page_of(1, [tok("Factuurnummer", 50, 100)])
    new_page = page_of(1, [tok("Factuurnummer", 50, 100), tok("Nieuwe regel", 50, 412.5)])

    comparison = comparator.compare([old_page], [new_page])

    verdict = comparison.verdicts[0]
    assert verdict.key == "New Line 1 (Page 1) on Y:412.50"
    assert verdict.old_value == NOT_AVAILABLE
    assert verdict.new_value == "Nieuwe regel"


def test_small_vertical_shift_still_matches(comparator):
    old_page = page_of(1, [tok("Klantnummer 12345", 50, 130)])
    new_page = page_of(1, [tok("Klantnummer 12345", 50, 130.6)])

    assert comparator.compare([old_page], [new_page]).verdicts == []


def test_currency_spacing_is_ignored():
    assert normalize_line("Totaal €  12,34") == normalize_line("Totaal 12,34")


def test_structural_mismatch_alone_fails():
    assert Comparison(structural_mismatch=True).overall_result == OverallResult.FAIL
    assert Comparison().overall_result == OverallResult.PASS
