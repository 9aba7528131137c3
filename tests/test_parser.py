"""Tests for receipt text parsing."""

from decimal import Decimal

import pytest

from trip_split.models import Participant
from trip_split.parser import (
    extract_item,
    extract_line_items,
    extract_name,
    is_excluded,
    is_section_header,
    parse_number,
    parse_receipt_text,
    pick_amount,
    split_lines,
)

SECTION_RECEIPT = """\
CAFE ROMA
12 Harbour Street

Item            Qty   Price
Burger           2     9.50
Fries            1     3.25
Subtotal              12.75
Tax                    1.02
Total                 13.77
Espresso         1     2.80
Thank you!
"""

PLAIN_RECEIPT = """\
Pizza Margherita 1 12.00
Soda 2 4.50
Subtotal 16.50
Total 16.50
"""


@pytest.fixture
def roster():
    return [Participant(name="Sam"), Participant(name="Alex")]


class TestExtractItem:
    """Single-line extraction."""

    def test_multiplier_is_stripped(self):
        assert extract_item("Burger 2x 9.50") == ("Burger", Decimal("9.50"))

    def test_leading_quantity(self):
        assert extract_item("2x Burger 9.50") == ("Burger", Decimal("9.50"))

    def test_last_valid_number_is_amount(self):
        assert extract_item("Pasta 1 14.00") == ("Pasta", Decimal("14.00"))

    def test_needs_two_numbers(self):
        assert extract_item("Burger 9.50") is None

    def test_percent_rejected(self):
        assert extract_item("Water 5% 2.00") is None

    def test_date_rejected(self):
        assert extract_item("Visit 12/05/2024 15.00") is None

    def test_time_rejected(self):
        assert extract_item("Coffee 12:30 4.00") is None

    def test_reference_rejected(self):
        assert extract_item("Order #: 1234 56.00") is None

    def test_phone_number_rejected(self):
        assert extract_item("Call us 555-123-4567 2") is None

    def test_amount_must_exceed_minimum(self):
        assert extract_item("Mints 0.5 0.25") is None

    def test_name_needs_letters(self):
        assert extract_item("-- 1 9.50") is None

    def test_thousands_separator(self):
        assert extract_item("Hotel 1 1,250.00") == ("Hotel", Decimal("1250.00"))

    def test_decimal_comma(self):
        assert extract_item("Brezel 2 3,50") == ("Brezel", Decimal("3.50"))


class TestExtractName:
    """Name cleanup."""

    def test_bullets_and_currency(self):
        assert extract_name("- Burger $ 9.50") == "Burger"

    def test_quantity_label(self):
        assert extract_name("Fries qty 2 3.25") == "Fries"

    def test_keeps_inner_words(self):
        assert extract_name("Pizza Margherita 1 12.00") == "Pizza Margherita"


class TestNumbers:
    """Numeric token parsing."""

    @pytest.mark.parametrize(
        "token, expected",
        [
            ("9.50", Decimal("9.50")),
            ("1,234.56", Decimal("1234.56")),
            ("9,50", Decimal("9.50")),
            ("1,234", Decimal("1234")),
            ("12", Decimal("12")),
        ],
    )
    def test_parse_number(self, token, expected):
        assert parse_number(token) == expected

    def test_multiple_dots_is_not_a_number(self):
        assert parse_number("12.05.2024") is None

    def test_pick_amount_skips_out_of_range_tokens(self):
        assert pick_amount(["1", "9876543"]) == Decimal("1")
        assert pick_amount(["2", "9.50", "0.25"]) == Decimal("9.50")
        assert pick_amount(["0.25", "250000"]) is None


class TestLineClassification:
    """Headers and excluded lines."""

    @pytest.mark.parametrize(
        "line",
        ["Item Qty Price", "DESCRIPTION   AMOUNT", "Particulars Rate Amt"],
    )
    def test_section_headers(self, line):
        assert is_section_header(line)

    @pytest.mark.parametrize("line", ["Burger 2 9.50", "Item 1 2 3", "CAFE ROMA"])
    def test_not_section_headers(self, line):
        assert not is_section_header(line)

    @pytest.mark.parametrize(
        "line",
        [
            "Subtotal 45.00",
            "Sub-Total 45.00",
            "TOTAL 13.77",
            "Tax 8% 1.02",
            "Tip 5.00",
            "VISA ****1234 20.00",
            "Cash tendered 50.00",
            "Change 5.00",
        ],
    )
    def test_excluded(self, line):
        assert is_excluded(line)

    def test_item_not_excluded(self):
        assert not is_excluded("Burger 2x 9.50")

    def test_split_lines(self):
        assert split_lines("  a \n\n b\n   \n") == ["a", "b"]


class TestParseReceiptText:
    """Full-text parsing with both passes."""

    def test_section_pass(self):
        items = parse_receipt_text(SECTION_RECEIPT)

        assert [(i.name, i.amount) for i in items] == [
            ("Burger", Decimal("9.50")),
            ("Fries", Decimal("3.25")),
        ]

    def test_section_ends_at_first_excluded_line(self):
        items = parse_receipt_text(SECTION_RECEIPT)
        assert "Espresso" not in [i.name for i in items]

    def test_line_ids_and_numbers(self):
        items = parse_receipt_text(SECTION_RECEIPT)

        assert items[0].id == "line-4"
        assert items[0].line_number == 4
        assert items[1].id == "line-5"

    def test_whole_document_fallback(self):
        items = parse_receipt_text(PLAIN_RECEIPT)

        assert [(i.name, i.amount) for i in items] == [
            ("Pizza Margherita", Decimal("12.00")),
            ("Soda", Decimal("4.50")),
        ]

    def test_subtotal_excluded_in_both_passes(self):
        lines = ["Item Qty Price", "Burger 2x 9.50", "Subtotal 1 45.00"]

        section = extract_line_items(lines, require_section=True)
        whole = extract_line_items(lines, require_section=False)

        assert [i.name for i in section] == ["Burger"]
        assert [i.name for i in whole] == ["Burger"]

    def test_excluded_line_before_items_does_not_close_section(self):
        text = "Item Qty Price\nService charge 1 2.00\nBurger 1 9.50\nTotal 9.50"
        items = parse_receipt_text(text)

        assert [i.name for i in items] == ["Burger"]

    def test_duplicates_removed_case_insensitively(self):
        text = "Burger 1 9.50\nburger 1 9.50\nFries 1 3.00"
        items = parse_receipt_text(text)

        assert [i.name for i in items] == ["Burger", "Fries"]

    def test_suggested_assignee(self, roster):
        items = parse_receipt_text("Burger @Sam 1 9.50\nFries 1 3.00", roster)

        assert items[0].assigned_to == roster[0].id
        assert items[1].assigned_to is None

    def test_nothing_found(self):
        assert parse_receipt_text("Thank you for visiting\nSee you soon") == []

    def test_empty_text(self):
        assert parse_receipt_text("   \n  ") == []
