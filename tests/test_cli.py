"""Tests for the trip-split command line."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from trip_split.cli import app, format_money
from trip_split.exceptions import OcrError
from trip_split.service import TripService

runner = CliRunner()

RECEIPT_TEXT = """\
Item Qty Price
Burger Alice 1 12.00
Salad Bob 1 8.00
Total 20.00
"""


@pytest.fixture
def trip_file(tmp_path):
    path = tmp_path / "trip.json"
    path.write_text(
        json.dumps(
            {
                "participants": ["Alice", "Bob", "Cara"],
                "expenses": [
                    {"description": "Groceries", "amount": "90", "paid_by": "Alice"}
                ],
            }
        )
    )
    return path


@pytest.fixture
def receipt_file(tmp_path):
    path = tmp_path / "receipt.txt"
    path.write_text(RECEIPT_TEXT)
    return path


class TestFormatMoney:
    """Accounting-style amounts."""

    def test_positive(self):
        assert format_money(85.02, use_color=False) == " $85.02 "

    def test_negative(self):
        assert format_money(-85.02, use_color=False) == "($85.02)"

    def test_thousands_and_symbol(self):
        assert format_money(1234.5, symbol="€", use_color=False) == " €1,234.50 "


class TestSettleCommand:
    """trip-split settle."""

    def test_settle(self, trip_file):
        result = runner.invoke(app, ["settle", str(trip_file)])

        assert result.exit_code == 0
        assert "Bob pays Alice" in result.output
        assert "Cara pays Alice" in result.output

    def test_settle_missing_file(self, tmp_path):
        result = runner.invoke(app, ["settle", str(tmp_path / "missing.json")])

        assert result.exit_code == 1
        assert "Error" in result.output

    def test_settle_imbalanced_trip(self, tmp_path):
        path = tmp_path / "trip.json"
        path.write_text(
            json.dumps(
                {
                    "participants": ["Alice", "Bob"],
                    "expenses": [
                        {
                            "description": "Lunch",
                            "amount": "20",
                            "paid_by": "Alice",
                            "kind": "itemized",
                            "item_shares": {"Alice": "10", "Bob": "5"},
                        }
                    ],
                }
            )
        )

        result = runner.invoke(app, ["settle", str(path)])

        assert result.exit_code == 1
        assert "Unbalanced expense" in result.output


class TestParseCommand:
    """trip-split parse."""

    def test_parse_lists_items(self, receipt_file):
        result = runner.invoke(app, ["parse", str(receipt_file)])

        assert result.exit_code == 0
        assert "Found 2 items" in result.output
        assert "Burger Alice" in result.output

    def test_parse_from_stdin(self):
        result = runner.invoke(app, ["parse", "-"], input=RECEIPT_TEXT)

        assert result.exit_code == 0
        assert "Found 2 items" in result.output

    def test_parse_nothing_found(self, tmp_path):
        path = tmp_path / "receipt.txt"
        path.write_text("Thank you for visiting\n")

        result = runner.invoke(app, ["parse", str(path)])

        assert result.exit_code == 0
        assert "No line items detected" in result.output

    def test_parse_and_commit(self, receipt_file, tmp_path):
        trip_path = tmp_path / "trip.json"
        trip_path.write_text(json.dumps({"participants": ["Alice", "Bob"]}))

        result = runner.invoke(
            app,
            [
                "parse",
                str(receipt_file),
                "--trip",
                str(trip_path),
                "--paid-by",
                "Alice",
                "--description",
                "Diner",
                "--yes",
            ],
        )

        assert result.exit_code == 0
        assert "Added 'Diner'" in result.output
        assert "Bob pays Alice" in result.output

    def test_parse_confirmation_declined(self, receipt_file, tmp_path):
        trip_path = tmp_path / "trip.json"
        trip_path.write_text(json.dumps({"participants": ["Alice", "Bob"]}))

        result = runner.invoke(
            app,
            ["parse", str(receipt_file), "-t", str(trip_path), "-p", "Alice"],
            input="n\n",
        )

        assert result.exit_code == 0
        assert "Cancelled" in result.output

    def test_parse_unassigned_items_rejected(self, receipt_file, tmp_path):
        trip_path = tmp_path / "trip.json"
        trip_path.write_text(json.dumps({"participants": ["Alice", "Dan"]}))

        result = runner.invoke(
            app,
            ["parse", str(receipt_file), "-t", str(trip_path), "-p", "Dan", "-y"],
        )

        assert result.exit_code == 1
        assert "Unbalanced expense" in result.output

    def test_parse_unknown_payer(self, receipt_file, tmp_path):
        trip_path = tmp_path / "trip.json"
        trip_path.write_text(json.dumps({"participants": ["Alice", "Bob"]}))

        result = runner.invoke(
            app,
            ["parse", str(receipt_file), "-t", str(trip_path), "-p", "Zed", "-y"],
        )

        assert result.exit_code == 1
        assert "No participant matches 'Zed'" in result.output


class TestScanCommand:
    """trip-split scan."""

    def test_scan_failure_suggests_parse(self, tmp_path):
        image = tmp_path / "receipt.jpg"
        image.write_bytes(b"image")

        with patch.object(
            TripService,
            "scan_receipt",
            new=AsyncMock(side_effect=OcrError("Text recognition timed out")),
        ):
            result = runner.invoke(app, ["scan", str(image)])

        assert result.exit_code == 1
        assert "Text recognition timed out" in result.output
        assert "trip-split parse" in result.output

    def test_scan_lists_items(self, tmp_path):
        image = tmp_path / "receipt.jpg"
        image.write_bytes(b"image")

        with patch.object(
            TripService,
            "recognize_receipt",
            new=AsyncMock(return_value=RECEIPT_TEXT),
        ):
            result = runner.invoke(app, ["scan", str(image)])

        assert result.exit_code == 0
        assert "Found 2 items" in result.output
