"""Tests for turning receipt items into itemized expenses."""

from decimal import Decimal

import pytest

from trip_split.exceptions import ImbalanceError, ValidationError
from trip_split.importer import apply_items_to_expense, commit_draft
from trip_split.ledger import compute_trip_balances, new_trip
from trip_split.models import ReceiptLineItem


@pytest.fixture
def trip():
    return new_trip(3)


def make_item(line: int, name: str, amount: str, assigned_to: str | None = None):
    return ReceiptLineItem(
        id=f"line-{line}",
        name=name,
        amount=Decimal(amount),
        assigned_to=assigned_to,
        line_number=line,
    )


class TestApplyItemsToExpense:
    """Draft construction."""

    def test_groups_items_by_assignee(self, trip):
        p1, p2, p3 = (p.id for p in trip.participants)
        items = [
            make_item(1, "Burger", "9.50", p2),
            make_item(2, "Fries", "3.25", p1),
            make_item(3, "Shake", "4.75", p2),
        ]

        draft = apply_items_to_expense(items, trip.participants, "Diner", p3)

        assert draft.description == "Diner"
        assert draft.paid_by == p3
        assert draft.amount == Decimal("17.50")
        assert draft.item_shares == {p1: Decimal("3.25"), p2: Decimal("14.25")}
        assert list(draft.item_shares) == [p1, p2]
        assert draft.is_fully_assigned

    def test_unassigned_items_are_reported(self, trip):
        p1 = trip.participants[0].id
        items = [make_item(1, "Burger", "9.50", p1), make_item(2, "Fries", "3.25")]

        draft = apply_items_to_expense(items, trip.participants)

        assert draft.amount == Decimal("12.75")
        assert draft.unassigned_total == Decimal("3.25")
        assert draft.unassigned_items == ["Fries"]
        assert not draft.is_fully_assigned

    def test_off_roster_assignee(self, trip):
        items = [make_item(1, "Burger", "9.50", "ghost")]

        with pytest.raises(ValidationError) as exc_info:
            apply_items_to_expense(items, trip.participants)

        assert exc_info.value.field == "assigned_to"

    def test_no_items(self, trip):
        draft = apply_items_to_expense([], trip.participants)

        assert draft.amount == Decimal("0")
        assert draft.item_shares == {}


class TestCommitDraft:
    """Committing drafts to the ledger."""

    def test_commit_adds_itemized_expense(self, trip):
        p1, p2, p3 = (p.id for p in trip.participants)
        items = [make_item(1, "Burger", "9.50", p1), make_item(2, "Fries", "3.50", p2)]
        draft = apply_items_to_expense(items, trip.participants, "Diner", p3)

        updated = commit_draft(trip, draft)

        expense = updated.expenses[0]
        assert expense.kind == "itemized"
        assert expense.amount == Decimal("13.00")

        balances = compute_trip_balances(updated)
        assert balances == {
            p1: Decimal("-9.50"),
            p2: Decimal("-3.50"),
            p3: Decimal("13.00"),
        }

    def test_commit_with_unassigned_items_rejected(self, trip):
        p1 = trip.participants[0].id
        items = [make_item(1, "Burger", "9.50", p1), make_item(2, "Fries", "3.25")]
        draft = apply_items_to_expense(items, trip.participants, "Diner", p1)

        with pytest.raises(ImbalanceError):
            commit_draft(trip, draft)

    def test_commit_without_payer_rejected(self, trip):
        p1 = trip.participants[0].id
        draft = apply_items_to_expense(
            [make_item(1, "Burger", "9.50", p1)], trip.participants, "Diner"
        )

        with pytest.raises(ValidationError) as exc_info:
            commit_draft(trip, draft)

        assert exc_info.value.field == "paid_by"
