"""Tests for the settlement engine."""

from decimal import Decimal

from trip_split.settlement import (
    apply_settlements,
    compute_settlements,
    unsettled_participants,
)


def as_tuples(settlements):
    return [(s.from_id, s.to_id, s.amount) for s in settlements]


class TestComputeSettlements:
    """Nested creditor/debtor matching."""

    def test_empty_balances(self):
        assert compute_settlements({}) == []

    def test_all_settled(self):
        balances = {"a": Decimal("0"), "b": Decimal("0")}
        assert compute_settlements(balances) == []

    def test_one_creditor_two_debtors(self):
        balances = {"a": Decimal("60"), "b": Decimal("-30"), "c": Decimal("-30")}

        assert as_tuples(compute_settlements(balances)) == [
            ("b", "a", Decimal("30")),
            ("c", "a", Decimal("30")),
        ]

    def test_debtor_pays_several_creditors(self):
        balances = {
            "a": Decimal("50"),
            "b": Decimal("10"),
            "c": Decimal("-30"),
            "d": Decimal("-30"),
        }

        assert as_tuples(compute_settlements(balances)) == [
            ("c", "a", Decimal("30")),
            ("d", "a", Decimal("20")),
            ("d", "b", Decimal("10")),
        ]

    def test_follows_mapping_order(self):
        balances = {"c": Decimal("-30"), "b": Decimal("-30"), "a": Decimal("60")}

        assert as_tuples(compute_settlements(balances)) == [
            ("c", "a", Decimal("30")),
            ("b", "a", Decimal("30")),
        ]

    def test_dust_is_ignored(self):
        balances = {"a": Decimal("0.01"), "b": Decimal("-0.01")}
        assert compute_settlements(balances) == []

    def test_payment_of_exactly_one_cent_not_emitted(self):
        balances = {
            "a": Decimal("10.01"),
            "b": Decimal("-10"),
            "c": Decimal("-0.02"),
        }

        # After b pays 10, a's remaining credit is 0.01: no further payment
        assert as_tuples(compute_settlements(balances)) == [
            ("b", "a", Decimal("10")),
        ]

    def test_repeating_fraction_balances(self):
        third = Decimal(100) / Decimal(3)
        balances = {"a": third * 2, "b": -third, "c": -third}

        settlements = compute_settlements(balances)

        assert len(settlements) == 2
        assert unsettled_participants(balances, settlements) == []

    def test_all_payments_above_threshold(self):
        balances = {
            "a": Decimal("25.50"),
            "b": Decimal("4.50"),
            "c": Decimal("-12.25"),
            "d": Decimal("-17.75"),
        }

        settlements = compute_settlements(balances)

        assert all(s.amount > Decimal("0.01") for s in settlements)
        assert unsettled_participants(balances, settlements) == []


class TestApplySettlements:
    """Applying payments back onto balances."""

    def test_zeroes_balances(self):
        balances = {"a": Decimal("60"), "b": Decimal("-30"), "c": Decimal("-30")}
        settled = apply_settlements(balances, compute_settlements(balances))

        assert all(value == 0 for value in settled.values())

    def test_does_not_mutate_input(self):
        balances = {"a": Decimal("10"), "b": Decimal("-10")}
        apply_settlements(balances, compute_settlements(balances))

        assert balances == {"a": Decimal("10"), "b": Decimal("-10")}

    def test_non_zero_sum_leaves_residual(self):
        balances = {"a": Decimal("10"), "b": Decimal("-5")}
        settlements = compute_settlements(balances)

        assert as_tuples(settlements) == [("b", "a", Decimal("5"))]
        assert unsettled_participants(balances, settlements) == ["a"]
