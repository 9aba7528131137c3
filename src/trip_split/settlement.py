"""Settlement engine: turns net balances into directed payments."""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .models import Settlement

logger = logging.getLogger(__name__)

# Balances and payments at or below one cent are treated as settled
DUST_THRESHOLD = Decimal("0.01")


def compute_settlements(balances: Mapping[str, Decimal]) -> list[Settlement]:
    """
    Compute the payments that bring every balance to zero.

    Steps:
    1. Split participants into creditors (> 0.01) and debtors (< -0.01),
       keeping the mapping's order
    2. For each creditor, walk the full debtor list and take
       min(remaining credit, debtor's outstanding debt) from each debtor
       who still owes more than a cent
    3. Debtor balances are tracked in a working copy shared across
       creditors, so one debtor can pay several creditors in turn

    Payments of a cent or less are not emitted. This greedy order is
    deterministic but does not guarantee the fewest possible payments.

    Args:
        balances: Participant id -> net balance (positive = owed money)

    Returns:
        Payments in the order they were produced
    """
    creditors = [(pid, bal) for pid, bal in balances.items() if bal > DUST_THRESHOLD]
    debtors = [pid for pid, bal in balances.items() if bal < -DUST_THRESHOLD]

    working = dict(balances)
    settlements: list[Settlement] = []

    for creditor_id, credit in creditors:
        remaining = credit

        for debtor_id in debtors:
            if remaining > DUST_THRESHOLD and working[debtor_id] < -DUST_THRESHOLD:
                amount = min(remaining, abs(working[debtor_id]))
                if amount > DUST_THRESHOLD:
                    settlements.append(
                        Settlement(from_id=debtor_id, to_id=creditor_id, amount=amount)
                    )
                    remaining -= amount
                    working[debtor_id] += amount

    unsettled = unsettled_participants(balances, settlements)
    if unsettled:
        logger.warning(
            f"Balances do not net to zero; still unsettled after "
            f"{len(settlements)} payments: {', '.join(unsettled)}"
        )
    else:
        logger.info(f"Computed {len(settlements)} settlement payments")

    return settlements


def apply_settlements(
    balances: Mapping[str, Decimal], settlements: Iterable[Settlement]
) -> dict[str, Decimal]:
    """Balances after every payment is made (debtor up, creditor down)."""
    adjusted = dict(balances)
    for payment in settlements:
        adjusted.setdefault(payment.from_id, Decimal("0"))
        adjusted.setdefault(payment.to_id, Decimal("0"))
        adjusted[payment.from_id] += payment.amount
        adjusted[payment.to_id] -= payment.amount
    return adjusted


def unsettled_participants(
    balances: Mapping[str, Decimal], settlements: Iterable[Settlement]
) -> list[str]:
    """Ids still more than a cent away from zero after the payments."""
    adjusted = apply_settlements(balances, settlements)
    return [pid for pid, bal in adjusted.items() if abs(bal) > DUST_THRESHOLD]
