"""Fold assigned receipt items into an itemized expense."""

import logging
from collections.abc import Sequence
from decimal import Decimal

from .exceptions import ValidationError
from .ledger import add_expense
from .models import ExpenseDraft, Participant, ReceiptLineItem, Trip

logger = logging.getLogger(__name__)


def apply_items_to_expense(
    items: Sequence[ReceiptLineItem],
    participants: Sequence[Participant],
    description: str = "Receipt",
    paid_by: str | None = None,
) -> ExpenseDraft:
    """
    Build a proposed itemized expense from receipt items.

    The amount is the sum of every item. Shares hold each assignee's items,
    in roster order. Unassigned items count towards the amount but no share,
    so such a draft will be rejected when committed.

    Args:
        items: Parsed (and possibly re-assigned) receipt items
        participants: Trip roster
        description: Expense description
        paid_by: Participant id of the payer, if already known

    Returns:
        Draft expense for the caller to confirm

    Raises:
        ValidationError: If an item is assigned to someone not on the roster
    """
    roster_ids = [p.id for p in participants]

    buckets: dict[str, Decimal] = {}
    total = Decimal("0")
    unassigned_total = Decimal("0")
    unassigned_items: list[str] = []

    for item in items:
        total += item.amount

        if item.assigned_to is None:
            unassigned_total += item.amount
            unassigned_items.append(item.name)
            continue

        if item.assigned_to not in roster_ids:
            raise ValidationError(
                "assigned_to",
                f"item '{item.name}' is assigned to '{item.assigned_to}', "
                f"who is not on the trip roster",
            )
        current = buckets.get(item.assigned_to, Decimal("0"))
        buckets[item.assigned_to] = current + item.amount

    if unassigned_items:
        logger.warning(
            f"{len(unassigned_items)} receipt items unassigned "
            f"(total {unassigned_total})"
        )

    return ExpenseDraft(
        description=description,
        paid_by=paid_by,
        amount=total,
        item_shares={pid: buckets[pid] for pid in roster_ids if pid in buckets},
        unassigned_total=unassigned_total,
        unassigned_items=unassigned_items,
    )


def commit_draft(trip: Trip, draft: ExpenseDraft) -> Trip:
    """
    Add a confirmed draft to the trip as an itemized expense.

    Raises:
        ValidationError: If the draft has no payer or no amount
        ImbalanceError: If unassigned items leave the shares short of the total
    """
    return add_expense(
        trip,
        description=draft.description,
        amount=draft.amount,
        paid_by=draft.paid_by,
        kind="itemized",
        item_shares=draft.item_shares,
    )
