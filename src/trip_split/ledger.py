"""Ledger operations: roster management, expense validation and net balances.

Every function takes the current state explicitly and returns a new value.
A ``Trip`` passed in is never mutated, so callers can keep the previous
state around (for undo, diffing, or concurrent sessions).
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Any

from .exceptions import (
    ExpenseNotFoundError,
    ImbalanceError,
    ParticipantNotFoundError,
    ValidationError,
)
from .models import Expense, Participant, Settlement, Trip, TripSummary
from .settlement import compute_settlements

logger = logging.getLogger(__name__)

# Itemized shares may differ from the expense amount by at most one cent
TOLERANCE = Decimal("0.01")

UPDATABLE_FIELDS = ("description", "amount", "paid_by", "kind", "item_shares")


# ============================================================================
# Roster
# ============================================================================


def new_trip(size: int = 0, prefix: str = "Person") -> Trip:
    """Create a trip with ``size`` default-named participants."""
    return set_trip_size(Trip(), size, prefix=prefix)


def set_trip_size(trip: Trip, size: int, prefix: str = "Person") -> Trip:
    """
    Grow or shrink the roster to ``size`` participants.

    New participants get default names ("Person 3"). Shrinking removes
    participants from the end of the roster and refuses to drop anyone an
    existing expense refers to.

    Raises:
        ValidationError: If size is negative or would drop a referenced participant
    """
    if size < 0:
        raise ValidationError("size", "must not be negative")

    participants = list(trip.participants)

    if size < len(participants):
        referenced = _referenced_ids(trip.expenses)
        blocked = [p.name for p in participants[size:] if p.id in referenced]
        if blocked:
            raise ValidationError(
                "size",
                f"cannot remove {', '.join(blocked)}: referenced by existing expenses",
            )
        participants = participants[:size]
    else:
        for position in range(len(participants) + 1, size + 1):
            participants.append(Participant(name=f"{prefix} {position}"))

    logger.info(f"Trip size set to {size}")
    return trip.model_copy(update={"participants": participants})


def add_participant(
    trip: Trip, name: str | None = None, prefix: str = "Person"
) -> Trip:
    """Append a participant, defaulting the name to the next "Person N"."""
    if name is None:
        name = f"{prefix} {len(trip.participants) + 1}"
    name = _clean_name(name)
    _warn_duplicate_name(trip.participants, name)

    participant = Participant(name=name)
    logger.info(f"Added participant '{name}' ({participant.id})")
    return trip.model_copy(update={"participants": [*trip.participants, participant]})


def rename_participant(trip: Trip, participant_id: str, name: str) -> Trip:
    """
    Change a participant's display name.

    Balances and item shares are keyed by participant id, so nothing else
    needs to change.
    """
    current = trip.get_participant(participant_id)
    if current is None:
        raise ParticipantNotFoundError(participant_id)

    name = _clean_name(name)
    others = [p for p in trip.participants if p.id != participant_id]
    _warn_duplicate_name(others, name)

    participants = [
        p.model_copy(update={"name": name}) if p.id == participant_id else p
        for p in trip.participants
    ]
    logger.info(f"Renamed participant '{current.name}' -> '{name}'")
    return trip.model_copy(update={"participants": participants})


def find_participant(participants: Sequence[Participant], key: str) -> Participant:
    """
    Resolve a participant by id, or by display name (case-insensitive).

    Raises:
        ParticipantNotFoundError: If nothing matches
    """
    for participant in participants:
        if participant.id == key:
            return participant

    wanted = key.strip().lower()
    for participant in participants:
        if participant.name.lower() == wanted:
            return participant

    raise ParticipantNotFoundError(key)


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("name", "must not be blank")
    return cleaned


def _warn_duplicate_name(participants: Iterable[Participant], name: str) -> None:
    if any(p.name.lower() == name.lower() for p in participants):
        logger.warning(f"Participant name '{name}' is already in use")


def _referenced_ids(expenses: Iterable[Expense]) -> set[str]:
    referenced = set()
    for expense in expenses:
        referenced.add(expense.paid_by)
        if expense.item_shares:
            referenced.update(expense.item_shares)
    return referenced


# ============================================================================
# Expenses
# ============================================================================


def to_amount(value: Any, field: str) -> Decimal:
    """
    Convert user input to a Decimal amount.

    Floats go through ``str`` so 9.5 becomes Decimal("9.5"), not its binary
    expansion.

    Raises:
        ValidationError: If the value is missing or not a finite number
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(field, "is required")

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValidationError(field, f"'{value}' is not a valid amount") from e

    if not amount.is_finite():
        raise ValidationError(field, f"'{value}' is not a valid amount")
    return amount


def build_expense(
    participants: Sequence[Participant],
    description: str | None,
    amount: Any,
    paid_by: str | None,
    kind: str = "regular",
    item_shares: Mapping[str, Any] | None = None,
    **fields: Any,
) -> Expense:
    """
    Validate expense fields against a roster and build the Expense.

    Zero shares are dropped and the remaining shares are ordered like the
    roster. Extra keyword ``fields`` (``id``, ``created_at``) are passed
    through to the model, which is how updates keep their identity.

    Raises:
        ValidationError: If a required field is missing or invalid
        ImbalanceError: If itemized shares don't sum to the amount within 0.01
    """
    if not description or not description.strip():
        raise ValidationError("description", "is required")

    total = to_amount(amount, "amount")
    if total <= 0:
        raise ValidationError("amount", "must be greater than zero")

    if not paid_by:
        raise ValidationError("paid_by", "is required")

    roster_ids = [p.id for p in participants]
    if paid_by not in roster_ids:
        raise ValidationError("paid_by", f"'{paid_by}' is not on the trip roster")

    if kind not in ("regular", "itemized"):
        raise ValidationError("kind", f"unknown expense kind '{kind}'")

    shares: dict[str, Decimal] | None = None
    if kind == "regular":
        if item_shares:
            raise ValidationError(
                "item_shares", "only itemized expenses can have item shares"
            )
    else:
        if item_shares is None:
            raise ValidationError("item_shares", "is required for itemized expenses")

        parsed: dict[str, Decimal] = {}
        for participant_id, value in item_shares.items():
            if participant_id not in roster_ids:
                raise ValidationError(
                    "item_shares", f"'{participant_id}' is not on the trip roster"
                )
            share = to_amount(value, "item_shares")
            if share < 0:
                raise ValidationError("item_shares", "shares must not be negative")
            if share > 0:
                parsed[participant_id] = share

        shares = {pid: parsed[pid] for pid in roster_ids if pid in parsed}
        shares_total = sum(shares.values(), Decimal("0"))
        if abs(shares_total - total) > TOLERANCE:
            raise ImbalanceError(expected_total=total, actual_total=shares_total)

    return Expense(
        description=description.strip(),
        amount=total,
        paid_by=paid_by,
        kind=kind,  # type: ignore[arg-type]
        item_shares=shares,
        **fields,
    )


def add_expense(
    trip: Trip,
    description: str | None,
    amount: Any,
    paid_by: str | None,
    kind: str = "regular",
    item_shares: Mapping[str, Any] | None = None,
) -> Trip:
    """
    Validate and append an expense. Nothing is added if validation fails.

    Raises:
        ValidationError: If a required field is missing or invalid
        ImbalanceError: If itemized shares don't sum to the amount within 0.01
    """
    expense = build_expense(
        trip.participants, description, amount, paid_by, kind, item_shares
    )
    logger.info(
        f"Added {expense.kind} expense '{expense.description}' "
        f"({expense.amount}) paid by {trip.participant_name(expense.paid_by)}"
    )
    return trip.model_copy(update={"expenses": [*trip.expenses, expense]})


def delete_expense(trip: Trip, expense_id: str) -> Trip:
    """Remove an expense by id."""
    if trip.get_expense(expense_id) is None:
        raise ExpenseNotFoundError(expense_id)

    logger.info(f"Deleted expense {expense_id}")
    return trip.model_copy(
        update={"expenses": [e for e in trip.expenses if e.id != expense_id]}
    )


def update_expense(trip: Trip, expense_id: str, patch: Mapping[str, Any]) -> Trip:
    """
    Apply a partial update to an expense and re-validate it.

    The expense keeps its id and its position in the list. Switching an
    expense to ``regular`` without supplying shares drops its old shares.

    Raises:
        ExpenseNotFoundError: If the id is unknown
        ValidationError: If the patch has unknown keys or invalid values
        ImbalanceError: If the patched itemized shares don't balance
    """
    existing = trip.get_expense(expense_id)
    if existing is None:
        raise ExpenseNotFoundError(expense_id)

    unknown = sorted(set(patch) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError(", ".join(unknown), "cannot be updated")

    values = {name: getattr(existing, name) for name in UPDATABLE_FIELDS}
    values.update(patch)
    if values["kind"] == "regular" and "item_shares" not in patch:
        values["item_shares"] = None

    updated = build_expense(
        trip.participants,
        **values,
        id=existing.id,
        created_at=existing.created_at,
    )
    logger.info(f"Updated expense {expense_id}: {', '.join(sorted(patch))}")
    return trip.model_copy(
        update={
            "expenses": [updated if e.id == expense_id else e for e in trip.expenses]
        }
    )


# ============================================================================
# Balances
# ============================================================================


def compute_balances(
    participants: Sequence[Participant], expenses: Iterable[Expense]
) -> dict[str, Decimal]:
    """
    Compute each participant's net balance from scratch.

    Positive = owed money, negative = owes money. Regular expenses are split
    across the whole roster; itemized expenses charge only the listed shares.
    The payer is credited with the full amount either way.

    Accumulation uses exact rationals, so the result does not depend on the
    order of ``expenses``.

    Returns:
        Mapping of participant id -> balance, in roster order

    Raises:
        ValidationError: If an expense refers to someone not on the roster
    """
    expenses = list(expenses)
    if expenses and not participants:
        raise ValidationError("participants", "expenses need at least one participant")

    totals: dict[str, Fraction] = {p.id: Fraction(0) for p in participants}
    head_count = len(participants)

    for expense in expenses:
        amount = Fraction(expense.amount)
        _require_on_roster(totals, expense.paid_by, "paid_by", expense)

        if expense.kind == "itemized" and expense.item_shares is not None:
            for participant_id, share in expense.item_shares.items():
                _require_on_roster(totals, participant_id, "item_shares", expense)
                totals[participant_id] -= Fraction(share)
        else:
            per_person = amount / head_count
            for participant_id in totals:
                totals[participant_id] -= per_person

        totals[expense.paid_by] += amount

    return {pid: _fraction_to_decimal(value) for pid, value in totals.items()}


def compute_trip_balances(trip: Trip) -> dict[str, Decimal]:
    """Net balances for every participant of a trip."""
    return compute_balances(trip.participants, trip.expenses)


def compute_trip_settlements(trip: Trip) -> list[Settlement]:
    """Settlement plan for a trip's current expenses."""
    return compute_settlements(compute_trip_balances(trip))


def summarize(trip: Trip) -> TripSummary:
    """Totals by expense kind and the equal share of regular expenses."""
    regular_total = sum(
        (e.amount for e in trip.expenses if e.kind == "regular"), Decimal("0")
    )
    itemized_total = sum(
        (e.amount for e in trip.expenses if e.kind == "itemized"), Decimal("0")
    )
    per_person = (
        regular_total / len(trip.participants) if trip.participants else Decimal("0")
    )
    return TripSummary(
        expense_count=len(trip.expenses),
        total=regular_total + itemized_total,
        regular_total=regular_total,
        itemized_total=itemized_total,
        per_person_regular_share=per_person,
    )


def _require_on_roster(
    totals: Mapping[str, Fraction], participant_id: str, field: str, expense: Expense
) -> None:
    if participant_id not in totals:
        raise ValidationError(
            field,
            f"expense '{expense.description}' refers to '{participant_id}', "
            f"who is not on the trip roster",
        )


def _fraction_to_decimal(value: Fraction) -> Decimal:
    return Decimal(value.numerator) / Decimal(value.denominator)
