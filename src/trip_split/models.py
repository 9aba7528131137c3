"""Pydantic domain models for TripSplit."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ExpenseKind = Literal["regular", "itemized"]


def new_participant_id() -> str:
    """Opaque participant id, independent of the display name."""
    return uuid.uuid4().hex


def new_expense_id() -> str:
    """Time-derived unique expense id."""
    return uuid.uuid1().hex


# ============================================================================
# Ledger Models
# ============================================================================


class Participant(BaseModel):
    """A trip participant."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_participant_id)
    name: str


class Expense(BaseModel):
    """A shared expense.

    Regular expenses are split equally across the whole roster. Itemized
    expenses carry ``item_shares`` (participant id -> amount) and each listed
    participant owes only their own share.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_expense_id)
    description: str
    amount: Decimal
    paid_by: str  # participant id
    kind: ExpenseKind = "regular"
    item_shares: dict[str, Decimal] | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class Trip(BaseModel):
    """Roster and expenses of one trip.

    Ledger operations never mutate a Trip; they return an updated copy.
    """

    participants: list[Participant] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)

    def get_participant(self, participant_id: str) -> Participant | None:
        """Get participant by id."""
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    def participant_name(self, participant_id: str) -> str:
        """Display name for an id, falling back to the id itself."""
        participant = self.get_participant(participant_id)
        return participant.name if participant else participant_id

    def get_expense(self, expense_id: str) -> Expense | None:
        """Get expense by id."""
        for expense in self.expenses:
            if expense.id == expense_id:
                return expense
        return None


class Settlement(BaseModel):
    """A single directed payment: ``from_id`` pays ``to_id``."""

    model_config = ConfigDict(frozen=True)

    from_id: str
    to_id: str
    amount: Decimal


class TripSummary(BaseModel):
    """Roll-up figures for a trip's expense list."""

    expense_count: int
    total: Decimal
    regular_total: Decimal
    itemized_total: Decimal
    per_person_regular_share: Decimal


# ============================================================================
# Receipt Models
# ============================================================================


class ReceiptLineItem(BaseModel):
    """A (name, amount) pair parsed from receipt text."""

    id: str
    name: str
    amount: Decimal
    assigned_to: str | None = None  # participant id, None = unassigned
    line_number: int


class ExpenseDraft(BaseModel):
    """A proposed itemized expense built from receipt line items.

    ``item_shares`` only covers assigned items, so it sums to less than
    ``amount`` whenever ``unassigned_total`` is non-zero.
    """

    description: str
    paid_by: str | None = None
    amount: Decimal
    item_shares: dict[str, Decimal] = Field(default_factory=dict)
    unassigned_total: Decimal = Decimal("0")
    unassigned_items: list[str] = Field(default_factory=list)

    @property
    def is_fully_assigned(self) -> bool:
        return not self.unassigned_items


class OcrResult(BaseModel):
    """Text returned by the OCR service."""

    text: str
