"""TripSplit - Split shared trip expenses and import itemized receipts."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .ledger import (
    add_expense,
    add_participant,
    compute_balances,
    delete_expense,
    new_trip,
    rename_participant,
    set_trip_size,
    update_expense,
)
from .models import (
    Expense,
    ExpenseDraft,
    Participant,
    ReceiptLineItem,
    Settlement,
    Trip,
)
from .parser import parse_receipt_text
from .service import TripService, load_trip
from .settlement import compute_settlements

__all__ = [
    "Settings",
    "load_settings",
    "add_expense",
    "add_participant",
    "compute_balances",
    "delete_expense",
    "new_trip",
    "rename_participant",
    "set_trip_size",
    "update_expense",
    "Expense",
    "ExpenseDraft",
    "Participant",
    "ReceiptLineItem",
    "Settlement",
    "Trip",
    "parse_receipt_text",
    "TripService",
    "load_trip",
    "compute_settlements",
]
