"""MCP server for TripSplit: exposes the trip ledger and receipt import as tools."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from mcp.server.fastmcp import FastMCP

from . import ledger
from .config import Settings, load_settings
from .exceptions import TripSplitError
from .models import Expense, ReceiptLineItem, Trip
from .service import TripService
from .settlement import compute_settlements, unsettled_participants

logger = logging.getLogger(__name__)

mcp_app = FastMCP("trip-split")

# ---------------------------------------------------------------------------
# Session state: one MCP server process = one conversation = one trip
# ---------------------------------------------------------------------------

WORKFLOW_INSTRUCTIONS = """\
You are helping a group split the costs of a shared trip. Follow this workflow:

1. ROSTER: Call set_trip_size or add_participant to create the group, then
   rename_participant so everyone has a real name. Call list_participants to
   confirm.

2. EXPENSES: For each shared cost, call add_expense with the payer's name.
   Leave item_shares empty when the cost is split equally by everyone. For a
   cost that only some people share, pass item_shares mapping names to amounts;
   the shares must add up to the amount.

3. RECEIPTS: When the user pastes receipt text, call parse_receipt. Show the
   items and suggested assignees, then call assign_item for anything that is
   unassigned or wrong. Ask the user if you are unsure who had what.
   Call import_receipt with the payer once every item is assigned.

4. SETTLE: Call show_balances and show_settlements and present who pays whom.

Indices in list_expenses and parse_receipt output are 0-based. Negative \
balances owe money, positive balances are owed money.\
"""


@dataclass
class SessionState:
    """Holds state between MCP tool calls within a single conversation."""

    trip: Trip = field(default_factory=Trip)
    items: list[ReceiptLineItem] = field(default_factory=list)
    settings: Settings | None = None
    service: TripService | None = None


_state = SessionState()


def _ensure_service() -> TripService:
    """Lazily initialize the TripService (loads .env config)."""
    if _state.service is None:
        _state.settings = load_settings()
        _state.service = TripService(_state.settings)
        logger.info("Trip session started")
    return _state.service


def _prefix() -> str:
    _ensure_service()
    assert _state.settings is not None
    return _state.settings.default_participant_prefix


def _symbol() -> str:
    _ensure_service()
    assert _state.settings is not None
    return _state.settings.currency_symbol


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _format_amount(amount: Decimal, symbol: str = "$") -> str:
    """Format an amount as an accounting-style string."""
    if amount < 0:
        return f"({symbol}{abs(amount):,.2f})"
    return f"{symbol}{amount:,.2f}"


def _resolve(key: str) -> str:
    """Participant id for a name or id."""
    return ledger.find_participant(_state.trip.participants, key).id


def _resolve_shares(item_shares: dict[str, str] | None) -> dict[str, str] | None:
    if item_shares is None:
        return None
    return {_resolve(key): value for key, value in item_shares.items()}


def _expense_at(index: int) -> Expense | None:
    if 0 <= index < len(_state.trip.expenses):
        return _state.trip.expenses[index]
    return None


def _index_error(index: int, collection: str, size: int) -> str:
    if size == 0:
        return f"Error: No {collection} yet."
    return f"Error: Invalid index {index}. Valid range: 0-{size - 1}"


def _describe_expense(index: int, expense: Expense) -> str:
    trip = _state.trip
    line = (
        f"[{index}] {expense.description} | "
        f"{_format_amount(expense.amount, _symbol())} | "
        f"paid by {trip.participant_name(expense.paid_by)}"
    )
    if expense.kind == "itemized" and expense.item_shares:
        shares = ", ".join(
            f"{trip.participant_name(pid)} {_format_amount(share, _symbol())}"
            for pid, share in expense.item_shares.items()
        )
        return f"{line} | itemized: {shares}"
    return f"{line} | split equally"


def _describe_item(index: int, item: ReceiptLineItem) -> str:
    assignee = (
        _state.trip.participant_name(item.assigned_to)
        if item.assigned_to
        else "UNASSIGNED"
    )
    return (
        f"[{index}] {item.name} | {_format_amount(item.amount, _symbol())} | "
        f"{assignee}"
    )


# ---------------------------------------------------------------------------
# MCP Tools: roster
# ---------------------------------------------------------------------------


@mcp_app.tool()
def set_trip_size(size: int) -> str:
    """Grow or shrink the trip to a number of participants.

    New participants get default names. Participants referenced by an expense
    cannot be removed.

    Args:
        size: Desired number of participants.
    """
    try:
        _state.trip = ledger.set_trip_size(_state.trip, size, _prefix())
        return list_participants()
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to set trip size: {e}"


@mcp_app.tool()
def add_participant(name: str = "") -> str:
    """Add one participant to the trip.

    Args:
        name: Display name. Leave empty for a default name.
    """
    try:
        _state.trip = ledger.add_participant(_state.trip, name or None, _prefix())
        added = _state.trip.participants[-1]
        count = len(_state.trip.participants)
        return f"Added {added.name}. The trip has {count} people."
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to add participant: {e}"


@mcp_app.tool()
def rename_participant(participant: str, new_name: str) -> str:
    """Rename a participant. Balances and shares follow automatically.

    Args:
        participant: Current name or id.
        new_name: New display name.
    """
    try:
        participant_id = _resolve(participant)
        _state.trip = ledger.rename_participant(_state.trip, participant_id, new_name)
        return f"Renamed {participant} to {new_name.strip()}."
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to rename participant: {e}"


@mcp_app.tool()
def list_participants() -> str:
    """List the trip's participants."""
    try:
        participants = _state.trip.participants
        if not participants:
            return "No participants yet. Call set_trip_size or add_participant."

        lines = [f"Participants ({len(participants)}):"]
        for p in participants:
            lines.append(f"  - {p.name} (id: {p.id})")
        return "\n".join(lines)
    except Exception as e:
        return f"Failed to list participants: {e}"


# ---------------------------------------------------------------------------
# MCP Tools: expenses
# ---------------------------------------------------------------------------


@mcp_app.tool()
def add_expense(
    description: str,
    amount: str,
    paid_by: str,
    item_shares: dict[str, str] | None = None,
) -> str:
    """Record a shared expense.

    Args:
        description: What the money was spent on.
        amount: Total amount, e.g. "42.50".
        paid_by: Name of the person who paid.
        item_shares: Optional map of name -> amount for an itemized expense.
            Omit to split the amount equally across everyone.
    """
    try:
        kind = "itemized" if item_shares else "regular"
        _state.trip = ledger.add_expense(
            _state.trip,
            description=description,
            amount=amount,
            paid_by=_resolve(paid_by),
            kind=kind,
            item_shares=_resolve_shares(item_shares),
        )
        index = len(_state.trip.expenses) - 1
        return "Added expense:\n  " + _describe_expense(
            index, _state.trip.expenses[index]
        )
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to add expense: {e}"


@mcp_app.tool()
def update_expense(
    expense_index: int,
    description: str | None = None,
    amount: str | None = None,
    paid_by: str | None = None,
    kind: str | None = None,
    item_shares: dict[str, str] | None = None,
) -> str:
    """Change fields of an existing expense. Omitted fields keep their value.

    Args:
        expense_index: Index from list_expenses.
        description: New description.
        amount: New total amount.
        paid_by: New payer name.
        kind: "regular" (split equally) or "itemized".
        item_shares: New name -> amount map for an itemized expense.
    """
    try:
        expense = _expense_at(expense_index)
        if expense is None:
            return _index_error(expense_index, "expenses", len(_state.trip.expenses))

        patch: dict[str, Any] = {}
        if description is not None:
            patch["description"] = description
        if amount is not None:
            patch["amount"] = amount
        if paid_by is not None:
            patch["paid_by"] = _resolve(paid_by)
        if kind is not None:
            patch["kind"] = kind
        if item_shares is not None:
            patch["item_shares"] = _resolve_shares(item_shares)

        if not patch:
            return "Nothing to update."

        _state.trip = ledger.update_expense(_state.trip, expense.id, patch)
        return "Updated expense:\n  " + _describe_expense(
            expense_index, _state.trip.expenses[expense_index]
        )
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to update expense: {e}"


@mcp_app.tool()
def delete_expense(expense_index: int) -> str:
    """Remove an expense.

    Args:
        expense_index: Index from list_expenses.
    """
    try:
        expense = _expense_at(expense_index)
        if expense is None:
            return _index_error(expense_index, "expenses", len(_state.trip.expenses))

        _state.trip = ledger.delete_expense(_state.trip, expense.id)
        return f"Deleted '{expense.description}'."
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to delete expense: {e}"


@mcp_app.tool()
def list_expenses() -> str:
    """List every expense with its payer and split, plus trip totals."""
    try:
        trip = _state.trip
        if not trip.expenses:
            return "No expenses yet."

        symbol = _symbol()
        summary = ledger.summarize(trip)
        lines = [f"Expenses ({summary.expense_count} total):"]
        for i, expense in enumerate(trip.expenses):
            lines.append("  " + _describe_expense(i, expense))

        lines.extend(
            [
                "",
                f"Total spent: {_format_amount(summary.total, symbol)}",
                f"  Shared equally: {_format_amount(summary.regular_total, symbol)}",
                f"  Itemized: {_format_amount(summary.itemized_total, symbol)}",
                f"  Equal share per person: "
                f"{_format_amount(summary.per_person_regular_share, symbol)}",
            ]
        )
        return "\n".join(lines)
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to list expenses: {e}"


# ---------------------------------------------------------------------------
# MCP Tools: balances
# ---------------------------------------------------------------------------


@mcp_app.tool()
def show_balances() -> str:
    """Show each participant's net balance (positive = is owed money)."""
    try:
        trip = _state.trip
        if not trip.participants:
            return "No participants yet."

        balances = ledger.compute_trip_balances(trip)
        lines = ["Balances:"]
        for p in trip.participants:
            amount = balances[p.id].quantize(Decimal("0.01"))
            lines.append(f"  - {p.name}: {_format_amount(amount, _symbol())}")
        return "\n".join(lines)
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to compute balances: {e}"


@mcp_app.tool()
def show_settlements() -> str:
    """Show the payments that settle everyone up."""
    try:
        trip = _state.trip
        balances = ledger.compute_trip_balances(trip)
        settlements = compute_settlements(balances)

        if not settlements:
            lines = ["Everyone is settled up."]
        else:
            lines = ["Settlement plan:"]
            for s in settlements:
                lines.append(
                    f"  - {trip.participant_name(s.from_id)} pays "
                    f"{trip.participant_name(s.to_id)} "
                    f"{_format_amount(s.amount, _symbol())}"
                )

        leftover = unsettled_participants(balances, settlements)
        if leftover:
            names = ", ".join(trip.participant_name(pid) for pid in leftover)
            lines.append(f"Warning: not fully settled: {names}")
        return "\n".join(lines)
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to compute settlements: {e}"


# ---------------------------------------------------------------------------
# MCP Tools: receipts
# ---------------------------------------------------------------------------


@mcp_app.tool()
def parse_receipt(text: str) -> str:
    """Extract line items from receipt text and suggest who had each one.

    Items are kept for assign_item and import_receipt.

    Args:
        text: Receipt text, as pasted by the user.
    """
    try:
        service = _ensure_service()
        _state.items = service.parse_receipt(text, _state.trip)

        if not _state.items:
            return (
                "No line items detected. Ask the user to check the text or "
                "enter the expense with add_expense."
            )

        lines = [f"Receipt items ({len(_state.items)}):"]
        for i, item in enumerate(_state.items):
            lines.append("  " + _describe_item(i, item))
        total = sum((item.amount for item in _state.items), Decimal("0"))
        lines.append(f"Total: {_format_amount(total, _symbol())}")
        return "\n".join(lines)
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to parse receipt: {e}"


@mcp_app.tool()
def assign_item(item_index: int, participant: str) -> str:
    """Assign a parsed receipt item to a participant.

    Args:
        item_index: Index from parse_receipt.
        participant: Name or id. Empty string leaves the item unassigned.
    """
    try:
        if not _state.items:
            return "Error: No receipt items. Call parse_receipt first."
        if item_index < 0 or item_index >= len(_state.items):
            return _index_error(item_index, "receipt items", len(_state.items))

        item = _state.items[item_index]
        item.assigned_to = _resolve(participant) if participant.strip() else None
        return "Updated item:\n  " + _describe_item(item_index, item)
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to assign item: {e}"


@mcp_app.tool()
def import_receipt(paid_by: str, description: str = "Receipt") -> str:
    """Add the parsed receipt to the trip as an itemized expense.

    Every item must be assigned first.

    Args:
        paid_by: Name of the person who paid the bill.
        description: Expense description.
    """
    try:
        service = _ensure_service()
        if not _state.items:
            return "Error: No receipt items. Call parse_receipt first."

        draft = service.create_draft(_state.trip, _state.items, description, paid_by)
        if not draft.is_fully_assigned:
            return (
                f"Error: {len(draft.unassigned_items)} items are unassigned "
                f"({', '.join(draft.unassigned_items)}). Call assign_item first."
            )

        _state.trip = service.apply_draft(_state.trip, draft)
        _state.items = []

        index = len(_state.trip.expenses) - 1
        return "Imported receipt:\n  " + _describe_expense(
            index, _state.trip.expenses[index]
        )
    except TripSplitError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to import receipt: {e}"


# ---------------------------------------------------------------------------
# MCP Prompt
# ---------------------------------------------------------------------------


@mcp_app.prompt()
def trip_workflow() -> str:
    """Orchestration instructions for splitting a trip's costs."""
    return WORKFLOW_INSTRUCTIONS


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_server():
    """Start the MCP server (stdio transport)."""
    mcp_app.run(transport="stdio")
