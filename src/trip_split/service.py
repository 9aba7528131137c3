"""Service layer that composes OCR, receipt parsing and the ledger.

This module provides a higher-level API over the pure ledger, parser and
importer functions. The only stateful piece is the OCR client, which is
opened per call.
"""

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .clients.ocr import CancellationToken, OcrClient, ProgressCallback
from .config import Settings
from .exceptions import ConfigurationError, ParticipantNotFoundError, ValidationError
from .importer import apply_items_to_expense, commit_draft
from .ledger import add_expense, add_participant, find_participant
from .models import ExpenseDraft, Participant, ReceiptLineItem, Trip
from .parser import parse_receipt_text

logger = logging.getLogger(__name__)


class TripService:
    """Service for turning receipts into itemized trip expenses."""

    def __init__(self, settings: Settings):
        """Initialize the trip service."""
        self.settings = settings

    async def recognize_receipt(
        self,
        image: bytes,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
        filename: str = "receipt.jpg",
    ) -> str:
        """
        Run an image through the configured OCR service.

        Returns:
            Recognized text

        Raises:
            ConfigurationError: If no OCR service is configured
            OcrError: If recognition fails
        """
        if not self.settings.ocr_api_url:
            raise ConfigurationError(
                "No OCR service configured. Set OCR_API_URL, "
                "or paste the receipt text instead."
            )

        async with OcrClient(
            self.settings.ocr_api_url,
            api_key=self.settings.ocr_api_key,
            language=self.settings.ocr_language,
            timeout=self.settings.ocr_timeout_seconds,
        ) as client:
            result = await client.recognize(
                image,
                on_progress=on_progress,
                cancel_token=cancel_token,
                filename=filename,
            )

        return result.text

    async def scan_receipt(
        self,
        image_path: Path,
        trip: Trip,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> list[ReceiptLineItem]:
        """
        OCR a receipt image and parse its line items.

        Args:
            image_path: Path to the receipt image
            trip: Trip whose roster is used to suggest assignees
            on_progress: Optional progress callback (fraction in [0, 1])
            cancel_token: Optional cancellation token

        Returns:
            Parsed line items (possibly empty)
        """
        image = image_path.read_bytes()
        text = await self.recognize_receipt(
            image,
            on_progress=on_progress,
            cancel_token=cancel_token,
            filename=image_path.name,
        )
        return self.parse_receipt(text, trip)

    def parse_receipt(self, text: str, trip: Trip) -> list[ReceiptLineItem]:
        """Parse receipt text (OCR output or pasted) against the trip roster."""
        items = parse_receipt_text(text, trip.participants)

        assigned = sum(1 for item in items if item.assigned_to is not None)
        logger.info(f"Parsed {len(items)} items ({assigned} with a suggested assignee)")
        return items

    def create_draft(
        self,
        trip: Trip,
        items: Sequence[ReceiptLineItem],
        description: str = "Receipt",
        paid_by: str | None = None,
    ) -> ExpenseDraft:
        """
        Build a proposed itemized expense from receipt items.

        Args:
            trip: Current trip
            items: Receipt items with their assignments
            description: Expense description
            paid_by: Payer name or id

        Returns:
            Draft expense for confirmation
        """
        payer_id = find_participant(trip.participants, paid_by).id if paid_by else None
        draft = apply_items_to_expense(items, trip.participants, description, payer_id)

        logger.info(
            f"Created draft '{draft.description}' with {len(draft.item_shares)} "
            f"shares, total: {draft.amount}"
        )
        return draft

    def apply_draft(self, trip: Trip, draft: ExpenseDraft) -> Trip:
        """
        Commit a confirmed draft to the trip.

        Raises:
            ImbalanceError: If some items are still unassigned
        """
        return commit_draft(trip, draft)


# ============================================================================
# Trip files
# ============================================================================


def load_trip(path: Path) -> Trip:
    """
    Load a trip from a JSON file.

    Raises:
        ValidationError: If the file can't be read or holds an invalid trip
        ImbalanceError: If an itemized expense in the file doesn't balance
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ValidationError("trip_file", f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValidationError("trip_file", f"{path} is not valid JSON: {e}") from e

    trip = trip_from_dict(data)
    logger.info(
        f"Loaded trip with {len(trip.participants)} participants "
        f"and {len(trip.expenses)} expenses from {path}"
    )
    return trip


def trip_from_dict(data: Any) -> Trip:
    """
    Build a trip from plain data, replaying every expense through the ledger.

    Participants may be plain names or ``{"id", "name"}`` objects. Expense
    ``paid_by`` and ``item_shares`` keys may use names or ids. Expense ids
    in the data are ignored; each replayed expense gets a fresh id.
    """
    if not isinstance(data, dict):
        raise ValidationError("trip_file", "expected a JSON object")

    trip = Trip()
    for entry in data.get("participants", []):
        if isinstance(entry, str):
            trip = add_participant(trip, entry)
            continue

        try:
            participant = Participant.model_validate(entry)
        except PydanticValidationError as e:
            raise ValidationError(
                "participants", f"invalid participant {entry!r}"
            ) from e
        participants = [*trip.participants, participant]
        trip = trip.model_copy(update={"participants": participants})

    for entry in data.get("expenses", []):
        if not isinstance(entry, dict):
            raise ValidationError("expenses", f"invalid expense {entry!r}")

        shares = entry.get("item_shares")
        if isinstance(shares, dict):
            shares = {
                _resolve_participant(trip, key, "item_shares"): value
                for key, value in shares.items()
            }

        trip = add_expense(
            trip,
            description=entry.get("description"),
            amount=entry.get("amount"),
            paid_by=_resolve_participant(trip, entry.get("paid_by"), "paid_by"),
            kind=entry.get("kind", "regular"),
            item_shares=shares,
        )

    return trip


def _resolve_participant(trip: Trip, key: Any, field: str) -> str | None:
    if key is None or key == "":
        return None
    try:
        return find_participant(trip.participants, str(key)).id
    except ParticipantNotFoundError as e:
        raise ValidationError(field, f"'{key}' is not on the trip roster") from e
