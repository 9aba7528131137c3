"""Interactive UI components for reviewing receipt item assignments."""

import logging
from collections.abc import Sequence
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import ExpenseDraft, Participant, ReceiptLineItem

logger = logging.getLogger(__name__)


class ParticipantCompleter(Completer):
    """Fuzzy search completer for participant names."""

    def __init__(self, participants: Sequence[Participant]):
        """Initialize the completer with the trip roster."""
        self.participants = list(participants)
        self.name_to_id = {p.name: p.id for p in self.participants}

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for participant in self.participants:
            if not query:
                yield Completion(
                    text=participant.name, start_position=0, display=participant.name
                )
            elif self._fuzzy_match(query, participant.name.lower()):
                yield Completion(
                    text=participant.name,
                    start_position=-len(document.text),
                    display=participant.name,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="sm" matches "Sam"
            query="alx" matches "Alex"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)

    def resolve(self, text: str) -> str | None:
        """Map typed text to a participant id (exact name, then case-insensitive)."""
        text = text.strip()
        if text in self.name_to_id:
            return self.name_to_id[text]
        for name, participant_id in self.name_to_id.items():
            if name.lower() == text.lower():
                return participant_id
        return None


def select_participant_interactive(
    participants: Sequence[Participant],
    item: ReceiptLineItem,
    suggested_id: str | None = None,
) -> str | None:
    """
    Interactive assignee selection with fuzzy search.

    Args:
        participants: Trip roster
        item: The receipt item being assigned
        suggested_id: Current or suggested assignee, pre-filled

    Returns:
        Selected participant id, or None to leave the item unassigned.
        Ctrl+C keeps the suggested assignee.
    """
    print(f"\n🧾 {item.name}  {item.amount:.2f}")

    suggested_name = ""
    for participant in participants:
        if participant.id == suggested_id:
            suggested_name = participant.name
            print(f"   💡 Suggested: {suggested_name}")
            break

    print("   Type to search, Enter to confirm, empty to leave unassigned\n")

    completer = ParticipantCompleter(participants)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        default_text = suggested_name

        while True:
            result = session.prompt(
                "Assign to: ",
                default=default_text,
                complete_while_typing=True,
            )

            if not result.strip():
                return None

            participant_id = completer.resolve(result)
            if participant_id:
                logger.info(f"Assigned '{item.name}' to {result.strip()}")
                return participant_id

            print("❌ Unknown participant. Press Tab to see the roster.")
            default_text = ""

    except KeyboardInterrupt:
        print("\n⏭️  Skipped")
        return suggested_id
    except EOFError:
        return suggested_id


def review_assignments(
    items: list[ReceiptLineItem], participants: Sequence[Participant]
) -> list[ReceiptLineItem]:
    """Walk every item through the assignee picker (mutates the items)."""
    for item in items:
        item.assigned_to = select_participant_interactive(
            participants, item, suggested_id=item.assigned_to
        )
    return items


def confirm_draft(draft: ExpenseDraft, participants: Sequence[Participant]) -> bool:
    """
    Simple yes/no confirmation before committing a draft expense.

    Returns:
        True if confirmed, False otherwise
    """
    names = {p.id: p.name for p in participants}

    print(f"\n🧾 {draft.description}: {draft.amount:.2f}")
    if draft.paid_by:
        print(f"   Paid by: {names.get(draft.paid_by, draft.paid_by)}")
    for participant_id, share in draft.item_shares.items():
        print(f"   - {names.get(participant_id, participant_id)}: {share:.2f}")
    if draft.unassigned_items:
        print(f"   ⚠️  Unassigned: {', '.join(draft.unassigned_items)}")

    response = input("   Add this expense? [Y/n] ").strip().lower()

    return response in ("", "y", "yes")
