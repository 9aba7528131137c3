"""Infer which participant a receipt line belongs to."""

from collections.abc import Sequence

from .models import Participant


def suggest_assignee(
    label: str, participants: Sequence[Participant]
) -> Participant | None:
    """
    Suggest the participant a receipt label refers to.

    Returns the first participant (in roster order) whose name, ``@name`` or
    ``#name`` appears anywhere in the label, ignoring case. Matching is by
    substring, so short names like "Al" also match "Salad".

    Example:
        "Burger @Sam" with roster [Sam, Alex] -> Sam

    Returns:
        The matching participant, or None to leave the item unassigned
    """
    text = label.lower()
    for participant in participants:
        name = participant.name.strip().lower()
        if not name:
            continue
        if any(tag in text for tag in (name, f"@{name}", f"#{name}")):
            return participant
    return None
