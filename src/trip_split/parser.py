"""Extract candidate line items (name + amount) from receipt text.

Works on OCR output and on text pasted by hand. Two passes are tried:

1. Section-bounded: only lines after an items header ("Item  Qty  Price")
   count, and the first totals/tax/payment line after an item ends the section.
2. Whole-document: every line is a candidate unless it carries an excluded
   keyword.

The first pass that finds anything wins. Finding nothing is not an error.
"""

import logging
import re
from collections.abc import Iterable, Sequence
from decimal import Decimal, InvalidOperation

from .assignment import suggest_assignee
from .models import Participant, ReceiptLineItem

logger = logging.getLogger(__name__)

# Item amounts must fall strictly inside this range; smaller numbers are
# quantities or codes, larger ones are receipt or transaction ids
MIN_ITEM_AMOUNT = Decimal("0.5")
MAX_ITEM_AMOUNT = Decimal("100000")

# Totals, taxes, tips, payment methods and currency codes
_EXCLUDED_KEYWORDS = [
    r"sub\s*-?\s*total",
    r"total",
    r"net\s+amount",
    r"amount\s+due",
    r"balance",
    r"tax(?:es)?",
    r"vat",
    r"gst",
    r"hst",
    r"pst",
    r"cgst",
    r"sgst",
    r"igst",
    r"cess",
    r"tips?",
    r"gratuity",
    r"service\s+(?:charge|fee)",
    r"surcharge",
    r"discount",
    r"coupon",
    r"savings",
    r"round(?:ing|\s*off)",
    r"cash",
    r"change",
    r"tender(?:ed)?",
    r"card",
    r"visa",
    r"master\s*card",
    r"amex",
    r"debit",
    r"credit",
    r"upi",
    r"payment",
    r"paid",
    r"usd",
    r"eur",
    r"gbp",
    r"inr",
    r"aud",
    r"cad",
    r"thank\s+you",
]
EXCLUDED_KEYWORD_RE = re.compile(
    r"\b(?:" + "|".join(_EXCLUDED_KEYWORDS) + r")\b", re.IGNORECASE
)

# Items header: an item/name column plus a quantity/price column
_ITEM_HEADER_RE = re.compile(
    r"\b(?:items?|products?|description|particulars|articles?|name)\b", re.IGNORECASE
)
_COLUMN_HEADER_RE = re.compile(
    r"\b(?:qty|quantity|price|amount|amt|rate|total|value)\b", re.IGNORECASE
)

_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)*")
_DIGIT_RE = re.compile(r"\d")
_LETTER_RE = re.compile(r"[^\W\d_]")
_WHITESPACE_RE = re.compile(r"\s+")

_BULLET_RE = re.compile(r"^[\s\-–—*•·>+#|~=:.]+")
# "2x Burger", "2 x Burger", "1. Burger", "3 Burger"
_LEADING_QUANTITY_RE = re.compile(
    r"^\d+(?:[.,]\d+)?(?:\s*[x×*]\s*|\s*[.)]\s*|\s+)(?=[^\d\s])", re.IGNORECASE
)
_MULTIPLIER_RE = re.compile(r"(?<!\S)(?:[x×*@]|\d+\s*[x×])(?!\S)", re.IGNORECASE)
_QUANTITY_LABEL_RE = re.compile(
    r"\b(?:qty|quantity|nos?|pcs?|pieces?|units?)\b\.?:?", re.IGNORECASE
)
_TRAILING_JUNK_RE = re.compile(
    r"(?:[\s:;,\-–—=/(|]|\brs\.?|[$€£₹¥])+$", re.IGNORECASE
)

_MONTHS = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_DATE_RE = re.compile(
    r"\b\d{1,4}[/\-.]\d{1,2}[/\-.]\d{2,4}\b"  # 12/05/2024, 2024-05-12
    rf"|\b\d{{1,2}}[\s\-]{_MONTHS}\b\.?[\s\-,]+\d{{2,4}}\b"  # 12 May 2024
    rf"|\b{_MONTHS}\b\.?\s+\d{{1,2}},?\s+\d{{4}}\b",  # May 12, 2024
    re.IGNORECASE,
)
_TIME_RE = re.compile(r"\b\d{1,2}:\d{2}(?::\d{2})?\b")
_REFERENCE_RE = re.compile(
    r"\b(?:auth(?:orization|orisation)?|approval|appr|terminal|tid|mid|merchant|"
    r"rrn|stan|txn|transaction|gstin|phone|tel|mobile|mob|fax)\b"
    r"|\b(?:ref(?:erence)?|invoice|inv|bill|receipt|order|ticket|token|table|ph)\b"
    r"\.?\s*(?:no\.?|num(?:ber)?|id)?\s*[:#]"
    r"|\(?\b\d{3}\)?[\s.\-]\d{3}[\s.\-]\d{4}\b",  # (555) 123-4567
    re.IGNORECASE,
)


def split_lines(text: str) -> list[str]:
    """Split text into stripped, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def is_section_header(line: str) -> bool:
    """Return True if the line looks like an items table header."""
    return (
        _ITEM_HEADER_RE.search(line) is not None
        and _COLUMN_HEADER_RE.search(line) is not None
        and len(_NUMBER_RE.findall(line)) < 2
    )


def is_excluded(line: str) -> bool:
    """Return True if the line carries a totals/tax/payment keyword."""
    return EXCLUDED_KEYWORD_RE.search(line) is not None


def parse_number(token: str) -> Decimal | None:
    """
    Parse a numeric token from receipt text.

    Handles thousands separators ("1,234.56") and decimal commas ("9,50").
    Tokens with more than one decimal point ("12.05.2024") are not numbers.
    """
    if "," in token and "." in token:
        token = token.replace(",", "")
    elif "," in token:
        head, _, tail = token.rpartition(",")
        if len(tail) == 2:
            token = f"{head.replace(',', '')}.{tail}"
        else:
            token = token.replace(",", "")

    if token.count(".") > 1:
        return None

    try:
        return Decimal(token)
    except InvalidOperation:
        return None


def pick_amount(tokens: Iterable[str]) -> Decimal | None:
    """Last token whose value lies strictly between the item amount bounds."""
    for token in reversed(list(tokens)):
        value = parse_number(token)
        if value is not None and MIN_ITEM_AMOUNT < value < MAX_ITEM_AMOUNT:
            return value
    return None


def extract_name(line: str) -> str:
    """
    Extract the item name from a receipt line.

    The name is the text before the first digit, after dropping bullets and
    a leading quantity ("2x Burger"), with multiplier tokens, quantity labels
    and trailing currency marks removed.
    """
    body = _BULLET_RE.sub("", line)
    body = _LEADING_QUANTITY_RE.sub("", body, count=1)

    first_digit = _DIGIT_RE.search(body)
    name = body[: first_digit.start()] if first_digit else body

    name = _QUANTITY_LABEL_RE.sub(" ", name)
    name = _MULTIPLIER_RE.sub(" ", name)
    name = _WHITESPACE_RE.sub(" ", name).strip()
    name = _TRAILING_JUNK_RE.sub("", name)
    name = _BULLET_RE.sub("", name)
    return name.strip()


def extract_item(line: str) -> tuple[str, Decimal] | None:
    """
    Extract (name, amount) from a single line, or None if it is not an item.

    A line qualifies only with at least two numbers (quantity or code plus
    price). It is rejected when it looks like a date, time, payment
    reference or phone number, when a percent sign follows the first number,
    or when no usable name or amount is left.

    Example:
        "Burger 2x 9.50" -> ("Burger", Decimal("9.50"))
    """
    numbers = _NUMBER_RE.findall(line)
    if len(numbers) < 2:
        return None

    first_number = _NUMBER_RE.search(line)
    if first_number and "%" in line[first_number.start() :]:
        return None

    if _DATE_RE.search(line) or _TIME_RE.search(line) or _REFERENCE_RE.search(line):
        return None

    amount = pick_amount(numbers)
    if amount is None:
        return None

    name = extract_name(line)
    if len(name) < 2 or not _LETTER_RE.search(name):
        return None

    return name, amount


def extract_line_items(
    lines: Sequence[str],
    participants: Sequence[Participant] = (),
    require_section: bool = True,
) -> list[ReceiptLineItem]:
    """
    Run one parsing pass over pre-split lines.

    Args:
        lines: Stripped, non-empty lines
        participants: Roster used to suggest an assignee per item
        require_section: Only look after an items header, and stop at the
            first excluded line once an item was found

    Returns:
        Items in line order, deduplicated by case-insensitive name
    """
    items: list[ReceiptLineItem] = []
    seen: set[str] = set()
    in_section = not require_section

    for line_number, line in enumerate(lines, start=1):
        if not in_section:
            if is_section_header(line):
                logger.debug(f"Items header at line {line_number}: {line!r}")
                in_section = True
            continue

        if is_excluded(line):
            if require_section and items:
                logger.debug(f"Items section closed at line {line_number}: {line!r}")
                break
            continue

        extracted = extract_item(line)
        if extracted is None:
            continue

        name, amount = extracted
        key = name.lower()
        if key in seen:
            logger.debug(f"Skipping duplicate item '{name}' at line {line_number}")
            continue
        seen.add(key)

        assignee = suggest_assignee(line, participants)
        items.append(
            ReceiptLineItem(
                id=f"line-{line_number}",
                name=name,
                amount=amount,
                assigned_to=assignee.id if assignee else None,
                line_number=line_number,
            )
        )

    return items


def parse_receipt_text(
    text: str, participants: Sequence[Participant] = ()
) -> list[ReceiptLineItem]:
    """
    Parse receipt text into candidate line items.

    Tries the section-bounded pass first and falls back to the
    whole-document pass. An empty list means nothing was detected.
    """
    lines = split_lines(text)
    if not lines:
        logger.info("No text to parse")
        return []

    items = extract_line_items(lines, participants, require_section=True)
    if items:
        logger.info(f"Found {len(items)} items in the items section")
        return items

    items = extract_line_items(lines, participants, require_section=False)
    if items:
        logger.info(f"Found {len(items)} items scanning all {len(lines)} lines")
    else:
        logger.info(f"No line items detected in {len(lines)} lines")
    return items
