"""Custom exceptions for TripSplit."""

from decimal import Decimal


class TripSplitError(Exception):
    """Base exception for all TripSplit errors."""

    pass


class ConfigurationError(TripSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(TripSplitError):
    """Raised when a required expense or roster field is missing or invalid."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class ImbalanceError(TripSplitError):
    """Raised when itemized shares don't add up to the expense amount."""

    def __init__(self, expected_total: Decimal, actual_total: Decimal):
        self.expected_total = expected_total
        self.actual_total = actual_total
        self.difference = actual_total - expected_total
        super().__init__(
            f"Item shares total ({actual_total:.2f}) doesn't match the expense "
            f"amount ({expected_total:.2f}). Please adjust the individual shares."
        )


class ParticipantNotFoundError(TripSplitError):
    """Raised when a participant id or name is not on the roster."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No participant matches '{key}'")


class ExpenseNotFoundError(TripSplitError):
    """Raised when an expense id is not in the trip."""

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense {expense_id} not found")


class APIError(TripSplitError):
    """Base class for external service errors."""

    pass


class OcrError(APIError):
    """Raised when the external OCR service fails or times out."""

    DEFAULT_HINT = (
        "Try again with a clearer, well-lit photo of the receipt, "
        "or paste the receipt text instead."
    )

    def __init__(
        self, message: str, hint: str | None = None, retryable: bool = True
    ):
        self.hint = hint or self.DEFAULT_HINT
        self.retryable = retryable
        super().__init__(message)


class OcrCancelledError(OcrError):
    """Raised when a recognition run is cancelled by the caller."""

    def __init__(self, message: str = "Text recognition was cancelled"):
        super().__init__(message, hint="Start a new scan when ready.", retryable=False)
