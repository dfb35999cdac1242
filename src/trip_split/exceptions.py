"""Custom exceptions for TripSplit."""

from decimal import Decimal


class TripSplitError(Exception):
    """Base exception for all TripSplit errors."""

    pass


class ConfigurationError(TripSplitError):
    """Raised when configuration is invalid or missing."""

    pass


class EmptySplitError(TripSplitError):
    """Raised when an expense resolves to no split targets."""

    def __init__(self, expense_id: str, message: str | None = None):
        self.expense_id = expense_id
        super().__init__(
            message or f"Expense {expense_id} has no participants to split between"
        )


class RecordNotFoundError(TripSplitError):
    """Raised when a trip, participant, family or expense does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} {record_id} not found")


class InvalidExpenseError(TripSplitError):
    """Raised when an expense references payers or targets outside the roster."""

    pass


class UnbalancedLedgerError(TripSplitError):
    """Raised when participant balances do not sum to zero."""

    def __init__(self, residual: Decimal):
        self.residual = residual
        super().__init__(f"Ledger is unbalanced, residual: {residual:.2f}")


class APIError(TripSplitError):
    """Base class for API-related errors."""

    pass


class ExchangeRateAPIError(APIError):
    """Raised when the exchange rate API request fails."""

    pass


class DuplicateExpenseError(TripSplitError):
    """Raised when an expense looks like a duplicate and duplicates are refused."""

    def __init__(self, existing_id: str, description: str):
        self.existing_id = existing_id
        super().__init__(
            f"Expense '{description}' looks like a duplicate of {existing_id}"
        )
