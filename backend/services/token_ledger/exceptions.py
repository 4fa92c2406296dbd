"""Custom exceptions for the token ledger."""


class LedgerError(Exception):
    """Base class for ledger failures. ``error_code`` is the wire code."""
    error_code = "ledger_error"
    status_code = 400

    def __init__(self, message: str = "", data=None):
        super().__init__(message)
        self.message = message
        self.data = data


class InvalidCategoryError(LedgerError):
    """Raised when a token category is not one of the known four."""
    error_code = "invalid_category"


class InvalidAmountError(LedgerError):
    """Raised when an amount is not a positive integer."""
    error_code = "invalid_amount"


class SameCategoryError(LedgerError):
    """Raised when a transfer names the same source and target category."""
    error_code = "same_category"


class InsufficientBalanceError(LedgerError):
    """Raised when a debit would take a category balance below zero."""
    error_code = "insufficient_balance"

    def __init__(self, category: str, required: int, available: int, message: str = ""):
        self.category = category
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            message or f"Insufficient {category} tokens",
            data={
                "category": category,
                "required": required,
                "available": available,
                "shortfall": self.shortfall,
            },
        )


class UserNotFoundError(LedgerError):
    """Raised when the wallet owner no longer exists."""
    error_code = "user_not_found"
    status_code = 404


class RewardNotFoundError(LedgerError):
    """Raised when a reward id is not in the catalog."""
    error_code = "reward_not_found"
    status_code = 404


class RewardUnavailableError(LedgerError):
    """Raised when a reward exists but is switched off."""
    error_code = "reward_unavailable"
