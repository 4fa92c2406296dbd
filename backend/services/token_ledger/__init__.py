"""
Token ledger service - category-scoped token wallets.

This module handles:
    - Crediting and debiting a single category
    - Transfers between a user's own categories
    - Reward redemption
    - The transaction journal
"""

from .ledger import (
    credit,
    debit,
    transfer,
    get_balance,
    redeem_reward,
    get_transactions,
    generate_voucher_code,
    validate_amount,
    validate_category,
)

from .exceptions import (
    LedgerError,
    InvalidCategoryError,
    InvalidAmountError,
    SameCategoryError,
    InsufficientBalanceError,
    UserNotFoundError,
    RewardNotFoundError,
    RewardUnavailableError,
)

__all__ = [
    # Ledger operations
    "credit",
    "debit",
    "transfer",
    "get_balance",
    "redeem_reward",
    "get_transactions",
    "generate_voucher_code",
    "validate_amount",
    "validate_category",
    # Exceptions
    "LedgerError",
    "InvalidCategoryError",
    "InvalidAmountError",
    "SameCategoryError",
    "InsufficientBalanceError",
    "UserNotFoundError",
    "RewardNotFoundError",
    "RewardUnavailableError",
]
