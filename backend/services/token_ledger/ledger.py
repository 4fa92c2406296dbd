"""
Token ledger operations.

Balances live on the User row (one column per category plus ``tokens_total``).
Every mutation is a single conditional UPDATE using F() expressions, so two
concurrent requests can never overwrite each other's change, and every
mutation writes a TokenTransaction journal row in the same transaction.
"""

import logging
import random
import string
from datetime import timedelta
from typing import Dict, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import TOKEN_CATEGORIES, balance_field
from wallet.models import Redemption, Reward, TokenTransaction
from .exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidCategoryError,
    RewardNotFoundError,
    RewardUnavailableError,
    SameCategoryError,
    UserNotFoundError,
)

User = get_user_model()
logger = logging.getLogger(__name__)

BALANCE_FIELDS = [balance_field(c) for c in TOKEN_CATEGORIES] + ['tokens_total', 'version']


# ---------------------- Validation ----------------------

def validate_category(category) -> str:
    if category not in TOKEN_CATEGORIES:
        raise InvalidCategoryError(f"Invalid token category: {category!r}")
    return category


def validate_amount(amount) -> int:
    # bool is an int subclass; True is not a token amount
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError("Amount must be a positive integer")
    return amount


# ---------------------- Balance reads ----------------------

def get_balance(user) -> Dict[str, int]:
    """
    Current balances for every category plus the total.

    Always read from the database, never from the possibly stale instance.
    """
    row = User.objects.filter(pk=user.pk).values(*BALANCE_FIELDS[:-1]).first()
    if row is None:
        raise UserNotFoundError("User not found")
    balances = {c: row[balance_field(c)] for c in TOKEN_CATEGORIES}
    balances['total'] = row['tokens_total']
    return balances


def _refresh_wallet(user) -> None:
    user.refresh_from_db(fields=BALANCE_FIELDS)


def _apply(user, category: str, delta: int) -> int:
    """
    Add ``delta`` to one category balance in a single UPDATE statement.

    A negative delta only applies when the balance covers it. Returns the
    number of rows touched (0 or 1).
    """
    field = balance_field(category)
    qs = User.objects.filter(pk=user.pk)
    if delta < 0:
        qs = qs.filter(**{f"{field}__gte": -delta})
    return qs.update(**{
        field: F(field) + delta,
        'tokens_total': F('tokens_total') + delta,
        'version': F('version') + 1,
    })


# ---------------------- Mutations ----------------------

@transaction.atomic
def credit(
    user,
    category: str,
    amount: int,
    kind: str = TokenTransaction.ADJUSTMENT,
    description: str = "",
    ride=None,
) -> TokenTransaction:
    """
    Add tokens to one category.

    Args:
        user: wallet owner
        category: one of food, travel, clothing, coupons
        amount: positive integer
        kind: journal kind for the TokenTransaction row
        description: free text stored on the journal row
        ride: ride the tokens were earned on, if any

    Returns:
        The journal row written for this credit

    Raises:
        InvalidCategoryError, InvalidAmountError, UserNotFoundError
    """
    validate_category(category)
    validate_amount(amount)

    if not _apply(user, category, amount):
        raise UserNotFoundError("User not found")

    entry = TokenTransaction.objects.create(
        user=user,
        kind=kind,
        category=category,
        amount=amount,
        description=description,
        ride=ride,
    )
    _refresh_wallet(user)
    logger.info("Credited %s %s tokens to user %s (%s)", amount, category, user.pk, kind)
    return entry


@transaction.atomic
def debit(
    user,
    category: str,
    amount: int,
    kind: str = TokenTransaction.ADJUSTMENT,
    description: str = "",
    redemption: Optional[Redemption] = None,
) -> TokenTransaction:
    """
    Remove tokens from one category. The balance never goes negative.

    Raises:
        InsufficientBalanceError: balance is lower than ``amount``; nothing changes
    """
    validate_category(category)
    validate_amount(amount)

    if not _apply(user, category, -amount):
        available = (
            User.objects.filter(pk=user.pk)
            .values_list(balance_field(category), flat=True)
            .first()
        )
        if available is None:
            raise UserNotFoundError("User not found")
        raise InsufficientBalanceError(category, required=amount, available=available)

    entry = TokenTransaction.objects.create(
        user=user,
        kind=kind,
        category=category,
        amount=-amount,
        description=description,
        redemption=redemption,
    )
    _refresh_wallet(user)
    logger.info("Debited %s %s tokens from user %s (%s)", amount, category, user.pk, kind)
    return entry


@transaction.atomic
def transfer(user, from_category: str, to_category: str, amount: int) -> Dict[str, int]:
    """
    Move tokens between two of the user's own categories.

    Debit and credit share one transaction: a failed debit stops before the
    credit, and a failed credit rolls the debit back.

    Returns:
        Balances after the transfer
    """
    validate_category(from_category)
    validate_category(to_category)
    if from_category == to_category:
        raise SameCategoryError("Cannot transfer to the same category")
    validate_amount(amount)

    debit(
        user, from_category, amount,
        kind=TokenTransaction.TRANSFER_OUT,
        description=f"Transfer to {to_category}",
    )
    credit(
        user, to_category, amount,
        kind=TokenTransaction.TRANSFER_IN,
        description=f"Transfer from {from_category}",
    )
    return user.token_balances()


# ---------------------- Rewards ----------------------

def generate_voucher_code() -> str:
    """HICUT-<6 random alphanumerics>-<last 6 digits of the epoch millis>."""
    alphabet = string.ascii_uppercase + string.digits
    random_part = ''.join(random.choices(alphabet, k=6))
    stamp = str(int(timezone.now().timestamp() * 1000))[-6:]
    return f"HICUT-{random_part}-{stamp}"


@transaction.atomic
def redeem_reward(user, reward_id: str) -> Redemption:
    """
    Spend category tokens on a reward and issue a voucher.

    Raises:
        RewardNotFoundError: unknown reward id
        RewardUnavailableError: reward is switched off
        InsufficientBalanceError: not enough tokens in the reward's category,
            with required/available/shortfall; the ledger is unchanged
    """
    try:
        reward = Reward.objects.get(pk=reward_id)
    except Reward.DoesNotExist:
        raise RewardNotFoundError("Reward not found")

    if not reward.available:
        raise RewardUnavailableError("Reward is not available")

    valid_days = getattr(settings, 'REDEMPTION_VALID_DAYS', 30)
    redemption = Redemption.objects.create(
        user=user,
        reward=reward,
        voucher_code=generate_voucher_code(),
        cost=reward.cost,
        category=reward.category,
        expires_at=timezone.now() + timedelta(days=valid_days),
    )

    # Raising here rolls the redemption row back with the transaction
    debit(
        user, reward.category, reward.cost,
        kind=TokenTransaction.REDEMPTION,
        description=f"Redeemed {reward.title}",
        redemption=redemption,
    )

    logger.info("User %s redeemed %s (%s)", user.pk, reward.pk, redemption.voucher_code)
    return redemption


def get_transactions(user, category: Optional[str] = None, kind: Optional[str] = None):
    """Journal rows for a user, newest first."""
    qs = TokenTransaction.objects.filter(user=user).select_related('ride', 'redemption')
    if category:
        qs = qs.filter(category=validate_category(category))
    if kind:
        qs = qs.filter(kind=kind)
    return qs.order_by('-created_at', '-id')
