from django.db import models
from django.conf import settings
from django.db.models import Q

from accounts.models import TOKEN_CATEGORY_CHOICES


class TokenTransaction(models.Model):
    """Journal row for every change to a user's token wallet."""

    RIDE_REWARD = 'ride_reward'
    REDEMPTION = 'redemption'
    TRANSFER_OUT = 'transfer_out'
    TRANSFER_IN = 'transfer_in'
    ADJUSTMENT = 'adjustment'

    KIND_CHOICES = [
        (RIDE_REWARD, 'Ride reward'),
        (REDEMPTION, 'Reward redemption'),
        (TRANSFER_OUT, 'Transfer out'),
        (TRANSFER_IN, 'Transfer in'),
        (ADJUSTMENT, 'Adjustment'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='token_transactions'
    )
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    category = models.CharField(max_length=10, choices=TOKEN_CATEGORY_CHOICES)
    # Positive for credits, negative for debits
    amount = models.IntegerField()
    description = models.CharField(max_length=255, blank=True, default='')

    ride = models.ForeignKey(
        'rides.Ride',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='token_transactions'
    )
    redemption = models.ForeignKey(
        'wallet.Redemption',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='token_transactions'
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'token_transactions'
        ordering = ['-created_at', '-id']
        constraints = [
            # One reward per participant per ride
            models.UniqueConstraint(
                fields=['ride', 'user'],
                condition=Q(kind='ride_reward'),
                name='unique_ride_reward_per_user'
            )
        ]

    def __str__(self):
        return f"{self.user} {self.kind} {self.amount} {self.category}"


class Reward(models.Model):
    """A partner reward that can be bought with category tokens."""

    id = models.SlugField(primary_key=True, max_length=64)
    title = models.CharField(max_length=120)
    description = models.CharField(max_length=255, blank=True, default='')
    category = models.CharField(max_length=10, choices=TOKEN_CATEGORY_CHOICES)
    cost = models.PositiveIntegerField()
    brand = models.CharField(max_length=80, blank=True, default='')
    original_price = models.CharField(max_length=40, blank=True, default='')
    discount = models.CharField(max_length=40, blank=True, default='')
    image = models.URLField(max_length=500, blank=True, default='')
    available = models.BooleanField(default=True)
    featured = models.BooleanField(default=False)
    terms = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = 'rewards'
        ordering = ['cost', 'id']

    def __str__(self):
        return f"{self.title} ({self.cost} {self.category})"


class Redemption(models.Model):
    """A reward a user has paid for, with its voucher code."""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('used', 'Used'),
        ('expired', 'Expired'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='redemptions'
    )
    reward = models.ForeignKey(Reward, on_delete=models.PROTECT, related_name='redemptions')
    voucher_code = models.CharField(max_length=32, unique=True)
    cost = models.PositiveIntegerField()
    category = models.CharField(max_length=10, choices=TOKEN_CATEGORY_CHOICES)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    redeemed_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()

    class Meta:
        db_table = 'redemptions'
        ordering = ['-redeemed_at', '-id']

    def __str__(self):
        return f"{self.voucher_code} - {self.reward_id} - {self.user}"
