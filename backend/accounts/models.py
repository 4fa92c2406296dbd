from django.db import models
from django.contrib.auth.models import AbstractUser
from django.core.validators import MaxValueValidator, MinValueValidator

TOKEN_CATEGORIES = ('food', 'travel', 'clothing', 'coupons')

TOKEN_CATEGORY_CHOICES = [
    ('food', 'Food'),
    ('travel', 'Travel'),
    ('clothing', 'Clothing'),
    ('coupons', 'Coupons'),
]


def balance_field(category: str) -> str:
    """Column holding the balance for a token category."""
    return f"tokens_{category}"


class User(AbstractUser):
    """Extended user model with role, token wallet and ride stats"""
    ROLE_CHOICES = [
        ('rider', 'Rider'),
        ('driver', 'Driver'),
        ('both', 'Rider & Driver'),
    ]
    DRIVER_ROLES = ('driver', 'both')
    RIDER_ROLES = ('rider', 'both')

    # Identity
    email = models.EmailField(unique=True)
    phone_number = models.CharField(max_length=15, unique=True, null=True, blank=True)

    # Role & profile
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='rider')
    avatar = models.ImageField(upload_to='avatars/', null=True, blank=True)
    bio = models.TextField(max_length=500, blank=True, default='')

    # Token wallet (tokens_total is always the sum of the four categories)
    tokens_food = models.PositiveIntegerField(default=0)
    tokens_travel = models.PositiveIntegerField(default=0)
    tokens_clothing = models.PositiveIntegerField(default=0)
    tokens_coupons = models.PositiveIntegerField(default=0)
    tokens_total = models.PositiveIntegerField(default=0)

    # Stats
    total_rides = models.PositiveIntegerField(default=0)
    completed_rides = models.PositiveIntegerField(default=0)
    cancelled_rides = models.PositiveIntegerField(default=0)
    rating = models.FloatField(
        default=5.0,
        validators=[MinValueValidator(1.0), MaxValueValidator(5.0)]
    )
    rating_count = models.PositiveIntegerField(default=0)

    # Current location (last write wins)
    current_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    location_updated_at = models.DateTimeField(null=True, blank=True)
    address = models.CharField(max_length=255, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')

    # Presence
    is_available = models.BooleanField(default=False)
    availability_updated_at = models.DateTimeField(null=True, blank=True)
    last_seen = models.DateTimeField(null=True, blank=True)

    # Account status (users are deactivated, never deleted)
    is_banned = models.BooleanField(default=False)
    ban_reason = models.CharField(max_length=255, blank=True, default='')

    # Bumped by every atomic ledger/stats write
    version = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['role'], name='users_role_idx'),
            models.Index(fields=['current_latitude', 'current_longitude'], name='users_location_idx'),
        ]

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    def save(self, *args, **kwargs):
        self.tokens_total = sum(self.token_balance(c) for c in TOKEN_CATEGORIES)
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and any(
            balance_field(c) in update_fields for c in TOKEN_CATEGORIES
        ):
            kwargs['update_fields'] = set(update_fields) | {'tokens_total'}
        super().save(*args, **kwargs)

    # ---------------------- Role helpers ----------------------

    @property
    def can_drive(self) -> bool:
        return self.role in self.DRIVER_ROLES

    @property
    def can_ride(self) -> bool:
        return self.role in self.RIDER_ROLES

    # ---------------------- Wallet helpers ----------------------

    def token_balance(self, category: str) -> int:
        return getattr(self, balance_field(category))

    def token_balances(self) -> dict:
        balances = {c: self.token_balance(c) for c in TOKEN_CATEGORIES}
        balances['total'] = self.tokens_total
        return balances
