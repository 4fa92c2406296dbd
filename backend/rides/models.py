import math

from django.db import models
from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.utils import timezone

from accounts.models import TOKEN_CATEGORY_CHOICES


class Ride(models.Model):
    """A ride offered by a driver and joined by at most one rider."""

    PENDING = 'pending'
    ACCEPTED = 'accepted'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (ACCEPTED, 'Accepted'),
        (IN_PROGRESS, 'In Progress'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    # Participants
    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='rides_as_driver'
    )

    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='rides_as_rider'
    )

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=PENDING)

    # Pickup location
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.CharField(max_length=255)
    pickup_landmark = models.CharField(max_length=255, blank=True, default='')

    # Destination
    destination_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    destination_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    destination_address = models.CharField(max_length=255)
    destination_landmark = models.CharField(max_length=255, blank=True, default='')

    # Route (straight-line estimate, fixed at creation)
    route_distance_km = models.FloatField()
    route_duration_minutes = models.PositiveIntegerField()
    route_polyline = models.TextField(blank=True, default='')

    # Token reward
    token_amount = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    token_category = models.CharField(max_length=10, choices=TOKEN_CATEGORY_CHOICES, default='food')
    tokens_distributed = models.BooleanField(default=False)

    # Timing
    scheduled_time = models.DateTimeField(default=timezone.now)
    requested_at = models.DateTimeField(default=timezone.now)
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Ratings: one per side, each set at most once
    rating_by_driver = models.PositiveSmallIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    feedback_by_driver = models.TextField(max_length=500, blank=True, default='')
    rating_by_rider = models.PositiveSmallIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    feedback_by_rider = models.TextField(max_length=500, blank=True, default='')

    # Extra details
    notes = models.CharField(max_length=200, blank=True, default='')
    max_passengers = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(4)]
    )
    emergency_contact_name = models.CharField(max_length=100, blank=True, default='')
    emergency_contact_phone = models.CharField(max_length=20, blank=True, default='')

    # Cancellation
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cancelled_rides_set'
    )
    cancellation_reason = models.TextField(blank=True, default='')

    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rides'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['driver', 'status'], name='rides_driver_status_idx'),
            models.Index(fields=['rider', 'status'], name='rides_rider_status_idx'),
            models.Index(fields=['status', 'scheduled_time'], name='rides_status_sched_idx'),
            models.Index(fields=['pickup_latitude', 'pickup_longitude'], name='rides_pickup_idx'),
        ]

    def __str__(self):
        return f"Ride #{self.id} - {self.driver} - {self.status}"

    def is_participant(self, user) -> bool:
        user_id = getattr(user, 'id', user)
        return user_id is not None and user_id in (self.driver_id, self.rider_id)

    def other_participant_id(self, user_id):
        if user_id == self.driver_id:
            return self.rider_id
        if user_id == self.rider_id:
            return self.driver_id
        return None

    @property
    def actual_duration(self):
        """Minutes between start and completion, if both happened."""
        if self.completed_at and self.started_at:
            return round((self.completed_at - self.started_at).total_seconds() / 60)
        return None

    @property
    def estimated_cost(self) -> int:
        # 5 tokens per km + 2 tokens per started 10 minutes, minimum 10
        distance_cost = math.ceil(self.route_distance_km * 5)
        time_cost = math.ceil(self.route_duration_minutes / 10) * 2
        return max(distance_cost + time_cost, 10)
