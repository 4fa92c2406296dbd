"""
Core ride lifecycle operations.

This module contains all the business logic for managing rides,
kept out of the views layer for testability and reuse.

Every state change is a conditional UPDATE on the state the caller saw, so
two concurrent requests can never both win the same transition.
"""

import logging
import math
from typing import Optional, Dict, Any, List
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.conf import settings
from django.db import transaction
from django.db.models import ExpressionWrapper, F, FloatField, Q
from django.utils import timezone

from accounts.models import TOKEN_CATEGORIES
from common.utils.geo import bounding_box, calculate_distance, longitude_filter
from rides.models import Ride
from services.token_ledger import credit
from services.token_ledger.exceptions import InvalidCategoryError
from wallet.models import TokenTransaction
from .estimates import estimate_route, calculate_token_reward
from .exceptions import (
    RideNotFoundError,
    RideNotAvailableError,
    RideAlreadyJoinedError,
    SelfJoinError,
    NotAuthorizedError,
    NotRideParticipantError,
    InvalidTransitionError,
    RideNotCompletedError,
    AlreadyRatedError,
    InvalidRatingError,
    NoRatedParticipantError,
)

User = get_user_model()
logger = logging.getLogger(__name__)

# Edges of the ride state machine; terminal states have none
ALLOWED_TRANSITIONS = {
    Ride.PENDING: (Ride.ACCEPTED, Ride.CANCELLED),
    Ride.ACCEPTED: (Ride.IN_PROGRESS, Ride.CANCELLED),
    Ride.IN_PROGRESS: (Ride.COMPLETED, Ride.CANCELLED),
}

TRANSITION_TIMESTAMPS = {
    Ride.ACCEPTED: 'accepted_at',
    Ride.IN_PROGRESS: 'started_at',
    Ride.COMPLETED: 'completed_at',
    Ride.CANCELLED: 'cancelled_at',
}

MAX_NEARBY_RIDES = 20


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    error_code: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


def _get_ride(ride_id: int) -> Ride:
    try:
        return Ride.objects.select_related('driver', 'rider').get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError("Ride not found")


def _notify(user_id, event: str, ride: Ride, **data):
    """Mirror a ride event to one participant over the relay."""
    if user_id is None:
        return
    from realtime.notifications import notify_user_event
    notify_user_event(user_id, event, {"rideId": ride.id, "status": ride.status, **data})


# ===================== Driver Operations =====================

@transaction.atomic
def create_ride(
    driver,
    pickup: Dict[str, Any],
    destination: Dict[str, Any],
    token_category: str = 'food',
    **details,
) -> RideResult:
    """
    Publish a new pending ride.

    Args:
        driver: User model instance with a driver-capable role
        pickup: dict with latitude, longitude, address and optional landmark
        destination: dict with latitude, longitude, address and optional landmark
        token_category: category the reward is paid in
        **details: optional scheduled_time, max_passengers, notes,
            emergency_contact_name, emergency_contact_phone

    Returns:
        RideResult with the created ride

    Raises:
        NotAuthorizedError: If the user cannot drive
        InvalidCategoryError: If token_category is unknown
    """
    if not driver.can_drive:
        raise NotAuthorizedError("Only drivers can create rides")
    if token_category not in TOKEN_CATEGORIES:
        raise InvalidCategoryError(f"Invalid token category: {token_category!r}")

    distance_km, duration_minutes = estimate_route(
        pickup['latitude'], pickup['longitude'],
        destination['latitude'], destination['longitude'],
    )
    token_amount = calculate_token_reward(distance_km, duration_minutes)

    now = timezone.now()
    if details.get('scheduled_time') is None:
        details['scheduled_time'] = now

    ride = Ride.objects.create(
        driver=driver,
        status=Ride.PENDING,
        pickup_latitude=pickup['latitude'],
        pickup_longitude=pickup['longitude'],
        pickup_address=pickup.get('address', ''),
        pickup_landmark=pickup.get('landmark', ''),
        destination_latitude=destination['latitude'],
        destination_longitude=destination['longitude'],
        destination_address=destination.get('address', ''),
        destination_landmark=destination.get('landmark', ''),
        route_distance_km=distance_km,
        route_duration_minutes=duration_minutes,
        token_amount=token_amount,
        token_category=token_category,
        requested_at=now,
        **details,
    )

    logger.info(
        "Ride %s created by driver %s: %.2f km, %s min, %s %s tokens",
        ride.id, driver.id, distance_km, duration_minutes, token_amount, token_category,
    )
    return RideResult(success=True, ride=ride, message="Ride created successfully")


# ===================== Rider Operations =====================

def find_nearby_rides(
    latitude: float,
    longitude: float,
    radius: Optional[int] = None,
    exclude_user=None,
) -> List[Ride]:
    """
    Pending rides whose pickup lies within ``radius`` meters, nearest first.

    Each returned ride carries a ``distance_meters`` attribute.
    """
    if radius is None:
        radius = getattr(settings, 'NEARBY_DEFAULT_RADIUS', 2000)

    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, radius)
    qs = Ride.objects.filter(
        longitude_filter('pickup_longitude', min_lon, max_lon),
        status=Ride.PENDING,
        rider__isnull=True,
        pickup_latitude__gte=min_lat,
        pickup_latitude__lte=max_lat,
    ).select_related('driver')
    if exclude_user is not None:
        qs = qs.exclude(driver=exclude_user)

    nearby = []
    for ride in qs:
        distance = calculate_distance(latitude, longitude, ride.pickup_latitude, ride.pickup_longitude)
        if distance <= radius:
            ride.distance_meters = round(distance, 1)
            nearby.append(ride)

    nearby.sort(key=lambda r: r.distance_meters)
    return nearby[:MAX_NEARBY_RIDES]


@transaction.atomic
def join_ride(rider, ride_id: int) -> RideResult:
    """
    Take the single rider seat on a pending ride.

    Checks run in a fixed order so each failure is reported distinctly.

    Raises:
        NotAuthorizedError: If the user cannot ride
        RideNotFoundError: If the ride does not exist
        RideNotAvailableError: If the ride is not pending
        RideAlreadyJoinedError: If someone else holds the seat, including
            a concurrent join that won the race
        SelfJoinError: If the driver tries to join their own ride
    """
    if not rider.can_ride:
        raise NotAuthorizedError("Only riders can join rides")

    ride = _get_ride(ride_id)

    if ride.status != Ride.PENDING:
        raise RideNotAvailableError("Ride is not available for joining")
    if ride.rider_id is not None:
        raise RideAlreadyJoinedError("Ride already has a rider")
    if ride.driver_id == rider.id:
        raise SelfJoinError("Cannot join your own ride")

    now = timezone.now()
    joined = Ride.objects.filter(
        pk=ride.pk,
        status=Ride.PENDING,
        rider__isnull=True,
    ).update(
        rider=rider,
        status=Ride.ACCEPTED,
        accepted_at=now,
        updated_at=now,
        version=F('version') + 1,
    )
    if not joined:
        raise RideAlreadyJoinedError("Ride already has a rider")

    ride.refresh_from_db()
    logger.info("Rider %s joined ride %s", rider.id, ride.id)

    _notify(ride.driver_id, 'ride_joined', ride, riderId=rider.id)

    return RideResult(success=True, ride=ride, message="Successfully joined the ride")


# ===================== Shared Operations =====================

@transaction.atomic
def update_ride_status(user, ride_id: int, new_status: str, reason: str = "") -> RideResult:
    """
    Move a ride along one edge of the state machine.

    pending -> accepted | cancelled
    accepted -> in-progress | cancelled
    in-progress -> completed | cancelled

    Completing a ride triggers token distribution. Cancelling records who
    cancelled and counts it against them.

    Raises:
        RideNotFoundError: If the ride does not exist
        NotRideParticipantError: If the caller is not the driver or the rider
        InvalidTransitionError: If the edge does not exist or the ride
            changed state underneath the caller
    """
    ride = _get_ride(ride_id)

    if not ride.is_participant(user):
        raise NotRideParticipantError("Not authorized to update this ride")

    current = ride.status
    if new_status not in ALLOWED_TRANSITIONS.get(current, ()):
        raise InvalidTransitionError(f"Cannot change ride status from {current} to {new_status}")

    now = timezone.now()
    updates = {
        'status': new_status,
        TRANSITION_TIMESTAMPS[new_status]: now,
        'updated_at': now,
        'version': F('version') + 1,
    }
    if new_status == Ride.CANCELLED:
        updates['cancelled_by'] = user
        updates['cancellation_reason'] = reason

    changed = Ride.objects.filter(pk=ride.pk, status=current).update(**updates)
    if not changed:
        raise InvalidTransitionError("Ride status changed, please refresh")

    if new_status == Ride.CANCELLED:
        User.objects.filter(pk=user.pk).update(
            cancelled_rides=F('cancelled_rides') + 1,
            version=F('version') + 1,
        )

    ride.refresh_from_db()
    logger.info("Ride %s: %s -> %s by user %s", ride.id, current, new_status, user.id)

    distributed = None
    if new_status == Ride.COMPLETED:
        distributed = distribute_ride_tokens(ride)

    _notify(ride.other_participant_id(user.id), 'ride_status_changed', ride, updatedBy=user.id)

    return RideResult(
        success=True,
        ride=ride,
        message="Ride status updated successfully",
        extra={"tokens_distributed": distributed} if distributed is not None else None,
    )


def distribute_ride_tokens(ride: Ride) -> bool:
    """
    Pay the ride's reward to every participant, exactly once.

    The ``tokens_distributed`` flag is claimed with a conditional UPDATE
    inside a savepoint together with the credits. If any credit fails the
    savepoint rolls back, the flag stays False and the ride is left for the
    retry sweep.

    Returns:
        True if this call paid out, False if the ride was already paid,
        is not completed, or the payout failed
    """
    try:
        with transaction.atomic():
            claimed = Ride.objects.filter(
                pk=ride.pk,
                status=Ride.COMPLETED,
                tokens_distributed=False,
            ).update(tokens_distributed=True, version=F('version') + 1)
            if not claimed:
                return False

            participant_ids = [pk for pk in (ride.driver_id, ride.rider_id) if pk is not None]
            participants = User.objects.filter(pk__in=participant_ids)
            for participant in participants:
                credit(
                    participant,
                    ride.token_category,
                    ride.token_amount,
                    kind=TokenTransaction.RIDE_REWARD,
                    description=f"Ride #{ride.id} completion reward",
                    ride=ride,
                )
                User.objects.filter(pk=participant.pk).update(
                    completed_rides=F('completed_rides') + 1,
                    total_rides=F('total_rides') + 1,
                    version=F('version') + 1,
                )
    except Exception:
        logger.exception("Token distribution failed for ride %s, left for retry", ride.pk)
        return False

    ride.tokens_distributed = True
    logger.info(
        "Distributed %s %s tokens for ride %s",
        ride.token_amount, ride.token_category, ride.pk,
    )

    for user_id in (ride.driver_id, ride.rider_id):
        _notify(
            user_id, 'tokens_earned', ride,
            amount=ride.token_amount, category=ride.token_category,
        )
    return True


@transaction.atomic
def rate_ride(user, ride_id: int, rating, feedback: str = "") -> RideResult:
    """
    Rate the other participant of a completed ride, once per side.

    The driver rates the rider and the rider rates the driver; the rated
    user's running average moves in the same transaction.

    Raises:
        InvalidRatingError: If rating is not an integer from 1 to 5
        RideNotFoundError: If the ride does not exist
        RideNotCompletedError: If the ride is not completed
        NotRideParticipantError: If the caller is not a participant
        NoRatedParticipantError: If the driver rates a ride that had no rider
        AlreadyRatedError: If the caller's side is already rated
    """
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise InvalidRatingError("Rating must be between 1 and 5")

    ride = _get_ride(ride_id)

    if ride.status != Ride.COMPLETED:
        raise RideNotCompletedError("Can only rate completed rides")
    if not ride.is_participant(user):
        raise NotRideParticipantError("Not authorized to rate this ride")

    if user.id == ride.driver_id:
        side, rated_user_id = 'driver', ride.rider_id
    else:
        side, rated_user_id = 'rider', ride.driver_id

    if rated_user_id is None:
        raise NoRatedParticipantError("This ride had no rider to rate")

    rating_field = f"rating_by_{side}"
    rated = Ride.objects.filter(
        pk=ride.pk, **{f"{rating_field}__isnull": True}
    ).update(**{
        rating_field: rating,
        f"feedback_by_{side}": feedback,
        'version': F('version') + 1,
    })
    if not rated:
        raise AlreadyRatedError(f"{side.capitalize()} has already rated this ride")

    # Running average: (old * count + new) / (count + 1)
    User.objects.filter(pk=rated_user_id).update(
        rating=ExpressionWrapper(
            (F('rating') * F('rating_count') + rating) / (F('rating_count') + 1.0),
            output_field=FloatField(),
        ),
        rating_count=F('rating_count') + 1,
        version=F('version') + 1,
    )

    ride.refresh_from_db()
    logger.info("Ride %s rated %s by %s %s", ride.id, rating, side, user.id)

    return RideResult(success=True, ride=ride, message="Rating submitted successfully")


# ===================== Queries =====================

def get_ride_for_participant(user, ride_id: int) -> Ride:
    """Fetch a ride the user drives or rides in."""
    ride = _get_ride(ride_id)
    if not ride.is_participant(user):
        raise NotRideParticipantError("Not authorized to view this ride")
    return ride


def get_ride_history(user, status: Optional[str] = None, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    """
    Rides where the user is driver or rider, newest first.

    Returns:
        {"rides": [...], "pagination": {page, limit, total, pages}}
    """
    page = max(int(page), 1)
    limit = max(int(limit), 1)

    qs = Ride.objects.filter(
        Q(driver=user) | Q(rider=user)
    ).select_related('driver', 'rider').order_by('-created_at', '-id')
    if status:
        qs = qs.filter(status=status)

    total = qs.count()
    offset = (page - 1) * limit
    return {
        "rides": list(qs[offset:offset + limit]),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }
