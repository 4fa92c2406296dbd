"""
Ride management service - Core ride lifecycle operations.

This module handles:
    - Creating rides and estimating their reward
    - Finding and joining nearby rides
    - Status transitions and token distribution
    - Ratings and ride history
"""

from .ride_lifecycle import (
    RideResult,
    create_ride,
    find_nearby_rides,
    join_ride,
    update_ride_status,
    distribute_ride_tokens,
    rate_ride,
    get_ride_history,
    get_ride_for_participant,
    ALLOWED_TRANSITIONS,
)

from .estimates import estimate_route, calculate_token_reward

from .exceptions import (
    RideError,
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

__all__ = [
    # Lifecycle operations
    "RideResult",
    "create_ride",
    "find_nearby_rides",
    "join_ride",
    "update_ride_status",
    "distribute_ride_tokens",
    "rate_ride",
    "get_ride_history",
    "get_ride_for_participant",
    "ALLOWED_TRANSITIONS",
    # Estimates
    "estimate_route",
    "calculate_token_reward",
    # Exceptions
    "RideError",
    "RideNotFoundError",
    "RideNotAvailableError",
    "RideAlreadyJoinedError",
    "SelfJoinError",
    "NotAuthorizedError",
    "NotRideParticipantError",
    "InvalidTransitionError",
    "RideNotCompletedError",
    "AlreadyRatedError",
    "InvalidRatingError",
    "NoRatedParticipantError",
]
