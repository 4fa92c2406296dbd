"""
Route and reward estimates for a new ride.

There is no routing engine: distance is the haversine straight line and the
duration assumes a constant average speed.
"""

import math
from typing import Tuple

from django.conf import settings

from common.utils.geo import calculate_distance_km

MIN_TOKEN_REWARD = 10


def estimate_route(
    pickup_latitude: float,
    pickup_longitude: float,
    destination_latitude: float,
    destination_longitude: float,
) -> Tuple[float, int]:
    """
    Returns:
        (distance_km, duration_minutes)
    """
    distance_km = calculate_distance_km(
        pickup_latitude, pickup_longitude,
        destination_latitude, destination_longitude,
    )
    speed_kmh = getattr(settings, 'AVERAGE_SPEED_KMH', 40)
    duration_minutes = math.ceil(distance_km / speed_kmh * 60)
    return distance_km, duration_minutes


def calculate_token_reward(distance_km: float, duration_minutes: int) -> int:
    # 3 tokens per km + 2 per 15 minutes, never below the floor
    return max(MIN_TOKEN_REWARD, math.ceil(distance_km * 3 + duration_minutes / 15 * 2))
