"""
Geographic utility functions.

This module provides core geospatial calculations used throughout the application.
Distances are straight-line (haversine) approximations; nothing here knows about roads.
"""

import math
from math import radians, cos, sin, asin, sqrt
from typing import List, Tuple

from django.db.models import Q

EARTH_RADIUS_METERS = 6371000


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    return c * EARTH_RADIUS_METERS


def calculate_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Same as calculate_distance, in kilometers."""
    return calculate_distance(lat1, lon1, lat2, lon2) / 1000.0


def bounding_box(lat: float, lon: float, radius_meters: float) -> Tuple[float, float, float, float]:
    """
    Get a lat/lon box that fully contains the circle around a point.

    Used as an SQL prefilter before the exact haversine check.

    Returns:
        (min_lat, max_lat, min_lon, max_lon)
    """
    lat = float(lat)
    lon = float(lon)

    lat_offset = radius_meters / 111000.0
    cos_lat = abs(math.cos(math.radians(lat)))
    if cos_lat < 1e-6:
        lon_offset = 180.0
    else:
        lon_offset = min(radius_meters / (111000.0 * cos_lat), 180.0)

    return (
        max(lat - lat_offset, -90.0),
        min(lat + lat_offset, 90.0),
        lon - lon_offset,
        lon + lon_offset,
    )


def longitude_ranges(min_lon: float, max_lon: float) -> List[Tuple[float, float]]:
    """
    Split a longitude span from bounding_box into ranges inside [-180, 180].

    A span that crosses the antimeridian becomes two ranges, one on each side.
    """
    if max_lon - min_lon >= 360.0:
        return [(-180.0, 180.0)]
    if min_lon < -180.0:
        return [(min_lon + 360.0, 180.0), (-180.0, max_lon)]
    if max_lon > 180.0:
        return [(min_lon, 180.0), (-180.0, max_lon - 360.0)]
    return [(min_lon, max_lon)]


def longitude_filter(field: str, min_lon: float, max_lon: float) -> Q:
    """ORed range lookups on ``field`` covering the (possibly wrapped) span."""
    query = Q()
    for low, high in longitude_ranges(min_lon, max_lon):
        query |= Q(**{f"{field}__gte": low, f"{field}__lte": high})
    return query
