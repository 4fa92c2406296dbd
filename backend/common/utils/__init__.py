from .geo import bounding_box, calculate_distance, calculate_distance_km, longitude_filter, longitude_ranges
from .responses import (
    domain_error_response,
    error_response,
    success_response,
)
