"""
Distance calculation using the Haversine formula.

Assumption
----------
Road distance normally comes from the maps collaborator when a booking
is created.  When the caller does not supply one we fall back to the
great-circle (Haversine) distance so a booking can still be priced
without an external API key.

Complexity: O(1) per call.
"""

import math

from .entities import Location

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def planned_distance_km(pickup: Location, destination: Location) -> float:
    """Planned trip distance rounded to 0.1 km."""
    return round(
        haversine_km(
            pickup.latitude, pickup.longitude,
            destination.latitude, destination.longitude,
        ),
        1,
    )
