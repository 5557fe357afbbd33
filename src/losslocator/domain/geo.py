"""Great-circle distance helpers."""

from __future__ import annotations

import math
from typing import Final

EARTH_RADIUS_MILES: Final[float] = 3959.0
MILES_PER_KM: Final[float] = 0.621371


def distance_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in miles; callers validate coordinate ranges."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(min(1.0, math.sqrt(a)))


def km_to_miles(km: float) -> float:
    return km * MILES_PER_KM


def bounding_box(lat: float, lng: float, radius_miles: float) -> tuple[float, float, float, float]:
    """Return ``(min_lat, max_lat, min_lng, max_lng)`` enclosing a circle of ``radius_miles``.

    Used as a cheap store-side prefilter before exact distances are computed.
    """

    d_lat = math.degrees(radius_miles / EARTH_RADIUS_MILES)
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-6:
        return max(-90.0, lat - d_lat), min(90.0, lat + d_lat), -180.0, 180.0
    # 1% slack covers the wider longitude span away from the centre latitude
    d_lng = math.degrees(radius_miles / (EARTH_RADIUS_MILES * cos_lat)) * 1.01
    return (
        max(-90.0, lat - d_lat),
        min(90.0, lat + d_lat),
        max(-180.0, lng - d_lng),
        min(180.0, lng + d_lng),
    )
