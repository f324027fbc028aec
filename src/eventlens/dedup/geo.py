"""Great-circle distance between two coordinates."""

from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6_371_000.0


def geo_distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in metres.

    Missing coordinates are not handled here; callers decide what an absent
    location means.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c
