"""Great-circle distance between two positions."""

import math

EARTH_RADIUS_KM = 6371.0

# Returned when either end has no known position.
UNREACHABLE = math.inf


def distance_km(a, b) -> float:
    """Haversine distance in kilometres between two points.

    Points are anything exposing ``latitude`` and ``longitude`` (normally a
    ``GeoPoint``). If either point is ``None`` the result is ``UNREACHABLE``,
    so callers must check ``is_reachable`` before finite arithmetic.
    """
    if a is None or b is None:
        return UNREACHABLE

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_reachable(distance: float) -> bool:
    return not math.isinf(distance)
