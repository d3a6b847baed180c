from __future__ import annotations

import math

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return approximate great-circle distance in meters."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def bounding_box(
    latitude: float, longitude: float, radius_meters: float
) -> tuple[float, float, float, float]:
    """
    (min_lat, max_lat, min_lon, max_lon) enclosing a circle; used as a cheap SQL prefilter.

    Degrees come from the same sphere as haversine_meters. Longitudes are not wrapped:
    a box crossing the antimeridian has min_lon < -180 or max_lon > 180, see longitude_ranges.
    """
    dlat = math.degrees(radius_meters / EARTH_RADIUS_METERS)
    min_lat = max(-90.0, latitude - dlat)
    max_lat = min(90.0, latitude + dlat)
    # Widest parallel inside the box sets the longitude span.
    widest = max(abs(min_lat), abs(max_lat))
    cos_lat = math.cos(math.radians(widest))
    if cos_lat < 1e-9 or max_lat >= 90.0 or min_lat <= -90.0:
        return min_lat, max_lat, -180.0, 180.0
    dlon = math.degrees(radius_meters / (EARTH_RADIUS_METERS * cos_lat))
    if dlon >= 180.0:
        return min_lat, max_lat, -180.0, 180.0
    return min_lat, max_lat, longitude - dlon, longitude + dlon


def longitude_ranges(min_lon: float, max_lon: float) -> list[tuple[float, float]]:
    """Split a longitude span into ranges inside [-180, 180]."""
    if min_lon < -180.0:
        return [(-180.0, max_lon), (min_lon + 360.0, 180.0)]
    if max_lon > 180.0:
        return [(min_lon, 180.0), (-180.0, max_lon - 360.0)]
    return [(min_lon, max_lon)]
