"""Coordinate math and the geocoding collaborator."""

from .distance import bounding_box, haversine_meters, longitude_ranges
from .resolver import (
    GeoResolver,
    GeoResolverConfig,
    GoogleGeocoder,
    parse_postal_lookup,
    parse_reverse_geocode,
    pick_place_name,
)

__all__ = [
    "GeoResolver",
    "GeoResolverConfig",
    "GoogleGeocoder",
    "bounding_box",
    "haversine_meters",
    "longitude_ranges",
    "parse_postal_lookup",
    "parse_reverse_geocode",
    "pick_place_name",
]
