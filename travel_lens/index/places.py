from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from travel_lens.core.env import env_float
from travel_lens.core.models import GeoPoint, ReverseGeocodeResult
from travel_lens.geo.distance import bounding_box, haversine_meters, longitude_ranges

from .schema import PlaceRow

logger = logging.getLogger(__name__)

# Striped by name so the lock set stays fixed; names sharing a stripe just serialize together.
_CREATION_LOCK_STRIPES = 64
_creation_locks = tuple(threading.Lock() for _ in range(_CREATION_LOCK_STRIPES))


@dataclass
class PlaceRegistryConfig:
    proximity_meters: float = 1000.0

    @classmethod
    def from_env(cls) -> "PlaceRegistryConfig":
        return cls(proximity_meters=env_float("PLACE_PROXIMITY_METERS", 1000.0))


def _creation_lock(name: str) -> threading.Lock:
    return _creation_locks[hash(name.casefold()) % _CREATION_LOCK_STRIPES]


def find_nearby_place(
    session: Session,
    name: str,
    latitude: float,
    longitude: float,
    *,
    radius_meters: float,
) -> Optional[PlaceRow]:
    """Closest place with exactly this name within radius_meters, if any."""
    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, radius_meters)
    candidates = session.scalars(
        select(PlaceRow).where(
            PlaceRow.name == name,
            PlaceRow.latitude.between(min_lat, max_lat),
            or_(
                *(
                    PlaceRow.longitude.between(low, high)
                    for low, high in longitude_ranges(min_lon, max_lon)
                )
            ),
        )
    ).all()
    best: PlaceRow | None = None
    best_distance: float | None = None
    for place in candidates:
        distance = haversine_meters(latitude, longitude, place.latitude, place.longitude)
        if distance > radius_meters:
            continue
        if best is None or distance < (best_distance or float("inf")):
            best = place
            best_distance = distance
    return best


def resolve_place(
    session: Session,
    point: GeoPoint,
    geocoded: ReverseGeocodeResult,
    *,
    config: Optional[PlaceRegistryConfig] = None,
) -> PlaceRow:
    """
    Return the canonical place for a geocoded coordinate, creating it on first reference.

    A match needs both the same resolved name and a location within the proximity
    threshold. New places start with photo_count 0 and are committed immediately so
    concurrent resolvers in this process see them.
    """
    config = config or PlaceRegistryConfig.from_env()
    name = geocoded.place_name.strip()

    existing = find_nearby_place(
        session,
        name,
        point.latitude,
        point.longitude,
        radius_meters=config.proximity_meters,
    )
    if existing:
        return existing

    with _creation_lock(name):
        existing = find_nearby_place(
            session,
            name,
            point.latitude,
            point.longitude,
            radius_meters=config.proximity_meters,
        )
        if existing:
            return existing
        place = PlaceRow(
            name=name,
            latitude=point.latitude,
            longitude=point.longitude,
            city=geocoded.city,
            state=geocoded.state,
            country=geocoded.country,
            photo_count=0,
        )
        session.add(place)
        session.commit()
    logger.info("Created place %s (%s) at %.5f,%.5f", place.id, name, point.latitude, point.longitude)
    return place


def adjust_photo_count(session: Session, place_id: int, delta: int) -> None:
    """Atomic counter update; part of the caller's transaction."""
    session.execute(
        update(PlaceRow)
        .where(PlaceRow.id == place_id)
        .values(photo_count=PlaceRow.photo_count + delta)
    )
