from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from travel_lens.core.errors import DependencyError, NotFoundError, ValidationError
from travel_lens.core.models import ApprovalStatus, ExifData, GeoPoint, PhotoSource, StoredAsset
from travel_lens.geo.resolver import GeoResolver
from travel_lens.index.places import PlaceRegistryConfig, resolve_place
from travel_lens.index.schema import ExifDataRow, PhotoRow, UserRow
from travel_lens.media.store import MediaStore

from .exif_reader import read_exif
from .scanner import MIME_TYPES

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Either a freshly persisted photo or a skip because the source item was already imported."""

    photo: Optional[PhotoRow] = None
    duplicate_of: Optional[str] = None

    @property
    def duplicate(self) -> bool:
        return self.duplicate_of is not None


def source_dedup_key(locator: str) -> str:
    """Dedup key for a scraped source item: MD5 of its locator string."""
    return hashlib.md5(locator.encode("utf-8")).hexdigest()


def find_by_source_key(session: Session, owner_id: str, source_key: str) -> Optional[PhotoRow]:
    return session.scalar(
        select(PhotoRow).where(PhotoRow.owner_id == owner_id, PhotoRow.source_key == source_key)
    )


def _exif_row(photo_id: str, exif: ExifData) -> ExifDataRow:
    return ExifDataRow(
        photo_id=photo_id,
        datetime_original=exif.datetime_original,
        gps_lat=exif.gps_lat,
        gps_lon=exif.gps_lon,
        gps_altitude=exif.gps_altitude,
        camera_make=exif.camera_make,
        camera_model=exif.camera_model,
        lens_model=exif.lens_model,
        software=exif.software,
        orientation=exif.orientation,
        exposure_time=exif.exposure_time,
        f_number=exif.f_number,
        iso=exif.iso,
        focal_length=exif.focal_length,
    )


def _default_folder(owner_id: str, source: PhotoSource) -> str:
    folder = f"users/{owner_id}"
    if source is PhotoSource.GOOGLE_PHOTOS:
        folder += "/google-photos"
    return folder


def _default_file_name(asset: StoredAsset, source_key: Optional[str]) -> str:
    ext = "png" if asset.format == "PNG" else "webp" if asset.format == "WEBP" else "jpg"
    if source_key:
        return f"google_photo_{source_key}.{ext}"
    return f"{asset.asset_id}.{ext}"


def _store_media(store: MediaStore, data: bytes, folder: str) -> StoredAsset:
    try:
        return store.store(data, folder)
    except DependencyError:
        raise
    except Exception as exc:
        raise DependencyError(f"Media store write failed: {exc}") from exc


def _discard_media(store: MediaStore, asset_id: str) -> None:
    try:
        store.delete(asset_id)
    except Exception as exc:
        logger.warning("Could not remove orphaned asset %s: %s", asset_id, exc)


def apply_location(
    session: Session,
    row: PhotoRow,
    point: GeoPoint,
    *,
    geocoder: Optional[GeoResolver],
    place_config: Optional[PlaceRegistryConfig] = None,
) -> None:
    """
    Stamp coordinates on the photo, then best-effort reverse geocode and link a place.

    Geocoding or place failures are logged and leave the photo with coordinates only.
    """
    row.latitude = point.latitude
    row.longitude = point.longitude
    if geocoder is None:
        return
    try:
        geocoded = geocoder.reverse_geocode(point.latitude, point.longitude)
    except Exception as exc:
        logger.warning(
            "Reverse geocoding failed for %.5f,%.5f: %s", point.latitude, point.longitude, exc
        )
        return
    if geocoded is None:
        return

    row.place_name = geocoded.place_name
    row.city = geocoded.city
    row.state = geocoded.state
    row.country = geocoded.country
    try:
        place = resolve_place(session, point, geocoded, config=place_config)
    except Exception as exc:
        session.rollback()
        logger.warning("Place resolution failed for %s: %s", geocoded.place_name, exc)
        return
    row.place_id = place.id


def ingest_photo(
    session: Session,
    owner_id: str,
    data: bytes,
    *,
    source: PhotoSource,
    store: MediaStore,
    geocoder: Optional[GeoResolver] = None,
    source_key: Optional[str] = None,
    manual_point: Optional[GeoPoint] = None,
    folder: Optional[str] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    place_config: Optional[PlaceRegistryConfig] = None,
) -> IngestResult:
    """
    Turn one source image into a pending Photo, exactly once per (owner, source_key).

    - A known source_key returns a duplicate result without touching the media store.
    - A manual coordinate always wins over the EXIF GPS position.
    - Only a failed media store write is fatal; EXIF and geocoding degrade silently.
    """
    if not data:
        raise ValidationError("Image payload is empty")
    if source is PhotoSource.GOOGLE_PHOTOS and not source_key:
        raise ValidationError("Album imports require a source dedup key")
    if session.get(UserRow, owner_id) is None:
        raise NotFoundError(f"User {owner_id} not found")

    if source_key:
        existing = find_by_source_key(session, owner_id, source_key)
        if existing is not None:
            logger.debug("Source item %s already imported as %s", source_key, existing.id)
            return IngestResult(duplicate_of=existing.id)

    exif = read_exif(data)
    asset = _store_media(store, data, folder or _default_folder(owner_id, source))

    row = PhotoRow(
        id=asset.asset_id,
        owner_id=owner_id,
        source=source.value,
        source_key=source_key,
        url=asset.url,
        file_name=file_name or _default_file_name(asset, source_key),
        byte_size=asset.byte_size,
        width=asset.width,
        height=asset.height,
        mime_type=mime_type or MIME_TYPES.get(asset.format or "", "image/jpeg"),
        approval_status=ApprovalStatus.PENDING.value,
        reward_given=False,
    )
    point = manual_point or exif.gps_point()
    if point is not None:
        apply_location(session, row, point, geocoder=geocoder, place_config=place_config)
    if not exif.is_empty():
        row.exif = _exif_row(row.id, exif)

    session.add(row)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        _discard_media(store, asset.asset_id)
        # Lost a race with a concurrent import of the same source item.
        existing = find_by_source_key(session, owner_id, source_key) if source_key else None
        if existing is not None:
            return IngestResult(duplicate_of=existing.id)
        raise
    except Exception:
        session.rollback()
        _discard_media(store, asset.asset_id)
        raise

    logger.info(
        "Ingested photo %s for user %s (source=%s, place=%s)",
        row.id,
        owner_id,
        source.value,
        row.place_name or "-",
    )
    return IngestResult(photo=row)
