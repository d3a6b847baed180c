from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from travel_lens.core.errors import NotFoundError, TravelLensError, ValidationError
from travel_lens.core.models import PhotoSource, SyncItemError, SyncJobResult
from travel_lens.geo.resolver import GeoResolver
from travel_lens.index.places import PlaceRegistryConfig
from travel_lens.index.schema import UserRow
from travel_lens.media.store import MediaStore

from .album import AlbumLister, extract_album_id
from .pipeline import IngestResult, find_by_source_key, ingest_photo, source_dedup_key
from .scanner import scan_photos

logger = logging.getLogger(__name__)

EMPTY_ALBUM_MESSAGE = (
    "No photos found in album. Make sure album has photos and is publicly shared."
)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, TravelLensError):
        return exc.message
    return str(exc) or exc.__class__.__name__


def _record(result: SyncJobResult, outcome: IngestResult) -> None:
    if outcome.duplicate:
        result.skipped += 1
    else:
        result.uploaded += 1


def _record_failure(session: Session, result: SyncJobResult, item: str, exc: Exception) -> None:
    session.rollback()
    result.failed += 1
    result.errors.append(SyncItemError(source_item=item, error=_error_message(exc)))
    logger.warning("Failed to import %s: %s", item, exc)


def sync_album(
    session: Session,
    owner_id: str,
    share_link: str,
    *,
    lister: AlbumLister,
    store: MediaStore,
    geocoder: Optional[GeoResolver] = None,
    place_config: Optional[PlaceRegistryConfig] = None,
) -> SyncJobResult:
    """
    Import every image of a shared album for one user.

    The link is checked before any per-item work; after that nothing aborts the run.
    Items go one at a time in listing order: known items are skipped, failures are
    recorded with their locator and the loop moves on.
    """
    link = (share_link or "").strip()
    if not link:
        raise ValidationError("Album share link is required")
    if extract_album_id(link) is None:
        raise ValidationError("Unrecognized shared album link")
    if session.get(UserRow, owner_id) is None:
        raise NotFoundError(f"User {owner_id} not found")

    validation = lister.validate(link)
    if not validation.valid:
        raise ValidationError(validation.error or "Album link is not accessible")

    locators = list(dict.fromkeys(lister.list_items(link)))
    if not locators:
        raise ValidationError(EMPTY_ALBUM_MESSAGE)
    logger.info(
        "Starting sync for user %s: album %r with %d photos", owner_id, validation.title, len(locators)
    )

    result = SyncJobResult(album_title=validation.title, total=len(locators))
    for index, locator in enumerate(locators, start=1):
        key = source_dedup_key(locator)
        try:
            if find_by_source_key(session, owner_id, key) is not None:
                result.skipped += 1
                continue
            data = lister.download(locator)
            outcome = ingest_photo(
                session,
                owner_id,
                data,
                source=PhotoSource.GOOGLE_PHOTOS,
                store=store,
                geocoder=geocoder,
                source_key=key,
                place_config=place_config,
            )
        except Exception as exc:
            _record_failure(session, result, locator, exc)
            continue
        _record(result, outcome)
        logger.info("Processed photo %d/%d", index, len(locators))

    logger.info(
        "Sync finished for user %s: %d uploaded, %d skipped, %d failed of %d",
        owner_id,
        result.uploaded,
        result.skipped,
        result.failed,
        result.total,
    )
    return result


def ingest_directory(
    session: Session,
    owner_id: str,
    root: str | Path,
    *,
    store: MediaStore,
    geocoder: Optional[GeoResolver] = None,
    place_config: Optional[PlaceRegistryConfig] = None,
) -> SyncJobResult:
    """Bulk-upload every supported image under root, with the same per-item failure contract."""
    root_path = Path(root)
    if not root_path.is_dir():
        raise ValidationError(f"Directory not found or not a folder: {root_path}")
    if session.get(UserRow, owner_id) is None:
        raise NotFoundError(f"User {owner_id} not found")

    files = scan_photos(root_path)
    logger.info("Bulk upload for user %s: %d files under %s", owner_id, len(files), root_path)
    result = SyncJobResult(album_title=root_path.name, total=len(files))
    for path in files:
        try:
            outcome = ingest_photo(
                session,
                owner_id,
                path.read_bytes(),
                source=PhotoSource.BULK_UPLOAD,
                store=store,
                geocoder=geocoder,
                file_name=path.name,
                place_config=place_config,
            )
        except Exception as exc:
            _record_failure(session, result, str(path), exc)
            continue
        _record(result, outcome)
    return result
