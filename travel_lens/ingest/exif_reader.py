from __future__ import annotations

import logging
import numbers
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from travel_lens.core.models import ExifData

logger = logging.getLogger(__name__)

DATETIME_ORIGINAL_TAG = 36867  # EXIF DateTimeOriginal
DATETIME_TAG = 306  # EXIF DateTime fallback
EXIF_IFD_TAG = 34665  # ExifOffset; camera settings live in this sub-IFD
GPS_INFO_TAG = 34853  # GPSInfo
ORIENTATION_TAG = 274
MAKE_TAG = 271
MODEL_TAG = 272
SOFTWARE_TAG = 305
LENS_MODEL_TAG = 42036
EXPOSURE_TIME_TAG = 33434
FNUMBER_TAG = 33437
ISO_TAG = 34855  # PhotographicSensitivity
FOCAL_LENGTH_TAG = 37386


def _to_float(value: object) -> Optional[float]:
    if isinstance(value, tuple) and len(value) == 2 and value[1]:
        return float(value[0]) / float(value[1])
    if isinstance(value, numbers.Real):
        return float(value)
    return None


def _to_text(value: object) -> Optional[str]:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value or "").strip().strip("\x00").strip()
    return text or None


def _convert_gps_coordinate(values: object, ref: object) -> Optional[float]:
    if not isinstance(values, tuple) or len(values) != 3 or ref is None:
        return None
    parts = [_to_float(v) for v in values]
    if any(p is None for p in parts):
        return None
    degrees, minutes, seconds = parts  # type: ignore[misc]
    coordinate = degrees + minutes / 60.0 + seconds / 3600.0
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    if isinstance(ref, str) and ref.strip("\x00").upper() in {"S", "W"}:
        coordinate *= -1
    return coordinate


def _parse_datetime(value: object) -> Optional[datetime]:
    text = _to_text(value)
    if not text:
        return None
    try:
        return datetime.strptime(text, "%Y:%m:%d %H:%M:%S").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def _merged_tags(exif: Image.Exif) -> dict[int, Any]:
    """Top-level IFD0 tags overlaid with the Exif sub-IFD, which wins on conflict."""
    tags: dict[int, Any] = dict(exif)
    try:
        tags.update(exif.get_ifd(EXIF_IFD_TAG))
    except Exception:
        pass
    return tags


def _read_gps(exif: Image.Exif) -> dict[str, Optional[float]]:
    gps_info: Any = exif.get(GPS_INFO_TAG)
    if gps_info is not None and not isinstance(gps_info, dict):
        # Pillow stores the GPS IFD offset as an int; need to dereference.
        try:
            gps_info = exif.get_ifd(GPS_INFO_TAG)
        except Exception:
            gps_info = None
    if not isinstance(gps_info, dict):
        return {}
    return {
        "gps_lat": _convert_gps_coordinate(gps_info.get(2), gps_info.get(1)),
        "gps_lon": _convert_gps_coordinate(gps_info.get(4), gps_info.get(3)),
        "gps_altitude": _to_float(gps_info.get(6)),
    }


def _read_camera(tags: dict[int, Any]) -> dict[str, Any]:
    lens = _to_text(tags.get(LENS_MODEL_TAG))
    iso = tags.get(ISO_TAG)
    if isinstance(iso, tuple) and iso:
        iso = iso[0]
    orientation = tags.get(ORIENTATION_TAG)
    return {
        "datetime_original": _parse_datetime(tags.get(DATETIME_ORIGINAL_TAG))
        or _parse_datetime(tags.get(DATETIME_TAG)),
        "camera_make": _to_text(tags.get(MAKE_TAG)),
        "camera_model": _to_text(tags.get(MODEL_TAG)),
        "software": _to_text(tags.get(SOFTWARE_TAG)),
        "lens_model": lens.lower() if lens else None,
        "orientation": orientation if isinstance(orientation, int) else None,
        "exposure_time": _to_float(tags.get(EXPOSURE_TIME_TAG)),
        "f_number": _to_float(tags.get(FNUMBER_TAG)),
        "iso": iso if isinstance(iso, int) else None,
        "focal_length": _to_float(tags.get(FOCAL_LENGTH_TAG)),
    }


def read_exif(source: bytes | str | Path) -> ExifData:
    """
    Extract EXIF metadata from raw image bytes or a file path.

    Best-effort: anything unreadable yields an empty ExifData rather than an error.
    """
    stream = BytesIO(source) if isinstance(source, bytes) else source
    try:
        with Image.open(stream) as img:
            exif = img.getexif()
            if not exif:
                return ExifData()
            values = _read_camera(_merged_tags(exif))
            values.update(_read_gps(exif))
    except Exception as exc:
        # Ingest should never fail because of malformed EXIF.
        logger.debug("EXIF extraction failed: %s", exc)
        return ExifData()
    return ExifData(**values)
