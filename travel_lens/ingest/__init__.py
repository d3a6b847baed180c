"""Ingestion: EXIF extraction, dedup, album scraping and batch sync."""

from .album import (
    AlbumLister,
    AlbumListerConfig,
    SharedAlbumScraper,
    extract_album_id,
    parse_album_items,
    parse_album_title,
)
from .exif_reader import read_exif
from .pipeline import IngestResult, find_by_source_key, ingest_photo, source_dedup_key
from .scanner import SUPPORTED_EXTENSIONS, scan_photos
from .sync import ingest_directory, sync_album

__all__ = [
    "AlbumLister",
    "AlbumListerConfig",
    "IngestResult",
    "SUPPORTED_EXTENSIONS",
    "SharedAlbumScraper",
    "extract_album_id",
    "find_by_source_key",
    "ingest_directory",
    "ingest_photo",
    "parse_album_items",
    "parse_album_title",
    "read_exif",
    "scan_photos",
    "source_dedup_key",
    "sync_album",
]
