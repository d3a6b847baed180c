#!/usr/bin/env python
"""
Bulk-upload a local photo directory for one user.

Usage:
  python scripts/ingest.py USER_ID /absolute/path/to/photos
  python scripts/ingest.py USER_ID ~/Pictures/trip --create-user "Asha Rao"
  DATABASE_URL=sqlite+pysqlite:///./travel_lens.db python scripts/ingest.py USER_ID ~/Pictures
"""
# ruff: noqa: E402
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the repo root is on the import path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from travel_lens.core.env import configure_logging, database_url, load_dotenv_if_present
from travel_lens.geo import GeoResolverConfig, GoogleGeocoder
from travel_lens.index import PlaceRegistryConfig, UserRow, init_db, session_factory
from travel_lens.ingest import ingest_directory
from travel_lens.media import LocalMediaStore


def main() -> None:
    parser = argparse.ArgumentParser(description="Bulk-upload a photo directory for a user.")
    parser.add_argument("user_id", help="Owner of the uploaded photos")
    parser.add_argument("directory", type=Path, help="Directory containing photos (recursed)")
    parser.add_argument(
        "--create-user",
        metavar="NAME",
        help="Create the user with this display name if it does not exist yet",
    )
    args = parser.parse_args()

    load_dotenv_if_present()
    configure_logging()
    engine = init_db(database_url())
    SessionLocal = session_factory(engine)
    target = args.directory
    if not target.exists() or not target.is_dir():
        raise FileNotFoundError(f"Directory not found or not a folder: {target}")

    with SessionLocal() as session:
        if args.create_user and session.get(UserRow, args.user_id) is None:
            session.add(UserRow(id=args.user_id, name=args.create_user))
            session.commit()
        result = ingest_directory(
            session,
            args.user_id,
            target,
            store=LocalMediaStore.from_env(),
            geocoder=GoogleGeocoder(GeoResolverConfig.from_env()),
            place_config=PlaceRegistryConfig.from_env(),
        )

    if result.total == 0:
        print(f"No supported photos found under {target}")
        return
    print(
        f"Upload complete: {result.uploaded} uploaded, {result.skipped} skipped, "
        f"{result.failed} failed of {result.total} files from {target}"
    )
    for error in result.errors:
        print(f"  failed: {error.source_item}: {error.error}")


if __name__ == "__main__":
    main()
