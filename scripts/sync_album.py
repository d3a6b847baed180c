#!/usr/bin/env python
"""
Import a publicly shared Google Photos album for one user.

Examples:
  python scripts/sync_album.py USER_ID https://photos.app.goo.gl/AbCdEf123
  python scripts/sync_album.py USER_ID https://photos.google.com/share/AF1Qip... --validate-only
"""
# ruff: noqa: E402
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Ensure the repo root is on the import path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from travel_lens.core.env import configure_logging, database_url, load_dotenv_if_present
from travel_lens.core.errors import TravelLensError
from travel_lens.geo import GeoResolverConfig, GoogleGeocoder
from travel_lens.index import PlaceRegistryConfig, get_sync_status, init_db, session_factory
from travel_lens.ingest import AlbumListerConfig, SharedAlbumScraper, sync_album
from travel_lens.media import LocalMediaStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync a shared album into a user's photos.")
    parser.add_argument("user_id", help="Owner of the imported photos")
    parser.add_argument("share_link", help="Public share link of the album")
    parser.add_argument(
        "--validate-only", action="store_true", help="Check the link and print the album title"
    )
    args = parser.parse_args()

    load_dotenv_if_present()
    configure_logging()
    lister = SharedAlbumScraper(AlbumListerConfig.from_env())

    if args.validate_only:
        validation = lister.validate(args.share_link)
        print(json.dumps(validation.model_dump(), indent=2))
        return 0 if validation.valid else 1

    engine = init_db(database_url())
    SessionLocal = session_factory(engine)
    with SessionLocal() as session:
        try:
            result = sync_album(
                session,
                args.user_id,
                args.share_link,
                lister=lister,
                store=LocalMediaStore.from_env(),
                geocoder=GoogleGeocoder(GeoResolverConfig.from_env()),
                place_config=PlaceRegistryConfig.from_env(),
            )
        except TravelLensError as exc:
            print(f"Sync failed ({exc.kind}): {exc.message}", file=sys.stderr)
            return 1
        status = get_sync_status(session, args.user_id)

    print(json.dumps(result.model_dump(), indent=2))
    print(json.dumps({"sync_status": status.model_dump()}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
