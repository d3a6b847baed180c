#!/usr/bin/env python
# ruff: noqa: E402
"""
Reverse-geocode the GPS position embedded in a single image, or look up a postal code.

Examples:
  python scripts/geocode_photo.py /absolute/path/to/photo.jpg
  python scripts/geocode_photo.py --postal 560001
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Ensure the repo root is on the import path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from travel_lens.core.env import load_dotenv_if_present
from travel_lens.geo import GeoResolverConfig, GoogleGeocoder
from travel_lens.ingest import read_exif


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Print the place name the geocoder assigns to an image's GPS position."
    )
    parser.add_argument("image", type=Path, nargs="?", help="Path to the image file to resolve.")
    parser.add_argument("--postal", help="Look up this postal code instead of an image.")
    args = parser.parse_args()

    load_dotenv_if_present()
    config = GeoResolverConfig.from_env()
    geocoder = GoogleGeocoder(config)

    if args.postal:
        address = geocoder.forward_geocode(args.postal)
        if address is None:
            sys.exit("No address found (is PINCODE_API_URL set?)")
        print(json.dumps(address.model_dump(), indent=2))
        return

    if args.image is None:
        parser.error("an image path or --postal is required")
    if not config.api_key:
        print("Warning: GOOGLE_MAPS_API_KEY missing; reverse geocoding is disabled.")

    image_path = args.image.expanduser()
    if not image_path.is_file():
        sys.exit(f"Not a file: {image_path}")

    point = read_exif(image_path).gps_point()
    if point is None:
        sys.exit("Image has no GPS coordinates; nothing to resolve.")

    result = geocoder.reverse_geocode(point.latitude, point.longitude)
    print(f"Coordinates: {point.latitude:.6f}, {point.longitude:.6f}")
    if result is None:
        print("No place resolved.")
        return
    print(json.dumps(result.model_dump(), indent=2))


if __name__ == "__main__":
    main()
