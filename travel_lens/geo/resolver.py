from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from travel_lens.core.env import env_float
from travel_lens.core.errors import DependencyError, ValidationError
from travel_lens.core.models import PostalAddress, ReverseGeocodeResult

logger = logging.getLogger(__name__)

UNKNOWN_PLACE = "Unknown Location"
# Most specific first; the first component present names the place.
PLACE_NAME_TYPES = (
    "neighborhood",
    "sublocality",
    "locality",
    "administrative_area_level_2",
    "administrative_area_level_1",
)


@dataclass
class GeoResolverConfig:
    api_key: Optional[str]
    base_url: str
    postal_api_url: Optional[str]
    timeout: float

    @classmethod
    def from_env(cls) -> "GeoResolverConfig":
        return cls(
            api_key=os.getenv("GOOGLE_MAPS_API_KEY"),
            base_url=os.getenv(
                "GEOCODER_BASE_URL", "https://maps.googleapis.com/maps/api/geocode/json"
            ),
            postal_api_url=os.getenv("PINCODE_API_URL"),
            timeout=env_float("GEOCODER_HTTP_TIMEOUT", 5.0),
        )


class GeoResolver(Protocol):
    def reverse_geocode(self, latitude: float, longitude: float) -> Optional[ReverseGeocodeResult]: ...

    def forward_geocode(self, postal_code: str) -> Optional[PostalAddress]: ...


def _component(components: list[dict[str, Any]], kind: str) -> Optional[str]:
    for component in components:
        if kind in (component.get("types") or []):
            name = component.get("long_name")
            if isinstance(name, str) and name.strip():
                return name.strip()
    return None


def pick_place_name(components: list[dict[str, Any]]) -> str:
    """Choose the most specific human place name from Google address components."""
    for kind in PLACE_NAME_TYPES:
        name = _component(components, kind)
        if name:
            return name
    return UNKNOWN_PLACE


def parse_reverse_geocode(data: dict[str, Any]) -> Optional[ReverseGeocodeResult]:
    if data.get("status") != "OK" or not data.get("results"):
        return None
    result = data["results"][0]
    components = result.get("address_components") or []
    return ReverseGeocodeResult(
        place_name=pick_place_name(components),
        city=_component(components, "locality"),
        state=_component(components, "administrative_area_level_1"),
        country=_component(components, "country"),
        formatted_address=result.get("formatted_address"),
    )


def parse_postal_lookup(data: Any) -> Optional[PostalAddress]:
    # The postal API answers with a one-element list wrapping the payload.
    if isinstance(data, list):
        data = data[0] if data else {}
    if not isinstance(data, dict) or data.get("Status") != "Success":
        return None
    offices = data.get("PostOffice") or []
    if not offices:
        return None
    office = offices[0]
    parts = [office.get(key) for key in ("Name", "District", "State", "Country")]
    return PostalAddress(
        city=office.get("District"),
        state=office.get("State"),
        country=office.get("Country"),
        full_address=", ".join(part for part in parts if part),
    )


class GoogleGeocoder:
    """Geo resolver backed by the Google Geocoding API and a postal-code lookup API."""

    def __init__(self, config: GeoResolverConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self.client = client or httpx.Client(timeout=config.timeout)

    def _get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        try:
            response = self.client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DependencyError(f"Geocoding service request failed: {exc}") from exc

    def reverse_geocode(self, latitude: float, longitude: float) -> Optional[ReverseGeocodeResult]:
        if not self.config.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY not configured; skipping reverse geocoding")
            return None
        data = self._get_json(
            self.config.base_url,
            params={"latlng": f"{latitude},{longitude}", "key": self.config.api_key},
        )
        return parse_reverse_geocode(data)

    def forward_geocode(self, postal_code: str) -> Optional[PostalAddress]:
        code = postal_code.strip()
        if not code.isdigit():
            raise ValidationError("Postal code must be numeric")
        if not self.config.postal_api_url:
            logger.warning("PINCODE_API_URL not configured; skipping postal lookup")
            return None
        data = self._get_json(f"{self.config.postal_api_url.rstrip('/')}/pincode/{code}")
        return parse_postal_lookup(data)
