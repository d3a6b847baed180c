import httpx
import pytest

from travel_lens.core.errors import DependencyError, ValidationError
from travel_lens.geo import (
    GeoResolverConfig,
    GoogleGeocoder,
    parse_postal_lookup,
    parse_reverse_geocode,
    pick_place_name,
)


def _component(name: str, *types: str) -> dict:
    return {"long_name": name, "short_name": name, "types": list(types)}


COMPONENTS = [
    _component("12th Main", "route"),
    _component("HAL 2nd Stage", "sublocality", "sublocality_level_1"),
    _component("Bengaluru", "locality", "political"),
    _component("Bangalore Urban", "administrative_area_level_2", "political"),
    _component("Karnataka", "administrative_area_level_1", "political"),
    _component("India", "country", "political"),
]


def _config(**overrides) -> GeoResolverConfig:
    values = dict(
        api_key="key",
        base_url="https://geo.test/geocode/json",
        postal_api_url="https://postal.test",
        timeout=1.0,
    )
    values.update(overrides)
    return GeoResolverConfig(**values)


def test_place_name_preference_order() -> None:
    assert pick_place_name(COMPONENTS) == "HAL 2nd Stage"
    with_neighborhood = [_component("Indiranagar", "neighborhood", "political"), *COMPONENTS]
    assert pick_place_name(with_neighborhood) == "Indiranagar"
    assert pick_place_name(COMPONENTS[2:]) == "Bengaluru"
    assert pick_place_name(COMPONENTS[3:]) == "Bangalore Urban"
    assert pick_place_name(COMPONENTS[4:]) == "Karnataka"
    assert pick_place_name([_component("India", "country")]) == "Unknown Location"


def test_parse_reverse_geocode() -> None:
    data = {
        "status": "OK",
        "results": [{"address_components": COMPONENTS, "formatted_address": "12th Main, Bengaluru"}],
    }
    result = parse_reverse_geocode(data)
    assert result is not None
    assert result.place_name == "HAL 2nd Stage"
    assert (result.city, result.state, result.country) == ("Bengaluru", "Karnataka", "India")
    assert result.formatted_address == "12th Main, Bengaluru"
    assert parse_reverse_geocode({"status": "ZERO_RESULTS", "results": []}) is None


def test_parse_postal_lookup() -> None:
    payload = [
        {
            "Status": "Success",
            "PostOffice": [
                {"Name": "Indiranagar", "District": "Bangalore", "State": "Karnataka", "Country": "India"}
            ],
        }
    ]
    address = parse_postal_lookup(payload)
    assert address is not None
    assert (address.city, address.state, address.country) == ("Bangalore", "Karnataka", "India")
    assert address.full_address == "Indiranagar, Bangalore, Karnataka, India"
    assert parse_postal_lookup([{"Status": "Error", "PostOffice": None}]) is None
    assert parse_postal_lookup([]) is None


def test_geocoder_calls_google_with_latlng() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json={"status": "OK", "results": [{"address_components": COMPONENTS}]})

    geocoder = GoogleGeocoder(_config(), client=httpx.Client(transport=httpx.MockTransport(handler)))
    result = geocoder.reverse_geocode(12.97, 77.64)

    assert result is not None and result.place_name == "HAL 2nd Stage"
    assert seen[0].params["latlng"] == "12.97,77.64"
    assert seen[0].params["key"] == "key"


def test_geocoder_without_key_does_nothing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    geocoder = GoogleGeocoder(_config(api_key=None), client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert geocoder.reverse_geocode(12.97, 77.64) is None


def test_geocoder_errors_become_dependency_errors() -> None:
    geocoder = GoogleGeocoder(
        _config(), client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    )
    with pytest.raises(DependencyError):
        geocoder.reverse_geocode(12.97, 77.64)


def test_forward_geocode_postal_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/pincode/560038"
        return httpx.Response(
            200,
            json=[
                {
                    "Status": "Success",
                    "PostOffice": [
                        {"Name": "Indiranagar", "District": "Bangalore", "State": "Karnataka", "Country": "India"}
                    ],
                }
            ],
        )

    geocoder = GoogleGeocoder(_config(), client=httpx.Client(transport=httpx.MockTransport(handler)))

    address = geocoder.forward_geocode(" 560038 ")
    assert address is not None and address.city == "Bangalore"
    with pytest.raises(ValidationError):
        geocoder.forward_geocode("56A038")
    assert GoogleGeocoder(_config(postal_api_url=None)).forward_geocode("560038") is None
