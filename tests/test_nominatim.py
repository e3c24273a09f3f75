import asyncio

import httpx
import pytest

from shoplocate.config.settings import Settings
from shoplocate.domain.models import Coordinates
from shoplocate.errors import FetchFailed
from shoplocate.location.resolver import SingleFlightResolver
from shoplocate.providers.configured import ConfiguredLocationCapability
from shoplocate.providers.nominatim import NominatimError, NominatimGeocoder

SEARCH_PAYLOAD = [
    {
        "place_id": 1234,
        "lat": "12.9784",
        "lon": "77.6408",
        "display_name": "Indiranagar, Bengaluru, Karnataka, 560038, India",
        "address": {
            "suburb": "Indiranagar",
            "city": "Bengaluru",
            "state": "Karnataka",
            "postcode": "560038",
            "country": "India",
        },
    },
    {"place_id": 99, "display_name": "missing coordinates"},
]

REVERSE_PAYLOAD = {
    "place_id": 555,
    "lat": "12.9716",
    "lon": "77.5946",
    "display_name": "42, MG Road, Shivaji Nagar, Bengaluru, Karnataka, 560001, India",
    "address": {
        "house_number": "42",
        "road": "MG Road",
        "suburb": "Shivaji Nagar",
        "city": "Bengaluru",
        "state": "Karnataka",
        "postcode": "560001",
        "country": "India",
    },
}


def _settings(**device) -> Settings:
    return Settings.model_validate(
        {
            "nominatim": {"base_url": "https://nominatim.example.test/", "country_codes": ["in"]},
            "search": {"max_results": 5},
            "device": device,
        }
    )


def _transport(requests: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/search":
            return httpx.Response(200, json=SEARCH_PAYLOAD)
        if request.url.path == "/reverse":
            if request.url.params.get("lat") == "0.0":
                return httpx.Response(200, json={"error": "Unable to geocode"})
            return httpx.Response(200, json=REVERSE_PAYLOAD)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def test_search_builds_query_and_parses_results():
    requests: list[httpx.Request] = []
    geocoder = NominatimGeocoder(_settings(), transport=_transport(requests))

    results = asyncio.run(geocoder.search("indiranagar"))

    assert len(results) == 1
    first = results[0]
    assert first.place_id == "1234"
    assert first.coordinates == Coordinates(latitude=12.9784, longitude=77.6408)
    assert first.postal_code == "560038"
    assert first.city == "Bengaluru"

    params = requests[0].url.params
    assert params["q"] == "indiranagar"
    assert params["limit"] == "5"
    assert params["countrycodes"] == "in"
    assert params["format"] == "jsonv2"
    assert requests[0].headers["User-Agent"].startswith("shoplocate/")


def test_reverse_parses_structured_address():
    geocoder = NominatimGeocoder(_settings(), transport=_transport([]))

    address = asyncio.run(geocoder.reverse(Coordinates(latitude=12.9716, longitude=77.5946)))

    assert address.street == "42 MG Road"
    assert address.locality == "Shivaji Nagar"
    assert address.summary() == "Bengaluru, Karnataka"


def test_reverse_error_payload_raises():
    geocoder = NominatimGeocoder(_settings(), transport=_transport([]))

    with pytest.raises(NominatimError):
        asyncio.run(geocoder.reverse(Coordinates(latitude=0.0, longitude=0.0)))


def test_http_errors_propagate_from_search():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    geocoder = NominatimGeocoder(_settings(), transport=transport)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(geocoder.search("anything"))


def test_configured_capability_prompts_once_then_reports_granted():
    settings = _settings(permission="prompt", grant_on_request=True)
    capability = ConfiguredLocationCapability(settings.device, NominatimGeocoder(settings, transport=_transport([])))

    async def main():
        before = await capability.check_permission()
        granted = await capability.request_permission()
        after = await capability.check_permission()
        return before, granted, after

    assert asyncio.run(main()) == ("prompt", True, "granted")


def test_configured_capability_without_position_fails():
    settings = _settings(permission="granted")
    capability = ConfiguredLocationCapability(settings.device, NominatimGeocoder(settings, transport=_transport([])))

    with pytest.raises(FetchFailed):
        asyncio.run(capability.get_current_position())


def test_resolver_with_configured_capability_reverse_geocodes():
    requests: list[httpx.Request] = []
    settings = _settings(permission="prompt", latitude=12.9716, longitude=77.5946)
    capability = ConfiguredLocationCapability(settings.device, NominatimGeocoder(settings, transport=_transport(requests)))
    resolver = SingleFlightResolver(capability)

    snapshot = asyncio.run(resolver.resolve())

    assert snapshot is not None
    assert snapshot.source == "device"
    assert snapshot.address.postal_code == "560001"
    assert [r.url.path for r in requests] == ["/reverse"]


def test_resolver_turns_reverse_geocode_failure_into_none():
    settings = _settings(permission="granted", latitude=0.0, longitude=0.0)
    capability = ConfiguredLocationCapability(settings.device, NominatimGeocoder(settings, transport=_transport([])))
    resolver = SingleFlightResolver(capability)

    assert asyncio.run(resolver.resolve()) is None
    assert isinstance(resolver.last_error, FetchFailed)
    assert isinstance(resolver.last_error.__cause__, NominatimError)
