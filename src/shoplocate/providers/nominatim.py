"""
Nominatim geocoding adapter (OpenStreetMap).

This module is responsible only for:
- free-text address search (`/search`),
- reverse geocoding a coordinate (`/reverse`),
- parsing responses into `AddressSearchResult` / `AddressInfo`.

It does not debounce, cache or retry; the search controller and the caller own that.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from shoplocate.config.settings import Settings
from shoplocate.core.http import get_json
from shoplocate.domain.models import AddressInfo, AddressSearchResult, Coordinates
from shoplocate.errors import LocationError

logger = logging.getLogger(__name__)

_CITY_KEYS = ("city", "town", "village", "municipality")
_LOCALITY_KEYS = ("suburb", "neighbourhood", "quarter", "city_district")


class NominatimError(LocationError):
    """Raised when Nominatim returns an error payload."""


def _first(raw: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = raw.get(key)
        if value:
            return str(value)
    return None


def parse_address(payload: dict[str, Any]) -> AddressInfo:
    """Parse one Nominatim place (jsonv2, addressdetails=1) into `AddressInfo`."""
    raw = payload.get("address") or {}
    street = " ".join(p for p in (raw.get("house_number"), raw.get("road")) if p) or None
    return AddressInfo(
        formatted_address=str(payload.get("display_name") or ""),
        street=street,
        locality=_first(raw, _LOCALITY_KEYS),
        city=_first(raw, _CITY_KEYS),
        state=raw.get("state"),
        postal_code=raw.get("postcode"),
        country=raw.get("country"),
    )


def parse_search_result(payload: dict[str, Any]) -> AddressSearchResult:
    address = parse_address(payload)
    place_id = payload.get("place_id")
    return AddressSearchResult(
        formatted_address=address.formatted_address,
        coordinates=Coordinates(latitude=float(payload["lat"]), longitude=float(payload["lon"])),
        place_id=str(place_id) if place_id is not None else None,
        postal_code=address.postal_code,
        city=address.city,
        state=address.state,
        country=address.country,
    )


class NominatimGeocoder:
    """Async Nominatim client for search and reverse geocoding."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._settings.nominatim.base_url.rstrip("/")

    def _common_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"format": "jsonv2", "addressdetails": 1}
        cfg = self._settings.nominatim
        if cfg.language:
            params["accept-language"] = cfg.language
        return params

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        return await get_json(
            f"{self.base_url}/{path}",
            params=params,
            headers={"User-Agent": self._settings.nominatim.user_agent},
            timeout_seconds=self._settings.app.http_timeout_seconds,
            transport=self._transport,
        )

    async def search(self, query: str, *, limit: int | None = None) -> list[AddressSearchResult]:
        """Return address candidates for `query`, skipping entries that fail to parse."""
        params = self._common_params()
        params["q"] = query
        params["limit"] = int(limit or self._settings.search.max_results)
        if self._settings.nominatim.country_codes:
            params["countrycodes"] = ",".join(self._settings.nominatim.country_codes)

        logger.debug("Searching Nominatim for %r", query)
        payload = await self._get("search", params)
        if not isinstance(payload, list):
            raise NominatimError(f"unexpected search payload type {type(payload).__name__}")

        results: list[AddressSearchResult] = []
        for item in payload:
            try:
                results.append(parse_search_result(item))
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.debug("Skipping unparseable Nominatim result: %r", item)
        return results

    async def reverse(self, coordinates: Coordinates) -> AddressInfo:
        """Reverse geocode a coordinate.

        Raises:
            NominatimError: If Nominatim reports no address for the point.
        """
        params = self._common_params()
        params["lat"] = coordinates.latitude
        params["lon"] = coordinates.longitude

        payload = await self._get("reverse", params)
        if not isinstance(payload, dict) or "error" in payload:
            detail = payload.get("error") if isinstance(payload, dict) else payload
            raise NominatimError(f"reverse geocoding failed: {detail}")
        return parse_address(payload)
