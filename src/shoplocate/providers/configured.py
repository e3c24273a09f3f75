"""
Settings-backed location capability.

Hosts without a GPS (kiosks, back-office tools, the CLI) get their "device" position
from configuration. Permission answers come from `device.permission`; a prompt is
granted or refused according to `device.grant_on_request`. Reverse geocoding and
address search are delegated to a `NominatimGeocoder`.
"""

from __future__ import annotations

from shoplocate.config.settings import DeviceSettings
from shoplocate.domain.models import AddressSearchResult, Coordinates, PositionFix
from shoplocate.errors import FetchFailed
from shoplocate.location.capability import PlatformPermission
from shoplocate.providers.nominatim import NominatimGeocoder


class ConfiguredLocationCapability:
    """`LocationCapability` whose position and permission come from `DeviceSettings`."""

    def __init__(self, device: DeviceSettings, geocoder: NominatimGeocoder, *, reverse_geocode: bool = True):
        self._device = device
        self._geocoder = geocoder
        self._reverse_geocode = reverse_geocode
        self._permission: PlatformPermission = device.permission

    async def check_permission(self) -> PlatformPermission:
        return self._permission

    async def request_permission(self) -> bool:
        if self._permission == "prompt":
            self._permission = "granted" if self._device.grant_on_request else "denied"
        return self._permission == "granted"

    async def get_current_position(self) -> PositionFix:
        if self._device.latitude is None or self._device.longitude is None:
            raise FetchFailed("no device position configured (device.latitude / device.longitude)")
        coords = Coordinates(latitude=self._device.latitude, longitude=self._device.longitude)
        address = await self._geocoder.reverse(coords) if self._reverse_geocode else None
        return PositionFix(coordinates=coords, address=address)

    async def search_address(self, query: str) -> list[AddressSearchResult]:
        return await self._geocoder.search(query)
