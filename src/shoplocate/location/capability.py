"""Contract for the platform location capability consumed by the coordinator."""

from __future__ import annotations

from typing import Literal, Protocol

from shoplocate.domain.models import AddressSearchResult, PositionFix

PlatformPermission = Literal["prompt", "granted", "denied"]


class LocationCapability(Protocol):
    """Platform adapter: permission check/prompt, one-shot fix, address search.

    Timeouts and retries, if any, belong to the implementation; the coordinator
    treats every raised exception as an opaque failure.
    """

    async def check_permission(self) -> PlatformPermission:
        """Report the current permission without prompting the user."""

    async def request_permission(self) -> bool:
        """Show the native prompt once and return whether it was granted."""

    async def get_current_position(self) -> PositionFix:
        """Return one position fix with its reverse-geocoded address (may raise)."""

    async def search_address(self, query: str) -> list[AddressSearchResult]:
        """Return address candidates for free text (may raise)."""
