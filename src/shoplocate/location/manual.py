"""Build manual snapshots from a picked search result plus user-entered details."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from shoplocate.domain.models import AddressInfo, AddressSearchResult, LocationSnapshot, utc_now


def snapshot_from_search_result(
    result: AddressSearchResult,
    *,
    locality: str | None = None,
    postal_code: str | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> LocationSnapshot:
    """Turn a confirmed search result into a `source="manual"` snapshot.

    A non-blank `locality` is prefixed onto the formatted address; a non-blank
    `postal_code` takes precedence over the one the search returned.
    """
    locality = (locality or "").strip() or None
    formatted = result.formatted_address
    if locality:
        formatted = f"{locality}, {formatted}"

    address = AddressInfo(
        formatted_address=formatted,
        locality=locality,
        city=result.city,
        state=result.state,
        postal_code=(postal_code or "").strip() or result.postal_code,
        country=result.country,
    )
    return LocationSnapshot(
        coordinates=result.coordinates,
        address=address,
        captured_at=clock(),
        source="manual",
    )
