"""
Domain models (Pydantic).

These types represent the stable "contract" between the location coordinator and
its collaborators:
- what a location capability returns (`PositionFix`, `AddressSearchResult`)
- what subscribers observe (`LocationSnapshot`)
- permission and search bookkeeping (`PermissionState`, `SearchSession`)

Snapshots and their parts are frozen: a new resolution produces a new object, so
subscribers can compare by identity or `captured_at`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_LOCATION = "Unknown Location"

_LEADING_NUMBER = re.compile(r"^\d")


def utc_now() -> datetime:
    return datetime.now(UTC)


class Coordinates(BaseModel):
    """A latitude/longitude pair in decimal degrees.

    Ranges are the provider's contract (latitude in [-90, 90], longitude in
    [-180, 180]) and are not re-validated here.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class AddressInfo(BaseModel):
    """Structured address attached to a snapshot (all parts optional)."""

    model_config = ConfigDict(frozen=True)

    formatted_address: str = ""
    street: str | None = None
    locality: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None

    def summary(self, compact: bool = False) -> str:
        """Short display text for the address.

        Full mode prefers "city, state"; compact mode prefers "locality, city",
        guessing the locality from the first named part of the formatted address.
        Both fall back to the formatted address, then to "Unknown Location".
        """
        if compact:
            locality = self.locality or _first_named_part(self.formatted_address)
            parts = [p for p in (locality, self.city) if p]
            if parts:
                return ", ".join(dict.fromkeys(parts))

        parts = [p for p in (self.city, self.state) if p]
        if parts:
            return ", ".join(parts)
        return self.formatted_address.strip() or UNKNOWN_LOCATION


def _first_named_part(formatted_address: str) -> str | None:
    # Skip house numbers, pincodes and very short fragments.
    for part in formatted_address.split(","):
        part = part.strip()
        if len(part) <= 3 or _LEADING_NUMBER.match(part):
            continue
        return part
    return None


class AddressSearchResult(BaseModel):
    """One candidate returned by an address search."""

    model_config = ConfigDict(frozen=True)

    formatted_address: str
    coordinates: Coordinates
    place_id: str | None = None
    postal_code: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None


class PositionFix(BaseModel):
    """A one-shot device position, optionally reverse-geocoded."""

    coordinates: Coordinates
    address: AddressInfo | None = None


class LocationSnapshot(BaseModel):
    """The shared "current location" observed by every subscriber."""

    model_config = ConfigDict(frozen=True)

    coordinates: Coordinates
    address: AddressInfo | None = None
    captured_at: datetime = Field(default_factory=utc_now)
    source: Literal["device", "manual"] = "device"

    def display_text(self, compact: bool = False) -> str:
        if self.address is not None:
            return self.address.summary(compact=compact)
        return f"{self.coordinates.latitude:.4f}, {self.coordinates.longitude:.4f}"


class PermissionState(str, Enum):
    UNKNOWN = "unknown"
    PROMPT = "prompt"
    GRANTED = "granted"
    DENIED = "denied"

    @property
    def label(self) -> str:
        if self is PermissionState.GRANTED:
            return "Location enabled"
        if self is PermissionState.DENIED:
            return "Location disabled"
        return "Location permission needed"


class SearchState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


@dataclass
class SearchSession:
    """One debounced query; only the newest session may publish results."""

    sequence_id: int
    query: str
    cancelled: bool = False
