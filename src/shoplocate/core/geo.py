"""
Geospatial helpers.

We keep a tiny geometry layer here so callers can compute and present distances
without pulling in heavier GIS dependencies.
"""

from __future__ import annotations

from math import asin, cos, radians, sin, sqrt
from typing import Callable, Iterable, TypeVar

from shoplocate.domain.models import Coordinates

EARTH_RADIUS_KM = 6371.0

T = TypeVar("T")


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Compute great-circle (haversine) distance in kilometres between two points.

    The value is not rounded; see `round_km` / `format_distance` for presentation.
    """
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    dlat = radians(b.latitude - a.latitude)
    dlon = radians(b.longitude - a.longitude)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Floating point can push h a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_KM * asin(min(1.0, sqrt(h)))


def round_km(km: float, ndigits: int = 1) -> float:
    return round(km, ndigits)


def format_distance(km: float) -> str:
    """Render a distance for display: metres below 1 km, otherwise km with one decimal."""
    if km < 1:
        return f"{int(round(km * 1000))} m"
    return f"{round_km(km):.1f} km"


def sort_by_distance(
    items: Iterable[T],
    origin: Coordinates,
    get_coordinates: Callable[[T], Coordinates | None],
    *,
    max_km: float | None = None,
) -> list[tuple[T, float]]:
    """Order items nearest-first relative to `origin`.

    Items without coordinates are dropped; `max_km` optionally limits the radius.
    Ties keep their input order.
    """
    out: list[tuple[T, float]] = []
    for item in items:
        coords = get_coordinates(item)
        if coords is None:
            continue
        d = distance_km(origin, coords)
        if max_km is not None and d > max_km:
            continue
        out.append((item, d))
    out.sort(key=lambda pair: pair[1])
    return out
