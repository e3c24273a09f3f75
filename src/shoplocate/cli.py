"""
shoplocate CLI entrypoint.

This CLI is intended for quick local checks of the location coordinator without a UI:
- `distance`: great-circle distance between two coordinates
- `search`: one debounced address search through the configured Nominatim endpoint
- `resolve`: run the single-flight resolver against the settings-backed device capability
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from shoplocate.config.settings import Settings, get_settings
from shoplocate.core.geo import distance_km, format_distance, round_km
from shoplocate.core.logging import configure_logging
from shoplocate.domain.models import AddressSearchResult, Coordinates, LocationSnapshot
from shoplocate.location.resolver import SingleFlightResolver
from shoplocate.location.search import DebouncedSearchController
from shoplocate.providers.configured import ConfiguredLocationCapability
from shoplocate.providers.nominatim import NominatimGeocoder


def _device_settings(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply `resolve` flags on top of `settings.device` (returns a new Settings)."""
    update: dict[str, Any] = {}
    if args.lat is not None:
        update["latitude"] = float(args.lat)
    if args.lon is not None:
        update["longitude"] = float(args.lon)
    if args.permission is not None:
        update["permission"] = args.permission
    if args.deny_prompt:
        update["grant_on_request"] = False
    if not update:
        return settings
    device = settings.device.model_copy(update=update)
    return settings.model_copy(update={"device": device})


def _cmd_distance(args: argparse.Namespace) -> int:
    a = Coordinates(latitude=args.lat1, longitude=args.lon1)
    b = Coordinates(latitude=args.lat2, longitude=args.lon2)
    km = distance_km(a, b)
    if args.json:
        print(json.dumps({"km": km, "rounded_km": round_km(km), "display": format_distance(km)}))
        return 0
    print(format_distance(km))
    return 0


async def _search_once(settings: Settings, query: str) -> tuple[list[AddressSearchResult], str | None]:
    geocoder = NominatimGeocoder(settings)
    collected: list[AddressSearchResult] = []

    def on_results(results: list[AddressSearchResult]) -> None:
        collected[:] = results

    controller = DebouncedSearchController.from_settings(geocoder.search, on_results, settings=settings)
    try:
        controller.on_query_change(query)
        await controller.flush()
    finally:
        controller.dispose()
    error = str(controller.last_error) if controller.last_error else None
    return collected, error


def _cmd_search(args: argparse.Namespace) -> int:
    settings = get_settings()
    results, error = asyncio.run(_search_once(settings, args.query))
    if error:
        print(f"Search failed: {error}")
        return 1

    if args.json:
        print(json.dumps([r.model_dump(mode="json") for r in results], ensure_ascii=False, indent=2))
        return 0
    if not results:
        print(f'No locations found for "{args.query}"')
        return 0
    for i, r in enumerate(results, start=1):
        print(f"{i:>2}. {r.formatted_address}  ({r.coordinates.latitude:.5f}, {r.coordinates.longitude:.5f})")
    return 0


async def _resolve_once(settings: Settings, *, reverse_geocode: bool) -> tuple[LocationSnapshot | None, str | None]:
    capability = ConfiguredLocationCapability(
        settings.device, NominatimGeocoder(settings), reverse_geocode=reverse_geocode
    )
    resolver = SingleFlightResolver(capability)
    snapshot = await resolver.resolve()
    error = str(resolver.last_error) if resolver.last_error else None
    return snapshot, error


def _cmd_resolve(args: argparse.Namespace) -> int:
    settings = _device_settings(get_settings(), args)
    snapshot, error = asyncio.run(_resolve_once(settings, reverse_geocode=not args.no_reverse))
    if snapshot is None:
        print(f"No location available: {error or 'unknown cause'}")
        return 1

    if args.json:
        print(json.dumps(snapshot.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return 0
    coords = snapshot.coordinates
    print(f"{snapshot.display_text()}  ({coords.latitude:.4f}, {coords.longitude:.4f}) [{snapshot.source}]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the shoplocate CLI."""
    parser = argparse.ArgumentParser(prog="shoplocate")
    parser.add_argument("--log-level", default=None, help="Override app.log_level (e.g. DEBUG)")
    sub = parser.add_subparsers(dest="command", required=True)

    dist = sub.add_parser("distance", help="Great-circle distance between two coordinates.")
    dist.add_argument("lat1", type=float)
    dist.add_argument("lon1", type=float)
    dist.add_argument("lat2", type=float)
    dist.add_argument("lon2", type=float)
    dist.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    dist.set_defaults(func=_cmd_distance)

    search = sub.add_parser("search", help="Search addresses through the configured Nominatim endpoint.")
    search.add_argument("query")
    search.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    search.set_defaults(func=_cmd_search)

    res = sub.add_parser("resolve", help="Resolve the current location from the configured device settings.")
    res.add_argument("--lat", type=float, default=None)
    res.add_argument("--lon", type=float, default=None)
    res.add_argument("--permission", choices=["prompt", "granted", "denied"], default=None)
    res.add_argument("--deny-prompt", action="store_true", help="Refuse the permission prompt")
    res.add_argument("--no-reverse", action="store_true", help="Skip reverse geocoding")
    res.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    res.set_defaults(func=_cmd_resolve)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m shoplocate.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
