"""
Single-flight location resolution.

`SingleFlightResolver` is the one writer of the shared "current location":
- `resolve()` coalesces concurrent callers onto one in-flight permission + fix
  operation (the `ResolutionTicket`), which is discarded as soon as it settles.
  The next call always performs a fresh fetch.
- `set_manual_location()` writes a user-picked snapshot through the same
  update-then-notify path.

Expected failures (permission denied, fix/reverse-geocode errors) resolve to `None`
with the cause kept in `last_error` and logged; callers never need a try/except.

Construct one instance per application (it is the process-wide coordinator);
tests construct isolated instances.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Hashable

from shoplocate.domain.models import (
    LocationSnapshot,
    PermissionState,
    PositionFix,
    utc_now,
)
from shoplocate.errors import FetchFailed, LocationError, PermissionUnavailable
from shoplocate.location.capability import LocationCapability
from shoplocate.location.permission import PermissionGate
from shoplocate.location.registry import Subscriber, SubscriptionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionTicket:
    """One in-flight resolution shared by every concurrent caller."""

    task: asyncio.Task[LocationSnapshot | None]
    started_at: datetime


class SingleFlightResolver:
    """Owns the last-known snapshot and the (at most one) in-flight resolution."""

    def __init__(
        self,
        capability: LocationCapability,
        *,
        gate: PermissionGate | None = None,
        registry: SubscriptionRegistry | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._capability = capability
        self._gate = gate or PermissionGate(capability)
        self._registry = registry or SubscriptionRegistry()
        self._clock = clock
        self._snapshot: LocationSnapshot | None = None
        self._ticket: ResolutionTicket | None = None
        self._last_error: LocationError | None = None

    @property
    def snapshot(self) -> LocationSnapshot | None:
        """Last-known location (read-only; consumers read this on mount)."""
        return self._snapshot

    @property
    def in_flight(self) -> bool:
        return self._ticket is not None

    @property
    def ticket(self) -> ResolutionTicket | None:
        return self._ticket

    @property
    def last_error(self) -> LocationError | None:
        return self._last_error

    @property
    def permission_state(self) -> PermissionState:
        return self._gate.state

    @property
    def gate(self) -> PermissionGate:
        return self._gate

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    def subscribe(self, subscriber_id: Hashable, callback: Subscriber) -> Callable[[], None]:
        return self._registry.subscribe(subscriber_id, callback)

    def unsubscribe(self, subscriber_id: Hashable) -> None:
        self._registry.unsubscribe(subscriber_id)

    async def resolve(self) -> LocationSnapshot | None:
        """Ensure a location is available; join the in-flight resolution if there is one."""
        ticket = self._ticket
        if ticket is None:
            ticket = ResolutionTicket(task=asyncio.ensure_future(self._run()), started_at=self._clock())
            self._ticket = ticket
        else:
            logger.debug("Joining location resolution started at %s", ticket.started_at.isoformat())
        # No caller-initiated cancellation: a cancelled caller leaves the shared fetch running.
        return await asyncio.shield(ticket.task)

    def set_manual_location(self, snapshot: LocationSnapshot) -> LocationSnapshot:
        """Publish a user-picked location; it is always stored with `source="manual"`."""
        if snapshot.source != "manual":
            snapshot = snapshot.model_copy(update={"source": "manual"})
        self._commit(snapshot)
        return snapshot

    async def _run(self) -> LocationSnapshot | None:
        try:
            snapshot = await self._acquire()
        finally:
            # Cleared before notifying, so a subscriber calling resolve() starts fresh.
            self._ticket = None
        if snapshot is not None:
            self._commit(snapshot)
        return snapshot

    async def _acquire(self) -> LocationSnapshot | None:
        state = await self._gate.check()
        if state is PermissionState.DENIED:
            self._fail(PermissionUnavailable("location permission denied"))
            return None
        if state is not PermissionState.GRANTED and not await self._gate.request():
            self._fail(PermissionUnavailable("location permission not granted"))
            return None

        try:
            fix = PositionFix.model_validate(await self._capability.get_current_position())
        except Exception as exc:
            err = FetchFailed(f"{type(exc).__name__}: {exc}")
            err.__cause__ = exc
            self._fail(err)
            return None

        self._last_error = None
        return LocationSnapshot(
            coordinates=fix.coordinates,
            address=fix.address,
            captured_at=self._clock(),
            source="device",
        )

    def _fail(self, err: LocationError) -> None:
        self._last_error = err
        logger.warning("Location unavailable: %s", err)

    def _commit(self, snapshot: LocationSnapshot) -> None:
        self._snapshot = snapshot
        self._registry.publish(snapshot)
