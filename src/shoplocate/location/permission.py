"""
Location permission state machine.

`PermissionGate` wraps a platform capability's `check_permission` / `request_permission`
into four states (`unknown`, `prompt`, `granted`, `denied`):
- `check()` refreshes the state from the platform without prompting; failures count as denied.
- `request()` prompts at most once at a time; concurrent callers join the pending prompt.
- `granted` and `denied` short-circuit `request()`; a denied prompt is never re-shown.
  Only a later `check()` reporting something else moves the gate out of `denied`.
"""

from __future__ import annotations

import asyncio
import logging

from shoplocate.domain.models import PermissionState
from shoplocate.errors import PermissionUnavailable
from shoplocate.location.capability import LocationCapability

logger = logging.getLogger(__name__)

_PLATFORM_STATES = {PermissionState.PROMPT, PermissionState.GRANTED, PermissionState.DENIED}


class PermissionGate:
    """Single-flight permission prompt over a `LocationCapability`."""

    def __init__(self, capability: LocationCapability):
        self._capability = capability
        self._state = PermissionState.UNKNOWN
        self._pending: asyncio.Task[bool] | None = None
        self.last_error: PermissionUnavailable | None = None

    @property
    def state(self) -> PermissionState:
        return self._state

    @property
    def prompting(self) -> bool:
        return self._pending is not None

    async def check(self) -> PermissionState:
        """Refresh the state from the platform. Never raises."""
        try:
            state = PermissionState(await self._capability.check_permission())
            if state not in _PLATFORM_STATES:
                raise ValueError(f"unexpected platform permission {state.value!r}")
        except Exception as exc:
            err = PermissionUnavailable(f"permission check failed: {exc}")
            err.__cause__ = exc
            self.last_error = err
            logger.warning("Location permission check failed; treating as denied: %s", exc)
            state = PermissionState.DENIED
        self._state = state
        return state

    async def request(self) -> bool:
        """Prompt the user if the outcome is still open; return whether permission is granted."""
        if self._state is PermissionState.GRANTED:
            return True
        if self._state is PermissionState.DENIED:
            return False

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._prompt())
        else:
            logger.debug("Joining pending location permission prompt.")
        # Shielded so one cancelled caller does not abort the native prompt for the others.
        return await asyncio.shield(self._pending)

    async def _prompt(self) -> bool:
        try:
            granted = bool(await self._capability.request_permission())
        except Exception as exc:
            err = PermissionUnavailable(f"permission prompt failed: {exc}")
            err.__cause__ = exc
            self.last_error = err
            logger.warning("Location permission prompt failed; treating as denied: %s", exc)
            granted = False
        finally:
            self._pending = None

        self._state = PermissionState.GRANTED if granted else PermissionState.DENIED
        logger.info("Location permission %s.", self._state.value)
        return granted
