"""
Snapshot fan-out to mounted consumers.

The registry is a notification bus only: it never stores the snapshot (the resolver
owns it). Delivery is synchronous, in registration order, and isolated per subscriber.
A `publish()` issued from inside a callback is queued and delivered after the current
round completes, so no subscriber ever sees rounds interleave.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Hashable

from shoplocate.domain.models import LocationSnapshot
from shoplocate.errors import SubscriberFault

logger = logging.getLogger(__name__)

Subscriber = Callable[[LocationSnapshot | None], None]


class SubscriptionRegistry:
    """Map of subscriber id -> callback with failure-isolated, ordered delivery."""

    def __init__(self) -> None:
        self._subscribers: dict[Hashable, Subscriber] = {}
        self._queue: deque[LocationSnapshot | None] = deque()
        self._delivering = False
        self.last_fault: SubscriberFault | None = None

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, subscriber_id: Hashable) -> bool:
        return subscriber_id in self._subscribers

    def subscribe(self, subscriber_id: Hashable, callback: Subscriber) -> Callable[[], None]:
        """Register `callback` under `subscriber_id` and return its unsubscribe function.

        Re-subscribing an existing id replaces the callback in place (keeping its
        delivery slot). Existing snapshots are not replayed; only future publishes
        are delivered. The returned function only removes this exact callback, so a
        stale handle from a previous mount cannot drop its replacement.
        """
        self._subscribers[subscriber_id] = callback

        def unsubscribe() -> None:
            if self._subscribers.get(subscriber_id) is callback:
                del self._subscribers[subscriber_id]

        return unsubscribe

    def unsubscribe(self, subscriber_id: Hashable) -> None:
        self._subscribers.pop(subscriber_id, None)

    def publish(self, snapshot: LocationSnapshot | None) -> None:
        self._queue.append(snapshot)
        if self._delivering:
            # Re-entrant publish: the outer loop delivers it once this round is done.
            return

        self._delivering = True
        try:
            while self._queue:
                self._deliver(self._queue.popleft())
        finally:
            self._delivering = False

    def _deliver(self, snapshot: LocationSnapshot | None) -> None:
        for subscriber_id, callback in list(self._subscribers.items()):
            # Skip consumers unsubscribed (or replaced) earlier in this round.
            if self._subscribers.get(subscriber_id) is not callback:
                continue
            try:
                callback(snapshot)
            except Exception as exc:
                self.last_fault = SubscriberFault(subscriber_id, exc)
                logger.exception("Location subscriber %r raised during delivery", subscriber_id)
