"""
Debounced address search.

`DebouncedSearchController` turns a stream of keystrokes into one settled result list:
- `on_query_change()` restarts a trailing-edge quiet-period timer on every call;
  queries shorter than `min_query_length` clear the results with no network call.
- Every call bumps a monotonic sequence id. A timer firing for an older id is skipped,
  and a search settling for an older id is discarded, so results are never applied
  out of order even when an early request finishes last.
- `dispose()` cancels the pending timer and the current session (idempotent).

Search failures yield an empty list for that session, recorded in `last_error` and
passed to `on_error`; nothing is raised into the keystroke handler.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

from shoplocate.config.settings import Settings, get_settings
from shoplocate.domain.models import AddressSearchResult, SearchSession, SearchState
from shoplocate.errors import SearchFailed

logger = logging.getLogger(__name__)

SearchFn = Callable[[str], Awaitable[Iterable[AddressSearchResult]]]
ResultCallback = Callable[[list[AddressSearchResult]], None]
ErrorCallback = Callable[[SearchFailed], None]

DEFAULT_DEBOUNCE_SECONDS = 0.3
DEFAULT_MIN_QUERY_LENGTH = 2


class DebouncedSearchController:
    """Per-consumer search controller; call `dispose()` on teardown."""

    def __init__(
        self,
        search: SearchFn,
        on_results: ResultCallback,
        *,
        on_error: ErrorCallback | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
        max_results: int | None = None,
    ):
        if debounce_seconds < 0:
            raise ValueError("debounce_seconds must be >= 0")
        if min_query_length < 1:
            raise ValueError("min_query_length must be >= 1")
        self._search = search
        self._on_results = on_results
        self._on_error = on_error
        self._debounce_seconds = float(debounce_seconds)
        self._min_query_length = int(min_query_length)
        self._max_results = max_results

        self._sequence = 0
        self._session: SearchSession | None = None
        self._state = SearchState.IDLE
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._results: list[AddressSearchResult] = []
        self._disposed = False
        self.last_error: SearchFailed | None = None

    @classmethod
    def from_settings(
        cls,
        search: SearchFn,
        on_results: ResultCallback,
        *,
        settings: Settings | None = None,
        on_error: ErrorCallback | None = None,
    ) -> "DebouncedSearchController":
        cfg = (settings or get_settings()).search
        return cls(
            search,
            on_results,
            on_error=on_error,
            debounce_seconds=cfg.debounce_seconds,
            min_query_length=cfg.min_query_length,
            max_results=cfg.max_results,
        )

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def current_session(self) -> SearchSession | None:
        return self._session

    @property
    def results(self) -> list[AddressSearchResult]:
        return list(self._results)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def on_query_change(self, text: str) -> None:
        """Handle one keystroke. Must be called from a running event loop."""
        if self._disposed:
            logger.debug("Ignoring query change on a disposed search controller.")
            return

        self._cancel_timer()
        self._supersede()
        self._sequence += 1
        query = text.strip()

        if len(query) < self._min_query_length:
            self._session = None
            self._state = SearchState.IDLE
            self._apply([])
            return

        session = SearchSession(sequence_id=self._sequence, query=query)
        self._session = session
        self._state = SearchState.PENDING
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._debounce_seconds, self._fire, session)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._cancel_timer()
        self._supersede()
        self._state = SearchState.CANCELLED
        for task in list(self._tasks):
            task.cancel()

    async def flush(self) -> None:
        """Wait until the pending timer (if any) has fired and every search has settled."""
        loop = asyncio.get_running_loop()
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                continue
            if self._timer is None:
                return
            await asyncio.sleep(max(0.0, self._timer.when() - loop.time()))

    def _is_latest(self, session: SearchSession) -> bool:
        return not session.cancelled and session.sequence_id == self._sequence

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _supersede(self) -> None:
        if self._session is not None:
            self._session.cancelled = True

    def _fire(self, session: SearchSession) -> None:
        self._timer = None
        if not self._is_latest(session):
            logger.debug("Skipping superseded address search #%d", session.sequence_id)
            return
        task = asyncio.get_running_loop().create_task(self._run(session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, session: SearchSession) -> None:
        try:
            results = list(await self._search(session.query))
        except Exception as exc:
            if not self._is_latest(session):
                logger.debug("Discarding failure of stale address search #%d: %s", session.sequence_id, exc)
                return
            err = SearchFailed(f"address search for {session.query!r} failed: {exc}")
            err.__cause__ = exc
            self.last_error = err
            logger.warning("Address search failed for %r: %s", session.query, exc)
            self._state = SearchState.RESOLVED
            self._apply([])
            if self._on_error is not None:
                self._notify(self._on_error, err)
            return

        if not self._is_latest(session):
            logger.debug("Discarding stale address search #%d (%r)", session.sequence_id, session.query)
            return

        if self._max_results is not None:
            results = results[: self._max_results]
        self.last_error = None
        self._state = SearchState.RESOLVED
        self._apply(results)

    def _apply(self, results: list[AddressSearchResult]) -> None:
        self._results = results
        self._notify(self._on_results, list(results))

    @staticmethod
    def _notify(callback: Callable, payload: object) -> None:
        try:
            callback(payload)
        except Exception:
            logger.exception("Search result callback raised")
