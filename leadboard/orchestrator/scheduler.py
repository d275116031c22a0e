"""Debounced scheduling of refetches triggered by filter edits."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from ..models import QueryDescriptor

LOGGER = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 0.3

TimerFactory = Callable[[float, Callable[[], None]], Any]


class QueryScheduler:
    """Collapses rapid query changes into one fetch after a quiet period.

    The latest submitted query wins: a new submission cancels the pending
    timer instead of stacking another one. A query whose fingerprint matches
    the last one that actually triggered a fetch is dropped.
    """

    def __init__(
        self,
        callback: Callable[[QueryDescriptor], Any],
        *,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self._callback = callback
        self._delay = delay_seconds
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._pending: Optional[QueryDescriptor] = None
        self._generation = 0
        self._last_fingerprint: Optional[str] = None

    @property
    def pending(self) -> Optional[QueryDescriptor]:
        with self._lock:
            return self._pending

    @property
    def last_fingerprint(self) -> Optional[str]:
        with self._lock:
            return self._last_fingerprint

    def submit(self, query: QueryDescriptor) -> bool:
        """Schedule *query*; return ``False`` when it would be a redundant fetch."""

        fingerprint = query.fingerprint()
        with self._lock:
            if self._pending is not None and self._pending.fingerprint() == fingerprint:
                return False
            if fingerprint == self._last_fingerprint:
                # Edits settled back on the state already fetched.
                self._cancel_locked()
                return False

            self._cancel_locked()
            self._pending = query
            self._generation += 1
            generation = self._generation
            if self._delay > 0:
                timer = self._timer_factory(self._delay, lambda: self._fire(generation))
                timer.daemon = True
                self._timer = timer
                timer.start()

        if self._delay <= 0:
            self._fire(generation)
        return True

    def flush(self) -> None:
        """Run the pending query now instead of waiting for the timer."""

        with self._lock:
            generation = self._generation
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._fire(generation)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def mark_fetched(self, query: QueryDescriptor) -> None:
        """Record *query* as fetched by a path that bypassed the scheduler."""

        with self._lock:
            self._last_fingerprint = query.fingerprint()

    def forget(self) -> None:
        """Forget the last fetched fingerprint so the next submission always runs."""

        with self._lock:
            self._last_fingerprint = None

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._pending is None:
                return
            query = self._pending
            self._pending = None
            self._timer = None
            fingerprint = query.fingerprint()
            if fingerprint == self._last_fingerprint:
                return
            self._last_fingerprint = fingerprint

        LOGGER.debug("Fetching leads for %s", fingerprint)
        self._callback(query)


__all__ = ["QueryScheduler", "DEFAULT_DELAY_SECONDS"]
