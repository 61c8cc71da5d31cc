# ref_watcher/debounce.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""
Duplicate and burst suppression for change events.

Editors and build tools often produce several notifications for a single
save. Both filters take a `dispatch` callback and decide whether (and
when) an event reaches it:

- ImmediateDedup: dispatches right away unless the event has the same
  (path, operation) key as the previously accepted event. A rejected
  duplicate clears the memory, so the next identical event is accepted
  again. This detects the *next* burst instead of muting a path forever.
- WindowedDebounce: the first event for a key is dispatched after a
  quiescence delay; identical keys arriving before it fires are dropped
  without rescheduling. A burst collapses into one dispatch of its first
  event.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .config import DedupPolicy
from .events import ChangeEvent, Operation

logger = logging.getLogger(__name__)

Dispatch = Callable[[ChangeEvent], None]
TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]

EventKey = tuple[str, Operation]


def _default_timer(interval: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


class EventFilter(ABC):
    """Decides which events reach `dispatch`."""

    def __init__(self, dispatch: Dispatch):
        self.dispatch = dispatch
        self._lock = threading.Lock()
        self._closed = False

    @abstractmethod
    def accept(self, event: ChangeEvent) -> bool:
        """Offer an event.

        Returns:
            True if the event was accepted (dispatched now or scheduled),
            False if it was suppressed.
        """

    def close(self) -> None:
        """Stop accepting events. Safe to call more than once."""
        with self._lock:
            self._closed = True


class ImmediateDedup(EventFilter):
    """Suppress an event identical to the immediately preceding one."""

    def __init__(self, dispatch: Dispatch):
        super().__init__(dispatch)
        self._last_key: Optional[EventKey] = None

    def accept(self, event: ChangeEvent) -> bool:
        with self._lock:
            if self._closed:
                return False
            if event.key == self._last_key:
                # reset: a third identical event counts as new
                self._last_key = None
                logger.debug(f"Duplicate suppressed: {event.path} {event.operation.value}")
                return False
            self._last_key = event.key
        self.dispatch(event)
        return True


class WindowedDebounce(EventFilter):
    """Collapse bursts per (path, operation) into one delayed dispatch."""

    def __init__(
        self,
        dispatch: Dispatch,
        delay: float = 0.1,
        timer_factory: TimerFactory = _default_timer,
    ):
        """
        Args:
            dispatch: Called with the first event of each burst.
            delay: Quiescence window in seconds.
            timer_factory: Builds an unstarted timer; tests inject fakes.
        """
        super().__init__(dispatch)
        self.delay = delay
        self.timer_factory = timer_factory
        self._pending: dict[EventKey, tuple[ChangeEvent, threading.Timer]] = {}
        self._timers: list[threading.Timer] = []

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def accept(self, event: ChangeEvent) -> bool:
        key = event.key
        with self._lock:
            if self._closed:
                return False
            if key in self._pending:
                logger.debug(f"Debounced: {event.path} {event.operation.value}")
                return False
            timer = self.timer_factory(self.delay, lambda: self._fire(key))
            self._pending[key] = (event, timer)
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
            timer.start()
        return True

    def _fire(self, key: EventKey) -> None:
        with self._lock:
            entry = self._pending.pop(key, None)
        if entry is None:
            # already flushed by close()
            return
        self.dispatch(entry[0])

    def close(self) -> None:
        """Stop accepting, dispatch everything still pending, join timers."""
        with self._lock:
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
            timers = list(self._timers)
            self._timers.clear()
        for event, timer in pending:
            timer.cancel()
            self.dispatch(event)
        for timer in timers:
            if timer.is_alive():
                timer.join()


def make_filter(
    policy: DedupPolicy,
    dispatch: Dispatch,
    delay: float = 0.1,
    timer_factory: Optional[TimerFactory] = None,
) -> EventFilter:
    """Build the filter for a configured policy."""
    if policy == DedupPolicy.IMMEDIATE:
        return ImmediateDedup(dispatch)
    if timer_factory is None:
        return WindowedDebounce(dispatch, delay)
    return WindowedDebounce(dispatch, delay, timer_factory)
