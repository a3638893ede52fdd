"""Deferred actions on the orchestration loop.

Anything with a ``call_later(delay, callback)`` method returning a handle
with ``cancel()`` works as a scheduler; a running ``asyncio`` event loop is
the one used in production.
"""

from __future__ import annotations

import logging
from typing import Callable

from pushscribe.interfaces import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Calls ``tick`` every ``interval_s`` until it returns False or is cancelled."""

    def __init__(
        self,
        scheduler: Scheduler,
        interval_s: float,
        tick: Callable[[], bool],
    ) -> None:
        self._scheduler = scheduler
        self._interval_s = interval_s
        self._tick = tick
        self._handle: TimerHandle | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        self.cancel()
        self._active = True
        self._schedule()

    def cancel(self) -> None:
        self._active = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        self._handle = self._scheduler.call_later(self._interval_s, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if not self._active:
            return
        if self._tick() and self._active:
            self._schedule()
        else:
            self._active = False


def cancel_handle(handle: TimerHandle | None) -> None:
    """Cancel a pending handle if there is one."""
    if handle is not None:
        handle.cancel()
