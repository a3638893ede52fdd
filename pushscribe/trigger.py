"""Push-to-talk trigger detection.

Turns the raw modifier-flag stream into one clean start and one clean stop
per hold of the configured trigger key. Short taps, key chords that toggle
the flag as a side effect, release chatter and missed release events are
all absorbed here.
"""

from __future__ import annotations

import logging
from typing import Callable

from pushscribe.interfaces import Scheduler, TimerHandle
from pushscribe.timers import RepeatingTimer, cancel_handle
from pushscribe.types import EventKind, KeyState, RawKeyEvent, TriggerKey

logger = logging.getLogger(__name__)

DEFAULT_PRESS_THRESHOLD_S = 0.3
DEFAULT_RELEASE_DEBOUNCE_S = 0.18
DEFAULT_WATCHDOG_INTERVAL_S = 0.05


def _noop() -> None:
    pass


class TriggerDetector:
    """
    State machine for a single trigger key.

    IDLE -> ARMED_PENDING on key down, HELD once the press threshold elapses
    with the flag still set, STOP_PENDING when the flag drops, and back to
    IDLE once the release debounce confirms the drop.

    All methods must be called from the orchestration loop that owns
    ``scheduler``.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        live_flags: Callable[[], int] | None = None,
        press_threshold_s: float = DEFAULT_PRESS_THRESHOLD_S,
        release_debounce_s: float = DEFAULT_RELEASE_DEBOUNCE_S,
        watchdog_interval_s: float = DEFAULT_WATCHDOG_INTERVAL_S,
    ) -> None:
        self._scheduler = scheduler
        self._live_flags = live_flags
        self._press_threshold_s = press_threshold_s
        self._release_debounce_s = release_debounce_s

        self._key: TriggerKey | None = None
        self._on_start: Callable[[], None] = _noop
        self._on_stop: Callable[[], None] = _noop

        self._state = KeyState.IDLE
        self._flag_active = False
        self._press_timer: TimerHandle | None = None
        self._debounce_timer: TimerHandle | None = None
        self._watchdog = RepeatingTimer(
            scheduler, watchdog_interval_s, self._watchdog_tick
        )

    @property
    def state(self) -> KeyState:
        return self._state

    @property
    def key(self) -> TriggerKey | None:
        return self._key

    def configure(
        self,
        key: TriggerKey,
        on_start: Callable[[], None],
        on_stop: Callable[[], None],
    ) -> None:
        """Select the trigger key. Anything in flight is dropped."""
        self.reset()
        self._key = key
        self._on_start = on_start
        self._on_stop = on_stop
        logger.info("Trigger key set to %s", key.display_name)

    def reset(self) -> None:
        cancel_handle(self._press_timer)
        cancel_handle(self._debounce_timer)
        self._press_timer = None
        self._debounce_timer = None
        self._watchdog.cancel()
        if self._state is not KeyState.IDLE:
            logger.debug("Trigger reset from %s", self._state.value)
        self._state = KeyState.IDLE
        self._flag_active = False

    def handle_event(self, event: RawKeyEvent) -> None:
        """Feed one event from the key source, deriving the flag from its bitset."""
        if self._key is None:
            return
        flag_active = bool(event.flags & self._key.flag_mask)
        self.handle_raw_event(flag_active, event.key_code, event.kind)

    def handle_raw_event(
        self,
        flag_active: bool,
        key_code: int | None,
        kind: EventKind = EventKind.FLAGS_CHANGED,
    ) -> None:
        if self._key is None:
            return

        if kind is not EventKind.FLAGS_CHANGED:
            if self._state is KeyState.ARMED_PENDING:
                self._disarm(f"combo {kind.value} code={key_code}")
            return

        previous = self._flag_active
        self._flag_active = flag_active

        if self._state is KeyState.IDLE:
            if flag_active and self._key.matches_code(key_code):
                self._arm()

        elif self._state is KeyState.ARMED_PENDING:
            if not flag_active:
                self._disarm("released before threshold")
            elif previous and not self._key.matches_code(key_code):
                # Another modifier joined while the trigger was still arming
                self._disarm(f"combo modifier code={key_code}")

        elif self._state is KeyState.HELD:
            if not flag_active:
                self._begin_stop("event")

        elif self._state is KeyState.STOP_PENDING:
            if flag_active:
                self._resume_hold()

    def _current_flag(self) -> bool:
        if self._live_flags is None or self._key is None:
            return self._flag_active
        return bool(self._live_flags() & self._key.flag_mask)

    def _arm(self) -> None:
        self._state = KeyState.ARMED_PENDING
        self._press_timer = self._scheduler.call_later(
            self._press_threshold_s, self._on_press_threshold
        )
        logger.debug("Trigger armed")

    def _disarm(self, reason: str) -> None:
        cancel_handle(self._press_timer)
        self._press_timer = None
        self._state = KeyState.IDLE
        logger.debug("Trigger disarmed: %s", reason)

    def _on_press_threshold(self) -> None:
        self._press_timer = None
        if self._state is not KeyState.ARMED_PENDING:
            return
        if not self._current_flag():
            self._disarm("flag gone at threshold")
            return

        self._state = KeyState.HELD
        self._flag_active = True
        logger.info("Trigger held -> start")
        self._watchdog.start()
        self._on_start()

    def _begin_stop(self, source: str) -> None:
        self._state = KeyState.STOP_PENDING
        self._debounce_timer = self._scheduler.call_later(
            self._release_debounce_s, self._on_release_debounce
        )
        logger.debug("Trigger release seen (%s), debouncing", source)

    def _resume_hold(self) -> None:
        cancel_handle(self._debounce_timer)
        self._debounce_timer = None
        self._state = KeyState.HELD
        logger.debug("Ignored transient release")

    def _on_release_debounce(self) -> None:
        self._debounce_timer = None
        if self._state is not KeyState.STOP_PENDING:
            return
        if self._current_flag():
            # The re-press event was missed but the flag is set again
            self._resume_hold()
            return

        self._watchdog.cancel()
        self._state = KeyState.IDLE
        self._flag_active = False
        logger.info("Trigger released -> stop")
        self._on_stop()

    def _watchdog_tick(self) -> bool:
        if self._state is KeyState.HELD:
            if not self._current_flag():
                self._flag_active = False
                self._begin_stop("watchdog")
            return True
        return self._state is KeyState.STOP_PENDING
