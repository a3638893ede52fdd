"""Global key-event source built on pynput.

The pynput listener runs on its own thread. Every notification is turned
into a RawKeyEvent and handed to ``deliver``, which is expected to marshal
it onto the orchestration loop (see ``DictationApp``).
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from pushscribe.types import (
    FLAG_COMMAND,
    FLAG_CONTROL,
    FLAG_FN,
    FLAG_OPTION,
    FLAG_SHIFT,
    EventKind,
    RawKeyEvent,
)

logger = logging.getLogger(__name__)

# macOS virtual key codes of the modifier keys and the flag each one sets
MODIFIER_FLAGS: dict[int, int] = {
    54: FLAG_COMMAND,  # right command
    55: FLAG_COMMAND,  # left command
    56: FLAG_SHIFT,
    60: FLAG_SHIFT,
    58: FLAG_OPTION,  # left option
    61: FLAG_OPTION,  # right option
    59: FLAG_CONTROL,
    62: FLAG_CONTROL,
    63: FLAG_FN,
    179: FLAG_FN,  # globe key on newer keyboards
}

ESCAPE_KEY_CODE = 53

ALL_MODIFIER_FLAGS = FLAG_SHIFT | FLAG_CONTROL | FLAG_OPTION | FLAG_COMMAND | FLAG_FN


def get_key_code(key: Any) -> int | None:
    """Extract the virtual key code from a pynput Key or KeyCode."""
    # KeyCode objects have a .vk attribute
    if hasattr(key, "vk") and key.vk is not None:
        return key.vk
    # Key enums (cmd, alt, etc.) have a .value attribute with vk
    if hasattr(key, "value") and hasattr(key.value, "vk"):
        return key.value.vk
    return None


def is_media_key(key: Any) -> bool:
    name = getattr(key, "name", None)
    return isinstance(name, str) and name.startswith("media_")


class QuartzModifierState:
    """
    Live modifier state as the window server sees it.

    Independent of the listener's event stream, so a release the listener
    never delivered still shows up here. CGEventFlags use the same bit
    positions as the FLAG_* constants.
    """

    def __init__(self, quartz: Any = None) -> None:
        if quartz is None:
            import Quartz

            quartz = Quartz
        self._quartz = quartz

    def __call__(self) -> int:
        flags = self._quartz.CGEventSourceFlagsState(
            self._quartz.kCGEventSourceStateCombinedSessionState
        )
        return int(flags) & ALL_MODIFIER_FLAGS


class PynputKeySource:
    """Tracks held modifiers and reports flag changes and key downs."""

    def __init__(
        self,
        deliver: Callable[[RawKeyEvent], None],
        on_quit: Callable[[], None] | None = None,
        listener_factory: Callable[..., Any] | None = None,
        system_flags: Callable[[], int] | None = None,
    ) -> None:
        self._deliver = deliver
        self._on_quit = on_quit
        self._listener_factory = listener_factory
        self._system_flags = system_flags
        self._held: set[int] = set()
        self._lock = threading.Lock()
        self._listener: Any = None

    def current_flags(self) -> int:
        """
        Active-modifier bitset right now.

        With a system flags reader the live state wins, and held keys whose flag
        is gone are forgotten so later events carry the corrected bitset.
        """
        if self._system_flags is None:
            with self._lock:
                return self._flags_locked()

        live = self._system_flags()
        with self._lock:
            stale = {code for code in self._held if not live & MODIFIER_FLAGS[code]}
            if stale:
                logger.debug("Dropping missed releases: %s", sorted(stale))
                self._held -= stale
        return live

    def _flags_locked(self) -> int:
        flags = 0
        for code in self._held:
            flags |= MODIFIER_FLAGS[code]
        return flags

    def on_press(self, key: Any) -> None:
        code = get_key_code(key)
        if code in MODIFIER_FLAGS:
            with self._lock:
                self._held.add(code)
                flags = self._flags_locked()
            self._deliver(RawKeyEvent(flags, code, EventKind.FLAGS_CHANGED))
            return

        flags = self.current_flags()
        if code == ESCAPE_KEY_CODE and flags & FLAG_COMMAND and self._on_quit:
            self._on_quit()
            return

        kind = EventKind.SYSTEM_DEFINED if is_media_key(key) else EventKind.KEY_DOWN
        self._deliver(RawKeyEvent(flags, code, kind))

    def on_release(self, key: Any) -> None:
        code = get_key_code(key)
        if code not in MODIFIER_FLAGS:
            return
        with self._lock:
            self._held.discard(code)
            flags = self._flags_locked()
        self._deliver(RawKeyEvent(flags, code, EventKind.FLAGS_CHANGED))

    def start(self) -> None:
        factory = self._listener_factory
        if factory is None:
            from pynput import keyboard

            factory = keyboard.Listener
        self._listener = factory(on_press=self.on_press, on_release=self.on_release)
        self._listener.start()
        logger.info("Key listener started")

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        with self._lock:
            self._held.clear()
