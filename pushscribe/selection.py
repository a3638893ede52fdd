"""Read the current text selection at the OS focus target."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable

import pyperclip

from pushscribe.errors import SelectionUnavailable

logger = logging.getLogger(__name__)

COPY_SETTLE_S = 0.08
C_KEY_CODE = 8

AX_ERROR_SUCCESS = 0
AX_ERROR_NO_VALUE = -25212


class AccessibilitySelectionReader:
    """
    Reads the selected text of the focused element through Accessibility.

    Nothing is sent to the focused app, so held modifier keys do not matter.
    Raises SelectionUnavailable when the element cannot report a selection,
    which is different from reporting that nothing is selected.
    """

    def __init__(self, ax: Any = None) -> None:
        if ax is None:
            import ApplicationServices

            ax = ApplicationServices
        self._ax = ax

    def read_selection(self) -> str | None:
        system = self._ax.AXUIElementCreateSystemWide()
        err, focused = self._ax.AXUIElementCopyAttributeValue(
            system, "AXFocusedUIElement", None
        )
        if err != AX_ERROR_SUCCESS or focused is None:
            raise SelectionUnavailable(f"No focused element (AX error {err})")

        err, text = self._ax.AXUIElementCopyAttributeValue(focused, "AXSelectedText", None)
        if err == AX_ERROR_NO_VALUE:
            return None
        if err != AX_ERROR_SUCCESS:
            raise SelectionUnavailable(f"AXSelectedText not readable (AX error {err})")

        text = str(text) if text is not None else ""
        return text if text.strip() else None


class QuartzCopyChord:
    """Posts Cmd+C carrying only the Command flag, whatever is physically held."""

    def __init__(self, quartz: Any = None) -> None:
        if quartz is None:
            import Quartz

            quartz = Quartz
        self._quartz = quartz

    def __call__(self) -> None:
        q = self._quartz
        # A private source does not merge in the hardware modifier state
        source = q.CGEventSourceCreate(q.kCGEventSourceStatePrivate)
        for key_down in (True, False):
            event = q.CGEventCreateKeyboardEvent(source, C_KEY_CODE, key_down)
            q.CGEventSetFlags(event, q.kCGEventFlagMaskCommand)
            q.CGEventPost(q.kCGAnnotatedSessionEventTap, event)


class ClipboardSelectionReader:
    """
    Reads the selection by sending the copy chord.

    The clipboard is primed with a unique sentinel first; if it still holds
    the sentinel afterwards nothing was selected. The previous clipboard
    contents are always put back.
    """

    def __init__(
        self,
        settle_s: float = COPY_SETTLE_S,
        send_copy: Callable[[], None] | None = None,
    ) -> None:
        self._settle_s = settle_s
        self._send_copy = send_copy or QuartzCopyChord()

    def read_selection(self) -> str | None:
        previous = pyperclip.paste()
        sentinel = f"pushscribe-{uuid.uuid4().hex}"
        pyperclip.copy(sentinel)
        try:
            self._send_copy()
            time.sleep(self._settle_s)
            copied = pyperclip.paste()
        finally:
            pyperclip.copy(previous)

        if copied == sentinel or not copied.strip():
            return None
        return copied


class FallbackSelectionReader:
    """Uses ``primary`` and only falls back when it cannot answer at all."""

    def __init__(self, primary: Any, fallback: Any) -> None:
        self._primary = primary
        self._fallback = fallback

    def read_selection(self) -> str | None:
        try:
            return self._primary.read_selection()
        except SelectionUnavailable as e:
            logger.debug("Falling back to copy chord: %s", e)
            return self._fallback.read_selection()
