"""Console status overlay."""

from __future__ import annotations

import logging
from typing import Callable

from pushscribe.types import OverlayStatus

logger = logging.getLogger(__name__)

SNIPPET_MAX_CHARS = 80

ICONS = {
    OverlayStatus.RECORDING: "🎙️",
    OverlayStatus.RECORDING_CORRECTION: "✏️",
    OverlayStatus.RECOGNIZING: "🔎",
    OverlayStatus.REWRITING: "🪄",
    OverlayStatus.CORRECTING: "🪄",
    OverlayStatus.DONE: "✅",
    OverlayStatus.ERROR: "❌",
}


def status_label(status: OverlayStatus, key_name: str) -> str:
    if status is OverlayStatus.RECORDING:
        return f"Recording... release {key_name} to finish"
    if status is OverlayStatus.RECORDING_CORRECTION:
        return f"Correction mode: release {key_name} to finish"
    return {
        OverlayStatus.RECOGNIZING: "Recognizing...",
        OverlayStatus.REWRITING: "Rewriting...",
        OverlayStatus.CORRECTING: "Correcting...",
        OverlayStatus.DONE: "Done",
        OverlayStatus.ERROR: "Error",
    }[status]


def truncate(text: str, limit: int = SNIPPET_MAX_CHARS) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


class ConsoleOverlay:
    """Prints status changes; repeated identical lines are suppressed."""

    def __init__(
        self,
        key_name: str,
        pointer_position: Callable[[], tuple[float, float]] | None = None,
        printer: Callable[[str], None] = print,
    ) -> None:
        self._key_name = key_name
        self._pointer_position = pointer_position
        self._print = printer
        self._visible = False
        self._last_line = ""

    @property
    def visible(self) -> bool:
        return self._visible

    def set_key_name(self, key_name: str) -> None:
        self._key_name = key_name

    def update_status(self, status: OverlayStatus, text: str = "") -> None:
        line = f"{ICONS[status]} {status_label(status, self._key_name)}"
        if text:
            line += f'  "{truncate(text)}"'
        if line == self._last_line:
            return
        self._last_line = line
        self._print(line)

    def show_near_pointer(self) -> None:
        self._visible = True
        if self._pointer_position is None:
            return
        try:
            x, y = self._pointer_position()
        except Exception as e:
            logger.debug("Pointer position unavailable: %s", e)
            return
        logger.debug("Overlay shown near pointer (%.0f, %.0f)", x, y)

    def dismiss(self) -> None:
        if self._visible:
            self._print("---")
        self._visible = False
        self._last_line = ""
