"""Text injection sinks: put the final text at the user's cursor."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import pyperclip

if TYPE_CHECKING:
    from pushscribe.config import OutputMode

logger = logging.getLogger(__name__)

PASTE_SETTLE_S = 0.05


class OutputHandler(ABC):
    """Abstract base class for output handlers."""

    @abstractmethod
    def output(self, text: str) -> None:
        """Insert the text at the current focus."""
        ...


class ClipboardOutput(OutputHandler):
    """Outputs text to the system clipboard."""

    def output(self, text: str) -> None:
        """Copy text to clipboard."""
        pyperclip.copy(text)


class PasteOutput(OutputHandler):
    """Copies text to the clipboard and sends Cmd+V to the focused window."""

    def __init__(self) -> None:
        from pynput.keyboard import Controller, Key

        self._controller = Controller()
        self._paste_modifier = Key.cmd

    def output(self, text: str) -> None:
        pyperclip.copy(text)
        # Give the pasteboard a moment before the chord
        time.sleep(PASTE_SETTLE_S)
        with self._controller.pressed(self._paste_modifier):
            self._controller.tap("v")
        logger.debug("Paste chord sent (%d chars)", len(text))


class TyperOutput(OutputHandler):
    """Types text directly into the focused window."""

    def __init__(self) -> None:
        from pynput.keyboard import Controller

        self._controller = Controller()

    def output(self, text: str) -> None:
        """Type text into the focused window."""
        try:
            # Small delay to ensure the window is ready
            time.sleep(PASTE_SETTLE_S)
            self._controller.type(text)
        except Exception as e:
            logger.error("Failed to type text: %s", e)
            raise


class CompositeOutput(OutputHandler):
    """Combines multiple output handlers."""

    def __init__(self, *handlers: OutputHandler) -> None:
        self._handlers = handlers

    def output(self, text: str) -> None:
        """Output text through all handlers."""
        for handler in self._handlers:
            try:
                handler.output(text)
            except Exception as e:
                logger.error("Output handler %s failed: %s", type(handler).__name__, e)


def create_output_handler(mode: "OutputMode") -> OutputHandler:
    """
    Create an output handler based on the configured mode.

    Args:
        mode: The output mode.

    Returns:
        An appropriate output handler.
    """
    from pushscribe.config import OutputMode

    if mode == OutputMode.CLIPBOARD:
        return ClipboardOutput()

    if mode == OutputMode.TYPE:
        # Type into window + clipboard backup
        return CompositeOutput(TyperOutput(), ClipboardOutput())

    return PasteOutput()
