"""Main pushscribe application."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from pushscribe.config import Config, validate_config
from pushscribe.finalize import TranscriptionFinalizer
from pushscribe.keyboard import PynputKeySource, QuartzModifierState
from pushscribe.output import create_output_handler
from pushscribe.overlay import ConsoleOverlay
from pushscribe.recognizer import WhisperStreamingRecognizer
from pushscribe.selection import (
    AccessibilitySelectionReader,
    ClipboardSelectionReader,
    FallbackSelectionReader,
)
from pushscribe.session import DictationOrchestrator
from pushscribe.transform import TextTransformRouter
from pushscribe.trigger import TriggerDetector
from pushscribe.types import TRIGGER_KEYS, RawKeyEvent

logger = logging.getLogger(__name__)


def _pointer_position() -> tuple[float, float]:
    from pynput.mouse import Controller

    return Controller().position


class DictationApp:
    """
    Push-to-talk dictation application.

    Hold the trigger key to dictate; on release the utterance is
    transcribed, optionally rewritten or used to correct the selected text,
    and inserted at the cursor.
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or Config()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._quit: asyncio.Event | None = None

        # Components (initialized in setup)
        self._detector: TriggerDetector | None = None
        self._orchestrator: DictationOrchestrator | None = None
        self._keys: PynputKeySource | None = None
        self._recognizer: WhisperStreamingRecognizer | None = None
        self._overlay: ConsoleOverlay | None = None

    @property
    def config(self) -> Config:
        return self._config

    def setup(self, loop: asyncio.AbstractEventLoop) -> None:
        """Initialize all components on the orchestration loop."""
        self._loop = loop
        self._print_banner()
        for problem in validate_config(self._config):
            logger.warning("Config: %s", problem)
            print(f"⚠️  {problem}")

        self._recognizer = WhisperStreamingRecognizer(self._config.recognition)
        self._overlay = ConsoleOverlay(
            self._config.trigger.key.display_name,
            pointer_position=_pointer_position,
        )
        self._orchestrator = DictationOrchestrator(
            config=self._config,
            recognizer=self._recognizer,
            selection_reader=FallbackSelectionReader(
                AccessibilitySelectionReader(), ClipboardSelectionReader()
            ),
            injector=create_output_handler(self._config.output_mode),
            transformer=TextTransformRouter(
                model=self._config.rewrite.model,
                timeout_s=self._config.rewrite.timeout_s,
            ),
            overlay=self._overlay,
            scheduler=loop,
            finalizer=TranscriptionFinalizer(
                self._recognizer, poll_interval_s=self._config.recognition.finalize_poll_s
            ),
        )

        self._keys = PynputKeySource(
            deliver=self._marshal_event,
            on_quit=self.request_quit,
            # The watchdog needs state that does not come from the listener
            system_flags=QuartzModifierState() if sys.platform == "darwin" else None,
        )
        trigger = self._config.trigger
        self._detector = TriggerDetector(
            scheduler=loop,
            live_flags=self._keys.current_flags,
            press_threshold_s=trigger.press_threshold_s,
            release_debounce_s=trigger.release_debounce_s,
            watchdog_interval_s=trigger.watchdog_interval_s,
        )
        self.set_trigger_key(trigger.key_name)
        self._print_instructions()

    def _print_banner(self) -> None:
        """Print application banner."""
        print("=" * 60)
        print("🎙️ PUSHSCRIBE - Push-to-Talk Voice Dictation")
        print("=" * 60)
        print(f"\n🌐 Recognition locale: {self._config.recognition.locale}")
        print(f"🔊 Output mode: {self._config.output_mode.value}")
        rewrite = self._config.rewrite
        if rewrite.enabled and rewrite.has_credential:
            print(f"🪄 Rewrite: enabled ({rewrite.model})")
        else:
            print("🪄 Rewrite: disabled")

    def _print_instructions(self) -> None:
        """Print usage instructions."""
        key_name = self._config.trigger.key.display_name
        print("\n" + "=" * 60)
        print("📌 INSTRUCTIONS:")
        print(f"   • Hold {key_name} to talk. Release to stop.")
        print(f"   • Select text first, then hold {key_name} and say how to change it.")
        print("   • Press Cmd+Esc to quit cleanly. Ctrl+C also works.")
        print("=" * 60)
        print(f"\n🟢 Ready! Hold {key_name} to start dictating...\n")

    def set_trigger_key(self, key_name: str) -> None:
        """Switch the trigger key; any press in progress is dropped."""
        if self._detector is None or self._orchestrator is None:
            raise RuntimeError("App not initialized. Call setup() first.")
        key = TRIGGER_KEYS[key_name]
        self._config.trigger.key_name = key_name
        if self._overlay is not None:
            self._overlay.set_key_name(key.display_name)
        self._detector.configure(
            key,
            on_start=self._orchestrator.start_recording,
            on_stop=self._on_trigger_stop,
        )

    def _on_trigger_stop(self) -> None:
        if self._orchestrator is not None:
            self._orchestrator.stop_recording()

    def _marshal_event(self, event: RawKeyEvent) -> None:
        """Called on the listener thread; hands the event to the loop."""
        if self._loop is None or self._detector is None:
            return
        self._loop.call_soon_threadsafe(self._detector.handle_event, event)

    def request_quit(self) -> None:
        if self._loop is None or self._quit is None:
            return
        self._loop.call_soon_threadsafe(self._quit.set)

    async def _main(self) -> None:
        loop = asyncio.get_running_loop()
        self._quit = asyncio.Event()
        self.setup(loop)
        try:
            loop.add_signal_handler(signal.SIGINT, self._quit.set)
        except NotImplementedError:
            pass  # Not available on this platform, KeyboardInterrupt still works

        assert self._keys is not None
        self._keys.start()
        try:
            await self._quit.wait()
            print("\n👋 Quitting...")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Shutdown the application gracefully."""
        logger.info("Shutting down...")
        if self._keys is not None:
            self._keys.stop()
        if self._detector is not None:
            self._detector.reset()
        if self._recognizer is not None:
            self._recognizer.cancel()
        if self._overlay is not None:
            self._overlay.dismiss()

    def run(self) -> None:
        """Run the application until Cmd+Esc or Ctrl+C."""
        asyncio.run(self._main())
