"""Dictation session orchestration."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from pushscribe.errors import (
    ConfigurationError,
    DictationError,
    EmptyTranscript,
    RecognizerUnavailable,
    TransformError,
)
from pushscribe.finalize import TranscriptionFinalizer
from pushscribe.timers import RepeatingTimer, cancel_handle
from pushscribe.types import Mode, OverlayStatus

if TYPE_CHECKING:
    from pushscribe.config import Config
    from pushscribe.interfaces import (
        Scheduler,
        SelectionReader,
        SpeechRecognizer,
        StatusOverlay,
        TextInjector,
        TextTransformer,
        TimerHandle,
    )

logger = logging.getLogger(__name__)

STATUS_IDLE = "Idle"
STATUS_RECORDING = "Recording..."
STATUS_RECORDING_CORRECTION = "Correction mode: recording..."
STATUS_RECOGNIZING = "Recognizing..."
STATUS_REWRITING = "Rewriting..."
STATUS_CORRECTING = "Correcting..."
STATUS_DONE = "Done"
STATUS_EMPTY = "No text recognized"
STATUS_NO_CREDENTIAL = "API key not configured"
STATUS_REWRITE_FAILED = "Rewrite failed"
STATUS_CORRECTION_FAILED = "Correction failed"


@dataclass
class DictationSession:
    """One push-to-talk cycle, from confirmed start to injection or error."""

    started_at: float
    captured_selection: str | None = None
    mode: Mode | None = None
    is_processing: bool = False

    def assign_mode(self, mode: Mode) -> Mode:
        if self.mode is not None:
            raise RuntimeError(f"Session mode already set to {self.mode.value}")
        self.mode = mode
        return mode


def select_mode(captured_selection: str | None, config: "Config") -> Mode:
    """
    Decide how a non-empty transcript is processed.

    A captured selection means the voice is an edit instruction for it, which
    needs a credential. Otherwise rewrite when it is enabled and possible.
    """
    if captured_selection is not None:
        if not config.rewrite.has_credential:
            raise ConfigurationError(
                "Correction needs a Gemini API key. Set GEMINI_API_KEY."
            )
        return Mode.CORRECTION
    if config.rewrite.enabled and config.rewrite.has_credential:
        return Mode.REWRITE
    return Mode.PLAIN


class DictationOrchestrator:
    """
    Coordinates one dictation session at a time.

    ``start_recording`` and ``stop_recording`` are the entry points for the
    trigger detector or any other host. Everything here runs on a single
    asyncio loop, so the entry guards are enough to keep at most one
    session alive. Blocking OS work (selection capture, text injection)
    runs in worker threads so the trigger timers keep firing meanwhile.

    ``config_provider`` is read at the start of every operation; when it is
    omitted, ``config`` is returned for every read.
    """

    def __init__(
        self,
        config: "Config",
        recognizer: "SpeechRecognizer",
        selection_reader: "SelectionReader",
        injector: "TextInjector",
        transformer: "TextTransformer",
        overlay: "StatusOverlay",
        scheduler: "Scheduler | None" = None,
        finalizer: TranscriptionFinalizer | None = None,
        config_provider: Callable[[], "Config"] | None = None,
    ) -> None:
        self._config_provider = config_provider or (lambda: config)
        self._recognizer = recognizer
        self._selection_reader = selection_reader
        self._injector = injector
        self._transformer = transformer
        self._overlay = overlay
        self._scheduler = scheduler
        self._finalizer = finalizer or TranscriptionFinalizer(
            recognizer,
            poll_interval_s=self._config_provider().recognition.finalize_poll_s,
        )

        self._status_text = STATUS_IDLE
        self._session: DictationSession | None = None
        self._partial_timer: RepeatingTimer | None = None
        self._dismiss_handle: TimerHandle | None = None
        self._completion: asyncio.Task[None] | None = None
        self._starting: asyncio.Task[None] | None = None
        self._stop_after_start = False
        self._status_listeners: list[Callable[[str], None]] = []

    @property
    def status_text(self) -> str:
        return self._status_text

    @property
    def session(self) -> DictationSession | None:
        return self._session

    @property
    def is_processing(self) -> bool:
        return self._session is not None and self._session.is_processing

    def add_status_listener(self, listener: Callable[[str], None]) -> None:
        self._status_listeners.append(listener)

    def start_recording(self) -> "asyncio.Task[None] | None":
        """
        Begin a session unless one is already starting or alive.

        Returns the start task, or None when the press was ignored. A stop
        that arrives while the start is still capturing the selection is
        applied as soon as recording has begun.
        """
        if self._starting is not None:
            logger.debug("Ignored start: already starting")
            return None
        if self._session is not None:
            logger.debug(
                "Ignored start: session active (processing=%s)",
                self._session.is_processing,
            )
            return None
        if self._recognizer.is_recording:
            logger.debug("Ignored start: recognizer already recording")
            return None

        self._stop_after_start = False
        self._starting = asyncio.get_running_loop().create_task(self._begin())
        return self._starting

    async def _begin(self) -> None:
        try:
            # Must happen before the overlay changes so it cannot take focus first
            selection = await asyncio.to_thread(self._read_selection)
            logger.info(
                "Selection for correction: %s",
                f"{len(selection)} chars" if selection is not None else "none",
            )
            self._begin_recording(selection)
        finally:
            self._starting = None

        if self._stop_after_start and self._session is not None:
            logger.debug("Applying stop that arrived during start")
            completion = self.stop_recording()
            if completion is not None:
                await completion

    def _begin_recording(self, selection: str | None) -> None:
        self._cancel_dismissal()
        self._stop_partial_updates()

        config = self._config_provider()
        try:
            self._recognizer.start(config.recognition.locale)
        except RecognizerUnavailable as e:
            logger.error("Recognizer failed to start: %s", e)
            self._set_status(f"Error: {e.message}")
            self._overlay.update_status(OverlayStatus.ERROR, e.message)
            self._overlay.show_near_pointer()
            self._dismiss_after(config.overlay.dismiss_after_error_s)
            return

        self._session = DictationSession(
            started_at=time.monotonic(), captured_selection=selection
        )
        is_correction = selection is not None
        status = (
            OverlayStatus.RECORDING_CORRECTION if is_correction else OverlayStatus.RECORDING
        )
        self._set_status(STATUS_RECORDING_CORRECTION if is_correction else STATUS_RECORDING)
        self._overlay.update_status(status)
        self._overlay.show_near_pointer()
        self._start_partial_updates(status, config.overlay.partial_poll_s)
        logger.info("Recording started")

    def stop_recording(self) -> "asyncio.Task[None] | None":
        """
        End the utterance and process it in the background.

        Returns the completion task, or None when nothing was recording.
        """
        if self._starting is not None:
            logger.debug("Stop during start, deferring")
            self._stop_after_start = True
            return None

        session = self._session
        if session is None:
            logger.debug("No active recording, resetting overlay")
            self._set_status(STATUS_IDLE)
            self._overlay.dismiss()
            return None
        if session.is_processing:
            logger.debug("Ignored stop: already processing")
            return None

        self._recognizer.end_audio()
        self._stop_partial_updates()
        session.is_processing = True
        self._set_status(STATUS_RECOGNIZING)
        self._overlay.update_status(OverlayStatus.RECOGNIZING)

        self._completion = asyncio.get_running_loop().create_task(
            self._complete(session)
        )
        return self._completion

    async def _complete(self, session: DictationSession) -> None:
        config = self._config_provider()
        dismiss_after = config.overlay.dismiss_after_error_s
        try:
            transcript = await self._finalizer.finalize(config.recognition.finalize_timeout_s)
            if not transcript.strip():
                raise EmptyTranscript()
            transcript = transcript.strip()
            logger.info("Transcript: %r", transcript)

            mode = session.assign_mode(select_mode(session.captured_selection, config))
            logger.info("Processing mode: %s", mode.value)

            if mode is Mode.CORRECTION:
                succeeded = await self._apply_correction(
                    session.captured_selection or "", transcript, config
                )
            elif mode is Mode.REWRITE:
                succeeded = await self._apply_rewrite(transcript, config)
            else:
                succeeded = await self._apply_plain(transcript)

            if succeeded:
                dismiss_after = config.overlay.dismiss_after_success_s

        except EmptyTranscript as e:
            logger.info("Empty transcript")
            self._report_error(STATUS_EMPTY, e)
        except ConfigurationError as e:
            logger.warning("Configuration error: %s", e)
            self._report_error(STATUS_NO_CREDENTIAL, e)
        except DictationError as e:
            logger.error("Dictation failed: %s", e)
            self._report_error(f"Error: {e.message}", e)
        except Exception as e:
            logger.exception("Unexpected error while processing dictation: %s", e)
            self._report_error("Error", e)
        finally:
            session.is_processing = False
            if self._session is session:
                self._session = None
            self._dismiss_after(dismiss_after)

    async def _apply_correction(self, target: str, instruction: str, config: "Config") -> bool:
        self._set_status(STATUS_CORRECTING)
        self._overlay.update_status(OverlayStatus.CORRECTING, instruction)
        try:
            corrected = await self._transformer.correct(
                target,
                instruction,
                config.rewrite.system_prompt(config.rewrite.correction_prompt),
                config.rewrite.api_key,
            )
        except TransformError as e:
            # Leave the selection untouched
            logger.error("Correction failed, nothing injected: %s", e)
            self._report_error(STATUS_CORRECTION_FAILED, e)
            return False

        await self._inject(corrected)
        return True

    async def _apply_rewrite(self, transcript: str, config: "Config") -> bool:
        self._set_status(STATUS_REWRITING)
        self._overlay.update_status(OverlayStatus.REWRITING, transcript)
        try:
            rewritten = await self._transformer.rewrite(
                transcript,
                config.rewrite.system_prompt(config.rewrite.rewrite_prompt),
                config.rewrite.api_key,
            )
        except TransformError as e:
            logger.error("Rewrite failed, injecting raw transcript: %s", e)
            self._report_error(STATUS_REWRITE_FAILED, e)
            await asyncio.to_thread(self._injector.output, transcript)
            return False

        await self._inject(rewritten)
        return True

    async def _apply_plain(self, transcript: str) -> bool:
        await self._inject(transcript)
        return True

    async def _inject(self, text: str) -> None:
        await asyncio.to_thread(self._injector.output, text)
        self._set_status(STATUS_DONE)
        self._overlay.update_status(OverlayStatus.DONE, text)

    def _read_selection(self) -> str | None:
        try:
            selection = self._selection_reader.read_selection()
        except Exception as e:
            logger.warning("Could not read selection: %s", e)
            return None
        if selection is None or not selection.strip():
            return None
        return selection

    def _report_error(self, status_text: str, error: Exception) -> None:
        self._set_status(status_text)
        message = error.message if isinstance(error, DictationError) else str(error)
        self._overlay.update_status(OverlayStatus.ERROR, message)

    def _set_status(self, text: str) -> None:
        self._status_text = text
        for listener in self._status_listeners:
            listener(text)

    def _get_scheduler(self) -> "Scheduler":
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler

    def _start_partial_updates(self, status: OverlayStatus, interval_s: float) -> None:
        def tick() -> bool:
            if not self._recognizer.is_recording:
                return False
            partial = self._recognizer.partial_text
            if partial:
                self._overlay.update_status(status, partial)
            return True

        self._partial_timer = RepeatingTimer(self._get_scheduler(), interval_s, tick)
        self._partial_timer.start()

    def _stop_partial_updates(self) -> None:
        if self._partial_timer is not None:
            self._partial_timer.cancel()
            self._partial_timer = None

    def _dismiss_after(self, delay_s: float) -> None:
        self._cancel_dismissal()
        self._dismiss_handle = self._get_scheduler().call_later(delay_s, self._dismiss)

    def _dismiss(self) -> None:
        self._dismiss_handle = None
        self._overlay.dismiss()

    def _cancel_dismissal(self) -> None:
        cancel_handle(self._dismiss_handle)
        self._dismiss_handle = None
