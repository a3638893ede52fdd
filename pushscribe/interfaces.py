"""Protocol interfaces for the collaborators the orchestrator drives."""

from __future__ import annotations

from typing import Callable, Protocol

from pushscribe.types import OverlayStatus, TaskStatus


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class SpeechRecognizer(Protocol):
    """Streaming recognizer. Audio is fed from elsewhere once started."""

    @property
    def is_recording(self) -> bool: ...

    @property
    def partial_text(self) -> str: ...

    @property
    def final_text(self) -> str: ...

    @property
    def task_status(self) -> TaskStatus: ...

    def start(self, locale: str) -> None:
        """Raises RecognizerUnavailable if recognition cannot start."""
        ...

    def end_audio(self) -> None: ...

    def cancel(self) -> None: ...


class SelectionReader(Protocol):
    def read_selection(self) -> str | None: ...


class TextInjector(Protocol):
    def output(self, text: str) -> None: ...


class StatusOverlay(Protocol):
    def update_status(self, status: OverlayStatus, text: str = "") -> None: ...

    def show_near_pointer(self) -> None: ...

    def dismiss(self) -> None: ...


class TextTransformer(Protocol):
    async def rewrite(self, text: str, system_prompt: str, credential: str) -> str: ...

    async def correct(
        self,
        target: str,
        instruction: str,
        system_prompt: str,
        credential: str,
    ) -> str: ...
