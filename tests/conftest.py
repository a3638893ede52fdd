"""Pytest configuration and fixtures."""

from __future__ import annotations

import heapq
import itertools
import os
from typing import Callable, Generator

import pytest

from pushscribe.config import Config
from pushscribe.errors import RecognizerUnavailable, TransformError
from pushscribe.types import OverlayStatus, TaskStatus


class ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by an explicit virtual clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, ManualHandle, Callable[[], None]]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._counter), handle, callback))
        return handle

    def advance(self, seconds: float) -> None:
        """Run every callback due within the next ``seconds``, in order."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            when, _, handle, callback = heapq.heappop(self._queue)
            self.now = max(self.now, when)
            if not handle.cancelled:
                callback()
        self.now = target

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)


class FakeRecognizer:
    def __init__(self, fail_start: bool = False) -> None:
        self.fail_start = fail_start
        self.is_recording = False
        self.partial_text = ""
        self.final_text = ""
        self.task_status = TaskStatus.IDLE
        self.started_locales: list[str] = []
        self.end_audio_calls = 0
        self.cancel_calls = 0
        # Text to publish as final when end_audio is called
        self.final_on_end: str | None = None

    def start(self, locale: str) -> None:
        if self.fail_start:
            raise RecognizerUnavailable()
        self.started_locales.append(locale)
        self.is_recording = True
        self.partial_text = ""
        self.final_text = ""
        self.task_status = TaskStatus.RUNNING

    def end_audio(self) -> None:
        self.end_audio_calls += 1
        self.is_recording = False
        self.task_status = TaskStatus.FINISHING
        if self.final_on_end is not None:
            self.final_text = self.final_on_end
            self.task_status = TaskStatus.COMPLETED

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.is_recording = False
        self.task_status = TaskStatus.IDLE


class FakeSelectionReader:
    def __init__(self, selection: str | None = None) -> None:
        self.selection = selection
        self.calls = 0
        self.on_read: Callable[[], None] | None = None

    def read_selection(self) -> str | None:
        self.calls += 1
        if self.on_read is not None:
            self.on_read()
        return self.selection


class FakeInjector:
    def __init__(self) -> None:
        self.outputs: list[str] = []

    def output(self, text: str) -> None:
        self.outputs.append(text)


class FakeOverlay:
    def __init__(self) -> None:
        self.events: list[tuple[str, OverlayStatus | None, str]] = []

    def update_status(self, status: OverlayStatus, text: str = "") -> None:
        self.events.append(("update", status, text))

    def show_near_pointer(self) -> None:
        self.events.append(("show", None, ""))

    def dismiss(self) -> None:
        self.events.append(("dismiss", None, ""))

    @property
    def statuses(self) -> list[OverlayStatus]:
        return [status for kind, status, _ in self.events if kind == "update"]

    @property
    def dismiss_count(self) -> int:
        return sum(1 for kind, _, _ in self.events if kind == "dismiss")


class FakeTransformer:
    def __init__(self, result: str = "", error: TransformError | None = None) -> None:
        self.result = result
        self.error = error
        self.rewrite_calls: list[tuple[str, str, str]] = []
        self.correct_calls: list[tuple[str, str, str, str]] = []

    async def rewrite(self, text: str, system_prompt: str, credential: str) -> str:
        self.rewrite_calls.append((text, system_prompt, credential))
        if self.error is not None:
            raise self.error
        return self.result

    async def correct(
        self, target: str, instruction: str, system_prompt: str, credential: str
    ) -> str:
        self.correct_calls.append((target, instruction, system_prompt, credential))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture
def injector() -> FakeInjector:
    return FakeInjector()


@pytest.fixture
def overlay() -> FakeOverlay:
    return FakeOverlay()


@pytest.fixture
def fast_config() -> Config:
    """Config with short waits so session tests finish quickly."""
    config = Config()
    config.recognition.finalize_timeout_s = 0.3
    config.recognition.finalize_poll_s = 0.02
    config.rewrite.api_key = "test-key"
    return config


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Fixture to clean environment variables before/after tests."""
    # Store original values
    env_vars = [
        "GEMINI_API_KEY",
        "PUSHSCRIBE_LOCALE",
        "PUSHSCRIBE_REWRITE",
        "PUSHSCRIBE_REWRITE_PROMPT",
        "PUSHSCRIBE_USER_CONTEXT",
        "PUSHSCRIBE_TRIGGER_KEY",
        "PUSHSCRIBE_OUTPUT_MODE",
        "PUSHSCRIBE_WHISPER_MODEL",
        "PUSHSCRIBE_AUDIO_DEVICE",
        "PUSHSCRIBE_VERBOSE",
    ]
    original_values = {var: os.environ.get(var) for var in env_vars}

    # Clear all
    for var in env_vars:
        os.environ.pop(var, None)

    yield

    # Restore original values
    for var, value in original_values.items():
        if value is not None:
            os.environ[var] = value
        else:
            os.environ.pop(var, None)
