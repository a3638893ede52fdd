"""Configuration for the pushscribe application."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum

from pushscribe.finalize import DEFAULT_FINALIZE_TIMEOUT_S, DEFAULT_POLL_INTERVAL_S
from pushscribe.transform import DEFAULT_MODEL, DEFAULT_TIMEOUT_S
from pushscribe.trigger import (
    DEFAULT_PRESS_THRESHOLD_S,
    DEFAULT_RELEASE_DEBOUNCE_S,
    DEFAULT_WATCHDOG_INTERVAL_S,
)
from pushscribe.types import TRIGGER_KEYS, TriggerKey

MAX_USER_CONTEXT_LENGTH = 400
USER_CONTEXT_HEADER = "\n\n[User context]\n"

LOCALE_PATTERN = re.compile(r"^[a-z]{2,3}([-_][A-Za-z0-9]{2,8})*$")

DEFAULT_REWRITE_PROMPT = (
    "You are a proofreading engine for speech recognition output. "
    "You are not an assistant and you never answer the input.\n"
    "Only do the following:\n"
    "- Fix obvious misrecognitions\n"
    "- Make minimal fixes to punctuation, script and spelling variants\n"
    "- Make minimal fixes to unnatural grammar\n"
    "Never answer questions, add explanations, summarize, add new facts, "
    "or change the speaker's intent or tone. If the input is a question, "
    "the output is the same question. Keep the input's language. "
    "Leave uncertain proper nouns as they are.\n"
    "Output only the corrected text, with no preamble or notes."
)

DEFAULT_CORRECTION_PROMPT = (
    "You are a text editing assistant. You receive a target text and an "
    "instruction. Edit the target text according to the instruction and "
    "output only the edited text.\n"
    "Rules:\n"
    "- Follow the instruction faithfully\n"
    "- Do not change anything the instruction does not cover\n"
    "- Output only the edited text, with no explanation or preamble\n"
    "- If the instruction is ambiguous, apply the most natural reading"
)


class OutputMode(str, Enum):
    PASTE = "paste"
    TYPE = "type"
    CLIPBOARD = "clipboard"


def _env_flag(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


@dataclass
class TriggerConfig:
    key_name: str = "fn"
    press_threshold_s: float = DEFAULT_PRESS_THRESHOLD_S
    release_debounce_s: float = DEFAULT_RELEASE_DEBOUNCE_S
    watchdog_interval_s: float = DEFAULT_WATCHDOG_INTERVAL_S

    @property
    def key(self) -> TriggerKey:
        return TRIGGER_KEYS[self.key_name]


@dataclass
class RecognitionConfig:
    locale: str = "ja-JP"
    whisper_model: str = "mlx-community/whisper-large-v3-turbo"
    device_id: int | None = None
    sample_rate: int = 16_000
    partial_interval_s: float = 1.0
    finalize_timeout_s: float = DEFAULT_FINALIZE_TIMEOUT_S
    finalize_poll_s: float = DEFAULT_POLL_INTERVAL_S


@dataclass
class RewriteConfig:
    enabled: bool = True
    api_key: str = ""
    model: str = DEFAULT_MODEL
    timeout_s: float = DEFAULT_TIMEOUT_S
    rewrite_prompt: str = DEFAULT_REWRITE_PROMPT
    correction_prompt: str = DEFAULT_CORRECTION_PROMPT
    user_context: str = ""

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key.strip())

    def system_prompt(self, base_prompt: str) -> str:
        """Mode template plus the user context, when there is one."""
        context = self.user_context.strip()[:MAX_USER_CONTEXT_LENGTH]
        if not context:
            return base_prompt
        return base_prompt + USER_CONTEXT_HEADER + context


@dataclass
class OverlayConfig:
    partial_poll_s: float = 0.2
    dismiss_after_success_s: float = 1.5
    dismiss_after_error_s: float = 2.0


@dataclass
class Config:
    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    rewrite: RewriteConfig = field(default_factory=RewriteConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    output_mode: OutputMode = OutputMode.PASTE
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if api_key := os.environ.get("GEMINI_API_KEY"):
            config.rewrite.api_key = api_key.strip()

        if locale := os.environ.get("PUSHSCRIBE_LOCALE"):
            config.recognition.locale = locale

        if rewrite := os.environ.get("PUSHSCRIBE_REWRITE"):
            config.rewrite.enabled = _env_flag(rewrite)

        if prompt := os.environ.get("PUSHSCRIBE_REWRITE_PROMPT"):
            config.rewrite.rewrite_prompt = prompt

        if context := os.environ.get("PUSHSCRIBE_USER_CONTEXT"):
            config.rewrite.user_context = context[:MAX_USER_CONTEXT_LENGTH]

        if key := os.environ.get("PUSHSCRIBE_TRIGGER_KEY"):
            if key.lower() in TRIGGER_KEYS:
                config.trigger.key_name = key.lower()

        if mode := os.environ.get("PUSHSCRIBE_OUTPUT_MODE"):
            try:
                config.output_mode = OutputMode(mode.lower())
            except ValueError:
                pass  # Keep default if invalid value

        if model := os.environ.get("PUSHSCRIBE_WHISPER_MODEL"):
            config.recognition.whisper_model = model

        if device := os.environ.get("PUSHSCRIBE_AUDIO_DEVICE"):
            config.recognition.device_id = int(device)

        if verbose := os.environ.get("PUSHSCRIBE_VERBOSE"):
            config.verbose = _env_flag(verbose)

        return config


def validate_config(config: Config) -> list[str]:
    """
    Validate configuration settings.

    Returns a list of error messages (empty if valid).
    """
    errors = []

    if config.trigger.key_name not in TRIGGER_KEYS:
        errors.append(f"Invalid trigger key: {config.trigger.key_name}")

    if not LOCALE_PATTERN.match(config.recognition.locale):
        errors.append(f"Invalid locale: {config.recognition.locale}")

    durations = {
        "press_threshold_s": config.trigger.press_threshold_s,
        "release_debounce_s": config.trigger.release_debounce_s,
        "watchdog_interval_s": config.trigger.watchdog_interval_s,
        "finalize_timeout_s": config.recognition.finalize_timeout_s,
        "finalize_poll_s": config.recognition.finalize_poll_s,
        "partial_poll_s": config.overlay.partial_poll_s,
        "timeout_s": config.rewrite.timeout_s,
    }
    for name, value in durations.items():
        if value <= 0:
            errors.append(f"{name} must be positive: {value}")

    if config.rewrite.enabled and not config.rewrite.has_credential:
        errors.append("Rewrite is enabled but GEMINI_API_KEY is not set")

    return errors
