"""Type definitions for the pushscribe application."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypedDict

# Modifier flag bits as reported in the active-modifier bitset
FLAG_SHIFT = 0x020000
FLAG_CONTROL = 0x040000
FLAG_OPTION = 0x080000
FLAG_COMMAND = 0x100000
FLAG_FN = 0x800000


class EventKind(str, Enum):
    FLAGS_CHANGED = "flags_changed"
    KEY_DOWN = "key_down"
    SYSTEM_DEFINED = "system_defined"


@dataclass(frozen=True)
class RawKeyEvent:
    """One notification from the key-event source."""

    flags: int
    key_code: int | None
    kind: EventKind = EventKind.FLAGS_CHANGED


@dataclass(frozen=True)
class TriggerKey:
    name: str
    display_name: str
    flag_mask: int
    # Needed when the flag is shared by a left/right pair
    key_codes: frozenset[int] | None = None

    def matches_code(self, key_code: int | None) -> bool:
        if self.key_codes is None:
            return True
        return key_code in self.key_codes


TRIGGER_KEYS: dict[str, TriggerKey] = {
    "fn": TriggerKey("fn", "Fn", FLAG_FN),
    "right_option": TriggerKey(
        "right_option", "Right Option (⌥)", FLAG_OPTION, frozenset({61})
    ),
    "right_command": TriggerKey(
        "right_command", "Right Command (⌘)", FLAG_COMMAND, frozenset({54})
    ),
    "control": TriggerKey("control", "Control (⌃)", FLAG_CONTROL),
}


class KeyState(str, Enum):
    IDLE = "idle"
    ARMED_PENDING = "armed_pending"
    HELD = "held"
    STOP_PENDING = "stop_pending"


class TaskStatus(str, Enum):
    """Lifecycle of the recognizer's current task."""

    IDLE = "idle"
    RUNNING = "running"
    FINISHING = "finishing"
    CANCELING = "canceling"
    COMPLETED = "completed"


class Mode(str, Enum):
    PLAIN = "plain"
    REWRITE = "rewrite"
    CORRECTION = "correction"


class OverlayStatus(str, Enum):
    RECORDING = "recording"
    RECORDING_CORRECTION = "recording_correction"
    RECOGNIZING = "recognizing"
    REWRITING = "rewriting"
    CORRECTING = "correcting"
    DONE = "done"
    ERROR = "error"


class GeminiPart(TypedDict):
    text: str


class GeminiContent(TypedDict):
    parts: list[GeminiPart]


class GeminiRequest(TypedDict):
    """Body of a generateContent call."""

    contents: list[GeminiContent]
    systemInstruction: GeminiContent
