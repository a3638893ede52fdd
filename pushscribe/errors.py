"""Error types raised inside a dictation session.

Every error carries a short user-facing message. The orchestrator catches
them all and turns them into an overlay status; none of them end the process.
"""

from __future__ import annotations


class DictationError(Exception):
    """Base class for per-session, user-visible failures."""

    user_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)

    @property
    def message(self) -> str:
        return str(self)


class ConfigurationError(DictationError):
    user_message = "A Gemini API key is required. Set GEMINI_API_KEY."


class RecognizerUnavailable(DictationError):
    user_message = "Speech recognition is unavailable. Check microphone access."


class SelectionUnavailable(DictationError):
    user_message = "The focused element does not expose its selection."


class EmptyTranscript(DictationError):
    user_message = "No speech recognized. Try speaking a little longer."


class TransformError(DictationError):
    user_message = "Text transform failed"


class TransformTransportError(TransformError):
    user_message = "Network request failed, please retry."


class TransformAPIError(TransformError):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.api_message = message
        super().__init__(f"API error ({status_code}): {message}")


class TransformMalformedResponse(TransformError):
    user_message = "The response did not contain any text."
