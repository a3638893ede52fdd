"""Remote text transforms (rewrite and correct) over the Gemini API."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from pushscribe.errors import (
    TransformAPIError,
    TransformMalformedResponse,
    TransformTransportError,
)
from pushscribe.types import GeminiRequest

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash-lite"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_TIMEOUT_S = 15.0
ERROR_BODY_LIMIT = 200


def build_correction_message(target: str, instruction: str) -> str:
    return f"[Target text]\n{target}\n\n[Instruction]\n{instruction}"


def build_request(user_text: str, system_prompt: str) -> GeminiRequest:
    return {
        "contents": [{"parts": [{"text": user_text}]}],
        "systemInstruction": {"parts": [{"text": system_prompt}]},
    }


class TextTransformRouter:
    """
    Stateless facade over the two transform operations.

    Each call opens its own client, sends one request and returns the
    trimmed model output. Failures raise a TransformError subclass.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    async def rewrite(self, text: str, system_prompt: str, credential: str) -> str:
        return await self._generate(text, system_prompt, credential)

    async def correct(
        self,
        target: str,
        instruction: str,
        system_prompt: str,
        credential: str,
    ) -> str:
        message = build_correction_message(target, instruction)
        return await self._generate(message, system_prompt, credential)

    async def _generate(self, user_text: str, system_prompt: str, credential: str) -> str:
        url = f"{self._base_url}/{self._model}:generateContent"
        body = build_request(user_text, system_prompt)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_s, transport=self._transport
            ) as client:
                response = await client.post(url, params={"key": credential}, json=body)
        except httpx.TimeoutException as e:
            logger.warning("Transform request timed out: %s", e)
            raise TransformTransportError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            logger.warning("Transform request failed: %s", e)
            raise TransformTransportError(f"Request failed: {e}") from e

        payload = self._decode(response)

        if response.status_code != 200:
            raise TransformAPIError(
                response.status_code, _error_message(payload, response.text)
            )
        if isinstance(payload, dict) and payload.get("error"):
            raise TransformAPIError(
                response.status_code, _error_message(payload, response.text)
            )

        text = _extract_text(payload)
        if not text:
            raise TransformMalformedResponse()
        return text

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except json.JSONDecodeError:
            if response.status_code == 200:
                raise TransformMalformedResponse("Response was not valid JSON") from None
            return None


def _error_message(payload: Any, raw: str) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return raw[:ERROR_BODY_LIMIT] or "Unknown error"


def _extract_text(payload: Any) -> str:
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    if not isinstance(text, str):
        return ""
    return text.strip()
