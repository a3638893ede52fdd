"""Reconcile a streaming recognition task into one final transcript."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pushscribe.types import TaskStatus

if TYPE_CHECKING:
    from pushscribe.interfaces import SpeechRecognizer

logger = logging.getLogger(__name__)

DEFAULT_FINALIZE_TIMEOUT_S = 2.0
DEFAULT_POLL_INTERVAL_S = 0.1

_FINISHED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELING)


class TranscriptionFinalizer:
    """Waits a bounded time for the best transcript the recognizer can give."""

    def __init__(
        self,
        recognizer: "SpeechRecognizer",
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
    ) -> None:
        self._recognizer = recognizer
        self._poll_interval_s = poll_interval_s

    async def finalize(self, timeout_s: float = DEFAULT_FINALIZE_TIMEOUT_S) -> str:
        """
        Return the final transcript, or the best partial one.

        Order of preference: a final transcript as soon as one exists, the
        partial transcript once the task has finished without producing a
        final one, and on timeout whatever partial text is there (possibly
        empty). The recognition task is cancelled before returning in every
        case.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        try:
            while True:
                text = self._check()
                if text is not None:
                    return text
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(self._poll_interval_s, remaining))

            partial = self._recognizer.partial_text
            if partial:
                logger.info("Finalize timed out, using partial transcript")
            else:
                logger.info("Finalize timed out with no transcript")
            return partial or ""
        finally:
            self._recognizer.cancel()

    def _check(self) -> str | None:
        final = self._recognizer.final_text
        if final:
            return final
        partial = self._recognizer.partial_text
        if partial and self._recognizer.task_status in _FINISHED_STATUSES:
            logger.debug("Promoting partial transcript (task %s)", self._recognizer.task_status.value)
            return partial
        return None
