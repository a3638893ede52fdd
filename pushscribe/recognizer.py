"""Streaming speech recognition with sounddevice capture and MLX Whisper.

Whisper is not a streaming model, so interim results come from
re-transcribing the growing buffer on a worker thread. After end-of-audio
the whole utterance is transcribed once more for the final result.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
from typing import TYPE_CHECKING, Any, Callable

import numpy as np
from scipy.io.wavfile import write as wav_write

from pushscribe.errors import RecognizerUnavailable
from pushscribe.types import TaskStatus

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from pushscribe.config import RecognitionConfig

logger = logging.getLogger(__name__)

INT16_MAX = 32767.0
AUDIO_CLIP_MIN = -1.0
AUDIO_CLIP_MAX = 1.0
FIRST_CHANNEL_INDEX = 0
BLOCK_MS = 30
MIN_PARTIAL_AUDIO_S = 0.5

TranscribeFn = Callable[..., dict]


class WhisperTranscriber:
    """Transcribes audio to text using Whisper."""

    def __init__(self, model: str, transcribe_fn: TranscribeFn | None = None) -> None:
        self._model = model
        self._transcribe_fn = transcribe_fn
        self._lock = threading.Lock()

    def transcribe(
        self,
        audio: "NDArray[np.int16]",
        sample_rate: int,
        language: str | None,
    ) -> str:
        """
        Transcribe audio to text.

        Args:
            audio: Audio data as 16-bit integer samples.
            sample_rate: Sample rate of the audio.
            language: Whisper language code, or None to auto-detect.

        Returns:
            Transcribed text, stripped.
        """
        wav_path = self._save_temp_wav(audio, sample_rate)
        try:
            # One model invocation at a time
            with self._lock:
                result = self._get_transcribe_fn()(
                    wav_path,
                    path_or_hf_repo=self._model,
                    language=language,
                )
            text = result.get("text", "")
            return text.strip() if isinstance(text, str) else ""
        finally:
            self._cleanup_temp_file(wav_path)

    def _get_transcribe_fn(self) -> TranscribeFn:
        if self._transcribe_fn is None:
            import mlx_whisper

            logger.info("Loading Whisper model: %s", self._model)
            self._transcribe_fn = mlx_whisper.transcribe
        return self._transcribe_fn

    def _save_temp_wav(self, audio: "NDArray[np.int16]", sample_rate: int) -> str:
        """Save audio to a temporary WAV file."""
        fd, path = tempfile.mkstemp(suffix=".wav", prefix="pushscribe_")
        os.close(fd)
        wav_write(path, sample_rate, audio)
        return path

    def _cleanup_temp_file(self, path: str) -> None:
        """Remove temporary file."""
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Failed to remove temp file %s: %s", path, e)


def whisper_language(locale: str) -> str | None:
    """Whisper takes a bare language code: 'ja-JP' -> 'ja'."""
    return locale.replace("_", "-").split("-", 1)[0].lower() or None


def _open_input_stream(**kwargs: Any) -> Any:
    import sounddevice as sd

    return sd.InputStream(**kwargs)


class WhisperStreamingRecognizer:
    """Recognizer adapter: one task per utterance, identified by a generation."""

    def __init__(
        self,
        config: "RecognitionConfig",
        transcriber: WhisperTranscriber | None = None,
        stream_factory: Callable[..., Any] | None = None,
    ) -> None:
        self._config = config
        self._transcriber = transcriber or WhisperTranscriber(config.whisper_model)
        self._stream_factory = stream_factory or _open_input_stream

        self._lock = threading.Lock()
        self._blocks: list["NDArray[np.float32]"] = []
        self._stream: Any = None
        self._generation = 0
        self._language: str | None = None

        self._recording = False
        self._partial_text = ""
        self._final_text = ""
        self._status = TaskStatus.IDLE

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def partial_text(self) -> str:
        return self._partial_text

    @property
    def final_text(self) -> str:
        return self._final_text

    @property
    def task_status(self) -> TaskStatus:
        return self._status

    def start(self, locale: str) -> None:
        if self._recording:
            self.cancel()

        language = whisper_language(locale)
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._blocks = []
        self._language = language
        self._partial_text = ""
        self._final_text = ""

        sample_rate = self._config.sample_rate
        self._recording = True
        try:
            stream = self._stream_factory(
                samplerate=sample_rate,
                channels=1,
                dtype="float32",
                blocksize=int(sample_rate * BLOCK_MS / 1000),
                device=self._config.device_id,
                callback=self._audio_callback,
            )
            stream.start()
        except Exception as e:
            # sounddevice raises PortAudioError, or OSError when PortAudio is missing
            logger.error("Failed to open audio input: %s", e)
            self._recording = False
            self._status = TaskStatus.IDLE
            raise RecognizerUnavailable(f"Audio input unavailable: {e}") from e

        self._stream = stream
        self._status = TaskStatus.RUNNING
        threading.Thread(
            target=self._partial_loop, args=(generation,), daemon=True
        ).start()
        logger.info("Recognition started (language=%s)", language or "auto")

    def end_audio(self) -> None:
        if not self._recording:
            return
        self._recording = False
        self._close_stream()
        self._status = TaskStatus.FINISHING
        threading.Thread(
            target=self._final_pass, args=(self._generation,), daemon=True
        ).start()

    def cancel(self) -> None:
        """Release the current task; late results from it are discarded."""
        with self._lock:
            self._generation += 1
            self._blocks = []
        if self._status is not TaskStatus.IDLE:
            logger.debug("Released recognition task (%s)", self._status.value)
        self._recording = False
        self._close_stream()
        self._status = TaskStatus.IDLE

    def _audio_callback(
        self,
        indata: "NDArray[np.float32]",
        frames: int,
        time_info: Any,
        status: Any,
    ) -> None:
        if status:
            logger.warning("Audio callback status: %s", status)
        audio = indata[:, FIRST_CHANNEL_INDEX].astype(np.float32, copy=True)
        with self._lock:
            if self._recording:
                self._blocks.append(audio)

    def _snapshot(self) -> "NDArray[np.int16]":
        with self._lock:
            if not self._blocks:
                return np.zeros((0,), dtype=np.int16)
            audio = np.concatenate(self._blocks)
        audio = np.clip(audio, AUDIO_CLIP_MIN, AUDIO_CLIP_MAX)
        return (audio * INT16_MAX).astype(np.int16)

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _partial_loop(self, generation: int) -> None:
        transcribed_samples = 0
        min_samples = int(MIN_PARTIAL_AUDIO_S * self._config.sample_rate)
        while self._recording and self._is_current(generation):
            time.sleep(self._config.partial_interval_s)
            audio = self._snapshot()
            if len(audio) < min_samples or len(audio) == transcribed_samples:
                continue
            transcribed_samples = len(audio)
            try:
                text = self._transcriber.transcribe(
                    audio, self._config.sample_rate, self._language
                )
            except Exception as e:
                logger.warning("Interim transcription failed: %s", e)
                continue
            if self._recording and self._is_current(generation):
                self._partial_text = text

    def _final_pass(self, generation: int) -> None:
        audio = self._snapshot()
        text = ""
        if audio.size:
            t0 = time.time()
            try:
                text = self._transcriber.transcribe(
                    audio, self._config.sample_rate, self._language
                )
            except Exception as e:
                logger.error("Final transcription failed: %s", e)
            logger.info("Final transcription done in %.2fs", time.time() - t0)
        if not self._is_current(generation):
            logger.debug("Discarding result of a released task")
            return
        self._final_text = text
        self._status = TaskStatus.COMPLETED

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning("Error stopping audio stream: %s", e)
