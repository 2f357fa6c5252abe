"""faster-whisper based local speech-to-text engine.

Runs fully offline once the model is cached. CPU int8 is the default; CUDA is
used when requested and a GPU is present.
"""

import importlib.util
import logging
import math
import threading
import time
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from speechgate.audio.convert import decode_audio, duration_seconds, resample
from speechgate.core.exceptions import ModelNotFoundError, STTError
from speechgate.stt.base import STTEngine
from speechgate.stt.models import (
    EngineCapabilities,
    EngineDescriptor,
    EngineId,
    EngineStatus,
    ErrorKind,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


class LocalWhisperSTT(STTEngine):
    """faster-whisper speech recognition engine."""

    descriptor = EngineDescriptor(
        engine_id=EngineId.LOCAL_MODEL,
        name="Whisper (local)",
        requires_network=False,
        capabilities=EngineCapabilities(
            supports_interim_results=False,
            supports_speaker_diarization=False,
            supports_word_timing=True,
            supports_multiple_languages=True,
        ),
    )

    def __init__(
        self,
        model_size: str = "base",
        device: str = "cpu",
        compute_type: str = "int8",
        beam_size: int = 5,
        download_root: Optional[str] = None,
        sample_rate: int = WHISPER_SAMPLE_RATE,
    ):
        super().__init__()
        self._model_size = model_size
        self._device = device
        self._compute_type = compute_type
        self._beam_size = beam_size
        self._download_root = download_root
        self._sample_rate = sample_rate
        self._model = None

    def get_status(self) -> EngineStatus:
        if importlib.util.find_spec("faster_whisper") is None:
            return self._status(False, "faster-whisper not installed. Run: pip install faster-whisper")
        try:
            pkg_version = version("faster-whisper")
        except PackageNotFoundError:
            pkg_version = None
        message = "Ready" if self._model is not None else f"Model '{self._model_size}' not loaded yet"
        return self._status(True, message, version=pkg_version)

    def initialize(self) -> None:
        """Load the faster-whisper model. Downloads automatically on first use."""
        if self._model is not None:
            return
        try:
            from faster_whisper import WhisperModel
        except ImportError:
            raise ModelNotFoundError(
                "faster-whisper not installed. Run: pip install faster-whisper"
            )

        device, compute_type = self._resolve_device()
        logger.info(
            f"Loading Whisper '{self._model_size}' on {device} ({compute_type})... "
            f"This may take a few minutes on first run (model download)."
        )
        try:
            self._model = WhisperModel(
                self._model_size,
                device=device,
                compute_type=compute_type,
                download_root=self._download_root,
            )
        except Exception as e:
            raise STTError(f"Cannot load Whisper model '{self._model_size}': {e}") from e
        self._initialized = True
        logger.info(f"Whisper '{self._model_size}' loaded on {device} ({compute_type}).")

    def _resolve_device(self) -> tuple[str, str]:
        if self._device != "cuda":
            return self._device, self._compute_type
        try:
            import ctranslate2
            if ctranslate2.get_cuda_device_count() > 0:
                return self._device, self._compute_type
            logger.warning("CUDA requested but no GPU found. Falling back to CPU.")
        except Exception:
            logger.warning("Cannot check CUDA. Falling back to CPU.")
        return "cpu", "int8"

    def transcribe(
        self,
        audio: bytes,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        if self._model is None:
            raise STTError("Whisper model not loaded. Call initialize() first.")

        started = time.monotonic()
        samples, rate = decode_audio(audio, self._sample_rate)
        samples = resample(samples, rate, WHISPER_SAMPLE_RATE)
        logger.debug(
            f"[Whisper] Input: {duration_seconds(samples, WHISPER_SAMPLE_RATE):.1f}s, "
            f"model={self._model_size}, lang={language}"
        )

        segments, info = self._model.transcribe(
            samples,
            language=language,
            beam_size=self._beam_size,
            vad_filter=True,
        )

        # Segments are generated lazily; stop decoding as soon as the caller gives up
        texts = []
        log_probs = []
        for seg in segments:
            self._check_cancelled(cancel_event)
            text = seg.text.strip()
            if text:
                texts.append(text)
                log_probs.append(seg.avg_logprob)

        elapsed = time.monotonic() - started
        detected_lang = getattr(info, "language", None) or language
        full_text = " ".join(texts)
        if not full_text:
            return TranscriptionResult.failure(
                "No speech detected",
                engine=self.engine_id,
                kind=ErrorKind.TRANSCRIPTION_FAILED,
                processing_time=elapsed,
                language=detected_lang,
            )

        confidence = math.exp(sum(log_probs) / len(log_probs))
        return TranscriptionResult.ok(
            full_text,
            engine=self.engine_id,
            confidence=confidence,
            language=detected_lang,
            processing_time=elapsed,
            metadata={
                "model": self._model_size,
                "language_probability": getattr(info, "language_probability", None),
                "audio_seconds": getattr(info, "duration", None),
            },
        )

    def cleanup(self) -> None:
        self._model = None
        super().cleanup()
