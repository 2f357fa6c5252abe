"""OpenAI Whisper API speech-to-text engine."""

import logging
import math
import threading
import time
from typing import Optional

import requests

from speechgate.audio.convert import to_wav_bytes
from speechgate.stt.cloud import USER_AGENT, CloudSTTEngine
from speechgate.stt.models import (
    EngineCapabilities,
    EngineDescriptor,
    EngineId,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIWhisperSTT(CloudSTTEngine):
    """Hosted Whisper via ``/audio/transcriptions``."""

    descriptor = EngineDescriptor(
        engine_id=EngineId.OPENAI,
        name="OpenAI Whisper",
        requires_network=True,
        capabilities=EngineCapabilities(
            supports_interim_results=False,
            supports_speaker_diarization=False,
            supports_word_timing=True,
            supports_multiple_languages=True,
        ),
    )
    credential_fields = ("api_key",)

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "whisper-1",
        base_url: str = DEFAULT_BASE_URL,
        request_timeout: float = 30,
        sample_rate: int = 16000,
    ):
        super().__init__(request_timeout=request_timeout)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._sample_rate = sample_rate

    def api_version(self) -> str:
        return f"{self.model} (OpenAI API)"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "User-Agent": USER_AGENT}

    def initialize(self) -> None:
        """Verify the key by looking up the transcription model."""
        self._require_credentials()
        logger.info(f"Initializing OpenAI Whisper ({self.model})...")
        with self._http("model lookup"):
            r = requests.get(
                f"{self.base_url}/models/{self.model}",
                headers=self._headers(),
                timeout=self.request_timeout,
            )
            r.raise_for_status()
        self._initialized = True
        logger.info("OpenAI Whisper initialized.")

    def transcribe(
        self,
        audio: bytes,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        self._require_credentials()
        self._check_cancelled(cancel_event)
        started = time.monotonic()

        data = {"model": self.model, "response_format": "verbose_json"}
        if language:
            data["language"] = language.split("-")[0]

        with self._http("transcription"):
            r = requests.post(
                f"{self.base_url}/audio/transcriptions",
                headers=self._headers(),
                data=data,
                files={"file": ("audio.wav", to_wav_bytes(audio, self._sample_rate), "audio/wav")},
                timeout=self.request_timeout,
            )
            r.raise_for_status()
            payload = r.json()
        self._check_cancelled(cancel_event)

        elapsed = time.monotonic() - started
        text = (payload.get("text") or "").strip()
        detected = payload.get("language") or language
        if not text:
            return TranscriptionResult.failure(
                "No speech detected", engine=self.engine_id,
                processing_time=elapsed, language=detected,
            )

        return TranscriptionResult.ok(
            text,
            engine=self.engine_id,
            confidence=_segment_confidence(payload.get("segments") or []),
            language=detected,
            processing_time=elapsed,
            metadata={"model": self.model, "audio_seconds": payload.get("duration")},
        )


def _segment_confidence(segments: list) -> float:
    """Average per-segment token probability; Whisper exposes log-probs only."""
    log_probs = [s["avg_logprob"] for s in segments if "avg_logprob" in s]
    if not log_probs:
        # Whisper typically has high confidence
        return 0.92
    return math.exp(sum(log_probs) / len(log_probs))
