"""Azure Speech Services engine (short-audio REST API)."""

import logging
import threading
import time
from typing import Optional

import requests

from speechgate.audio.convert import to_wav_bytes
from speechgate.core.constants import LOCALE_MAP
from speechgate.stt.cloud import USER_AGENT, CloudSTTEngine, to_locale
from speechgate.stt.models import (
    EngineCapabilities,
    EngineDescriptor,
    EngineId,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)

# Azure returns these when the audio held nothing recognizable
_NO_SPEECH_STATUSES = {"NoMatch", "InitialSilenceTimeout", "BabbleTimeout"}


class AzureSpeechSTT(CloudSTTEngine):
    """Azure Speech-to-Text via the regional recognition endpoint."""

    descriptor = EngineDescriptor(
        engine_id=EngineId.AZURE,
        name="Azure Speech",
        requires_network=True,
        capabilities=EngineCapabilities(
            supports_interim_results=True,
            supports_speaker_diarization=True,
            supports_word_timing=True,
            supports_multiple_languages=True,
        ),
        supported_languages=sorted(set(LOCALE_MAP.values())),
    )
    credential_fields = ("subscription_key", "region")

    def __init__(
        self,
        subscription_key: Optional[str] = None,
        region: Optional[str] = None,
        default_locale: str = "en-US",
        profanity: str = "masked",
        request_timeout: float = 30,
        sample_rate: int = 16000,
    ):
        super().__init__(request_timeout=request_timeout)
        self.subscription_key = subscription_key
        self.region = region
        self.default_locale = default_locale
        self.profanity = profanity
        self._sample_rate = sample_rate
        # Streamed audio is recognized in 3 s segments
        self.segment_bytes = sample_rate * 2 * 3

    def api_version(self) -> str:
        return "Azure Speech Services v1.0"

    @property
    def token_url(self) -> str:
        return f"https://{self.region}.api.cognitive.microsoft.com/sts/v1.0/issueToken"

    @property
    def recognition_url(self) -> str:
        return (
            f"https://{self.region}.stt.speech.microsoft.com"
            "/speech/recognition/conversation/cognitiveservices/v1"
        )

    def initialize(self) -> None:
        """Exchange the key for a token to prove key and region are valid."""
        self._require_credentials()
        logger.info(f"Initializing Azure Speech (region={self.region})...")
        with self._http("token request"):
            r = requests.post(
                self.token_url,
                headers={"Ocp-Apim-Subscription-Key": self.subscription_key, "User-Agent": USER_AGENT},
                timeout=self.request_timeout,
            )
            r.raise_for_status()
        self._initialized = True
        logger.info("Azure Speech initialized.")

    def transcribe(
        self,
        audio: bytes,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        self._require_credentials()
        self._check_cancelled(cancel_event)
        started = time.monotonic()
        locale = to_locale(language, self.default_locale)

        with self._http("recognition"):
            r = requests.post(
                self.recognition_url,
                params={"language": locale, "format": "detailed", "profanity": self.profanity},
                headers={
                    "Ocp-Apim-Subscription-Key": self.subscription_key,
                    "Content-Type": f"audio/wav; codecs=audio/pcm; samplerate={self._sample_rate}",
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                },
                data=to_wav_bytes(audio, self._sample_rate),
                timeout=self.request_timeout,
            )
            r.raise_for_status()
            payload = r.json()
        self._check_cancelled(cancel_event)

        elapsed = time.monotonic() - started
        status = payload.get("RecognitionStatus", "")
        if status in _NO_SPEECH_STATUSES:
            return TranscriptionResult.failure(
                "No speech detected", engine=self.engine_id,
                processing_time=elapsed, language=locale,
            )
        if status != "Success":
            return TranscriptionResult.failure(
                f"Azure recognition status: {status or 'unknown'}",
                engine=self.engine_id, processing_time=elapsed, language=locale,
            )

        best = (payload.get("NBest") or [{}])[0]
        text = (best.get("Display") or payload.get("DisplayText") or "").strip()
        if not text:
            return TranscriptionResult.failure(
                "No speech detected", engine=self.engine_id,
                processing_time=elapsed, language=locale,
            )
        return TranscriptionResult.ok(
            text,
            engine=self.engine_id,
            confidence=best.get("Confidence", 0.0),
            language=locale,
            processing_time=elapsed,
            metadata={
                "region": self.region,
                "offset_ticks": payload.get("Offset"),
                "duration_ticks": payload.get("Duration"),
            },
        )
