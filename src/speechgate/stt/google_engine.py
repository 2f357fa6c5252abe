"""Google Cloud Speech-to-Text engine (v1 REST, API key auth)."""

import base64
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

DEFAULT_BASE_URL = "https://speech.googleapis.com/v1"


class GoogleSpeechSTT(CloudSTTEngine):
    """Synchronous ``speech:recognize`` for clips up to one minute."""

    descriptor = EngineDescriptor(
        engine_id=EngineId.GOOGLE,
        name="Google Speech",
        requires_network=True,
        capabilities=EngineCapabilities(
            supports_interim_results=False,
            supports_speaker_diarization=False,
            supports_word_timing=True,
            supports_multiple_languages=True,
        ),
        supported_languages=sorted(set(LOCALE_MAP.values())),
    )
    credential_fields = ("api_key",)

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        default_locale: str = "en-US",
        enable_punctuation: bool = True,
        request_timeout: float = 30,
        sample_rate: int = 16000,
    ):
        super().__init__(request_timeout=request_timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_locale = default_locale
        self.enable_punctuation = enable_punctuation
        self._sample_rate = sample_rate

    def api_version(self) -> str:
        return "Google Cloud Speech v1"

    def initialize(self) -> None:
        """A cheap authenticated call; rejects bad keys before first use."""
        self._require_credentials()
        logger.info("Initializing Google Speech...")
        with self._http("key check"):
            r = requests.get(
                f"{self.base_url}/operations",
                params={"key": self.api_key, "pageSize": 1},
                headers={"User-Agent": USER_AGENT},
                timeout=self.request_timeout,
            )
            r.raise_for_status()
        self._initialized = True
        logger.info("Google Speech initialized.")

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

        # WAV header carries encoding and rate, so the config can omit both
        content = base64.b64encode(to_wav_bytes(audio, self._sample_rate)).decode("ascii")
        body = {
            "config": {
                "languageCode": locale,
                "enableAutomaticPunctuation": self.enable_punctuation,
                "enableWordTimeOffsets": True,
            },
            "audio": {"content": content},
        }

        with self._http("recognition"):
            r = requests.post(
                f"{self.base_url}/speech:recognize",
                params={"key": self.api_key},
                headers={"User-Agent": USER_AGENT},
                json=body,
                timeout=self.request_timeout,
            )
            r.raise_for_status()
            payload = r.json()
        self._check_cancelled(cancel_event)

        elapsed = time.monotonic() - started
        texts = []
        confidences = []
        detected = locale
        for result in payload.get("results", []):
            alternatives = result.get("alternatives") or []
            if not alternatives:
                continue
            best = alternatives[0]
            transcript = (best.get("transcript") or "").strip()
            if transcript:
                texts.append(transcript)
                confidences.append(best.get("confidence", 0.0))
            detected = result.get("languageCode", detected)

        if not texts:
            return TranscriptionResult.failure(
                "No speech detected", engine=self.engine_id,
                processing_time=elapsed, language=locale,
            )
        return TranscriptionResult.ok(
            " ".join(texts),
            engine=self.engine_id,
            confidence=sum(confidences) / len(confidences),
            language=detected,
            processing_time=elapsed,
            metadata={"billed_time": payload.get("totalBilledTime")},
        )
