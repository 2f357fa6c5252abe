"""OS-native recognizer (Windows SAPI5 through pywin32).

The in-process recognizer is checked and loaded here, but SAPI only
recognizes from a live audio device, so transcribing a byte payload (batch or
streamed) is not offered and reports a failed result.
"""

import importlib.util
import logging
import platform
import threading
from typing import Optional

from speechgate.core.exceptions import EngineConfigurationError, STTError
from speechgate.stt.base import STTEngine
from speechgate.stt.models import (
    EngineCapabilities,
    EngineDescriptor,
    EngineId,
    EngineStatus,
    TranscriptionResult,
)

logger = logging.getLogger(__name__)


class WindowsSpeechSTT(STTEngine):
    """Windows Speech Recognition (SAPI5)."""

    descriptor = EngineDescriptor(
        engine_id=EngineId.OS_NATIVE,
        name="Windows Speech",
        requires_network=False,
        capabilities=EngineCapabilities(
            supports_interim_results=False,
            supports_speaker_diarization=False,
            supports_word_timing=False,
            supports_multiple_languages=False,
        ),
        supported_languages=["en-US"],
    )

    def __init__(self):
        super().__init__()
        self._recognizer = None

    def _platform_problem(self) -> Optional[str]:
        if platform.system() != "Windows":
            return f"Not supported on {platform.system() or 'this platform'}"
        if importlib.util.find_spec("win32com") is None:
            return "pywin32 not installed. Run: pip install pywin32"
        return None

    def get_status(self) -> EngineStatus:
        problem = self._platform_problem()
        if problem:
            return self._status(False, problem)
        if self._recognizer is not None:
            return self._status(True, f"Ready ({self._recognizer.Recognizer.GetDescription()})", version="SAPI 5")
        return self._status(True, "SAPI available", version="SAPI 5")

    def initialize(self) -> None:
        problem = self._platform_problem()
        if problem:
            raise EngineConfigurationError(problem)

        import win32com.client

        logger.info("Initializing Windows Speech (SAPI5)...")
        try:
            recognizer = win32com.client.Dispatch("SAPI.SpInprocRecognizer")
            installed = recognizer.GetRecognizers()
        except Exception as e:
            raise STTError(f"Cannot create SAPI recognizer: {e}") from e
        if installed.Count == 0:
            raise EngineConfigurationError("No SAPI speech recognizers are installed")

        recognizer.Recognizer = installed.Item(0)
        self._recognizer = recognizer
        self._initialized = True
        logger.info(f"Windows Speech initialized ({installed.Item(0).GetDescription()}).")

    def transcribe(
        self,
        audio: bytes,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        if not self._initialized:
            raise STTError("Windows Speech is not initialized")
        raise STTError("Windows Speech recognizes from an audio device only, not from audio payloads")

    def cleanup(self) -> None:
        self._recognizer = None
        super().cleanup()
