"""Abstract base class for Speech-to-Text engine adapters."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from speechgate.core.exceptions import STTError, TranscriptionCancelledError
from speechgate.stt.models import EngineDescriptor, EngineId, EngineStatus, TranscriptionResult

logger = logging.getLogger(__name__)


class STTEngine(ABC):
    """Abstract Speech-to-Text engine adapter.

    One adapter wraps one engine. ``initialize`` and ``transcribe`` may raise;
    the selector decides how those errors reach its callers.
    """

    descriptor: EngineDescriptor

    # 3 s of 16 kHz mono PCM16 per recognized segment while listening
    segment_bytes: int = 96000

    def __init__(self):
        self._initialized = False
        self._listening = False
        self._stream = bytearray()
        self._stream_lock = threading.Lock()

    @property
    def engine_id(self) -> EngineId:
        return self.descriptor.engine_id

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_listening(self) -> bool:
        return self._listening

    @abstractmethod
    def initialize(self) -> None:
        """Prepare the engine (load model, verify credentials). Raise on failure."""
        ...

    @abstractmethod
    def transcribe(
        self,
        audio: bytes,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        """Transcribe an audio payload."""
        ...

    @abstractmethod
    def get_status(self) -> EngineStatus:
        """Report current availability. Must not change engine state."""
        ...

    def start_listening(self) -> None:
        """Begin continuous recognition (streaming engines only).

        Audio then arrives through ``feed_audio``; every ``segment_bytes`` of
        buffered PCM is recognized as one segment.
        """
        if not self.descriptor.capabilities.supports_interim_results:
            raise STTError(f"{self.descriptor.name} does not support continuous recognition")
        if not self._initialized:
            raise STTError(f"{self.descriptor.name} is not initialized")
        with self._stream_lock:
            self._stream.clear()
            self._listening = True
        logger.info(f"{self.descriptor.name}: listening started")

    def feed_audio(
        self,
        chunk: bytes,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[TranscriptionResult]:
        """Buffer a chunk of PCM; recognize once a full segment is buffered.

        Returns None while the segment is still filling.
        """
        with self._stream_lock:
            if not self._listening:
                raise STTError(f"{self.descriptor.name} is not listening")
            self._stream.extend(chunk)
            if len(self._stream) < self.segment_bytes:
                return None
            segment = bytes(self._stream)
            self._stream.clear()
        return self.transcribe(segment, language, cancel_event)

    def flush_audio(
        self,
        language: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[TranscriptionResult]:
        """Recognize whatever is still buffered, if anything."""
        with self._stream_lock:
            segment = bytes(self._stream)
            self._stream.clear()
        if len(segment) < 2:
            return None
        return self.transcribe(segment, language, cancel_event)

    def stop_listening(self) -> None:
        """Stop continuous recognition, dropping any unrecognized audio."""
        with self._stream_lock:
            was_listening = self._listening
            self._listening = False
            self._stream.clear()
        if was_listening:
            logger.info(f"{self.descriptor.name}: listening stopped")

    def cleanup(self) -> None:
        """Release engine resources."""
        self.stop_listening()
        self._initialized = False

    def _status(self, is_available: bool, message: str, version: Optional[str] = None) -> EngineStatus:
        return EngineStatus(
            engine_id=self.engine_id,
            is_available=is_available,
            version=version,
            message=message,
            requires_network=self.descriptor.requires_network,
        )

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise TranscriptionCancelledError(f"{self.descriptor.name} transcription cancelled")
