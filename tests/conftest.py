"""Shared test fixtures for SpeechGate."""

import io
import threading
from typing import Optional

import numpy as np
import pytest
import soundfile as sf

from speechgate.core.config import AppConfig, AudioConfig, SelectorConfig
from speechgate.core.exceptions import STTError
from speechgate.stt.base import STTEngine
from speechgate.stt.models import (
    EngineCapabilities,
    EngineDescriptor,
    EngineId,
    EngineStatus,
    TranscriptionResult,
)


class FakeEngine(STTEngine):
    """Scriptable adapter for selector tests.

    ``hang_initialize`` / ``hang_status`` block until ``release()`` is
    called; ``transcribe_delay`` blocks on the cancel event, so a cancelled
    or timed-out call wakes up early.
    """

    def __init__(
        self,
        engine_id: EngineId,
        available: bool = True,
        init_error: Optional[Exception] = None,
        text: str = "hello world",
        transcribe_error: Optional[Exception] = None,
        transcribe_delay: float = 0.0,
        status_error: Optional[Exception] = None,
        status_delay: float = 0.0,
        hang_initialize: bool = False,
        hang_status: bool = False,
        interim: bool = False,
    ):
        super().__init__()
        self.descriptor = EngineDescriptor(
            engine_id=engine_id,
            name=f"Fake {engine_id.value}",
            requires_network=engine_id in (EngineId.OPENAI, EngineId.AZURE, EngineId.GOOGLE),
            capabilities=EngineCapabilities(supports_interim_results=interim),
        )
        self.available = available
        self.init_error = init_error
        self.text = text
        self.transcribe_error = transcribe_error
        self.transcribe_delay = transcribe_delay
        self.status_error = status_error
        self.status_delay = status_delay
        self.hang_initialize = hang_initialize
        self.hang_status = hang_status

        self.init_calls = 0
        self.transcribe_calls = 0
        self.status_calls = 0
        self.cleanup_calls = 0
        self.last_language = None
        self.last_audio = None
        self.last_cancel_event = None
        self._release = threading.Event()

    def release(self):
        self._release.set()

    def initialize(self) -> None:
        self.init_calls += 1
        if self.hang_initialize:
            self._release.wait(5)
        if self.init_error is not None:
            raise self.init_error
        self._initialized = True

    def transcribe(self, audio, language=None, cancel_event=None) -> TranscriptionResult:
        self.transcribe_calls += 1
        self.last_language = language
        self.last_audio = audio
        self.last_cancel_event = cancel_event
        if self.transcribe_delay:
            if cancel_event is not None:
                cancel_event.wait(self.transcribe_delay)
            else:
                threading.Event().wait(self.transcribe_delay)
            self._check_cancelled(cancel_event)
        if self.transcribe_error is not None:
            raise self.transcribe_error
        if not self._initialized:
            raise STTError("not initialized")
        return TranscriptionResult.ok(
            self.text, engine=self.engine_id, confidence=0.9, language=language
        )

    def get_status(self) -> EngineStatus:
        self.status_calls += 1
        if self.hang_status:
            self._release.wait(5)
        if self.status_delay:
            threading.Event().wait(self.status_delay)
        if self.status_error is not None:
            raise self.status_error
        return self._status(self.available, "Ready" if self.available else "Missing api_key")

    def cleanup(self) -> None:
        self.cleanup_calls += 1
        super().cleanup()


@pytest.fixture
def make_engine():
    """Factory for FakeEngine instances."""
    return FakeEngine


@pytest.fixture
def make_selector():
    """Build an EngineSelector with short timeouts; shut down after the test."""
    from speechgate.stt.selector import EngineSelector

    created = []

    def _make(engines, **kwargs):
        kwargs.setdefault("init_timeout", 0.5)
        kwargs.setdefault("transcribe_timeout", 0.5)
        kwargs.setdefault("status_timeout", 0.5)
        selector = EngineSelector(engines, **kwargs)
        created.append((selector, engines))
        return selector

    yield _make

    for selector, engines in created:
        for engine in engines:
            if isinstance(engine, FakeEngine):
                engine.release()
        selector.shutdown()


@pytest.fixture
def mock_config():
    """Minimal config for testing."""
    return AppConfig(
        profile="offline",
        language="en",
        audio=AudioConfig(sample_rate=16000, channels=1),
        selector=SelectorConfig(
            priority=["local-model", "openai", "azure", "google", "os-native"],
            init_timeout=1,
            transcribe_timeout=1,
            status_timeout=1,
        ),
        engines={
            "local-model": {"enabled": True, "model_size": "tiny", "device": "cpu"},
            "openai": {"enabled": True, "api_key": "sk-test", "model": "whisper-1"},
            "azure": {"enabled": True, "subscription_key": "az-key", "region": "westeurope"},
            "google": {"enabled": True, "api_key": "g-key"},
            "os-native": {"enabled": True},
        },
        logging={"level": "DEBUG", "file": None},
    )


@pytest.fixture
def sample_pcm():
    """One second of a 440 Hz tone as raw 16-bit PCM."""
    t = np.linspace(0, 1, 16000, endpoint=False, dtype=np.float32)
    signal = (np.sin(2 * np.pi * 440 * t) * 10000).astype("<i2")
    return signal.tobytes()


@pytest.fixture
def sample_wav():
    """One second of a 440 Hz tone as a 16 kHz mono WAV file."""
    t = np.linspace(0, 1, 16000, endpoint=False, dtype=np.float32)
    signal = (np.sin(2 * np.pi * 440 * t) * 0.3).astype(np.float32)
    buf = io.BytesIO()
    sf.write(buf, signal, 16000, format="WAV", subtype="PCM_16")
    return buf.getvalue()
