"""Tests for engine and transcription models."""

import pytest
from pydantic import ValidationError

from speechgate.stt.models import (
    EngineCapabilities,
    EngineId,
    EngineStatus,
    ErrorKind,
    TranscriptionRequest,
    TranscriptionResult,
)


class TestEngineId:
    def test_values(self):
        assert [e.value for e in EngineId] == [
            "local-model", "openai", "azure", "google", "os-native",
        ]

    def test_str(self):
        assert str(EngineId.OS_NATIVE) == "os-native"


class TestEngineCapabilities:
    def test_defaults(self):
        caps = EngineCapabilities()
        assert caps.supports_interim_results is False
        assert caps.supports_multiple_languages is True

    def test_frozen(self):
        caps = EngineCapabilities()
        with pytest.raises(ValidationError):
            caps.supports_word_timing = True


class TestEngineStatus:
    def test_unavailable(self):
        status = EngineStatus.unavailable(EngineId.AZURE, "Missing region")
        assert status.is_available is False
        assert status.message == "Missing region"
        assert status.last_checked is not None


class TestTranscriptionRequest:
    def test_empty_audio_rejected(self):
        with pytest.raises(ValidationError):
            TranscriptionRequest(audio=b"")

    def test_language_optional(self):
        req = TranscriptionRequest(audio=b"\x00\x01")
        assert req.language is None


class TestTranscriptionResult:
    def test_ok(self):
        result = TranscriptionResult.ok("  Hello there  ", engine=EngineId.OPENAI, confidence=0.87)
        assert result.success is True
        assert result.text == "Hello there"
        assert result.word_count == 2
        assert result.error_message is None
        assert result.is_final is True

    def test_ok_clamps_confidence(self):
        assert TranscriptionResult.ok("hi", engine=EngineId.OPENAI, confidence=1.7).confidence == 1.0
        assert TranscriptionResult.ok("hi", engine=EngineId.OPENAI, confidence=-2).confidence == 0.0

    def test_failure(self):
        result = TranscriptionResult.failure("No speech detected", engine=EngineId.GOOGLE)
        assert result.success is False
        assert result.text == ""
        assert result.error_kind is ErrorKind.TRANSCRIPTION_FAILED
        assert result.word_count == 0

    def test_failure_without_message_gets_kind(self):
        result = TranscriptionResult.failure("", kind=ErrorKind.TIMEOUT)
        assert result.error_message == "timeout"

    def test_success_requires_text(self):
        with pytest.raises(ValidationError):
            TranscriptionResult(success=True, text="   ")

    def test_success_cannot_carry_error(self):
        with pytest.raises(ValidationError):
            TranscriptionResult(success=True, text="hi", error_message="oops")

    def test_failure_cannot_carry_text(self):
        with pytest.raises(ValidationError):
            TranscriptionResult(success=False, text="hi", error_message="oops")

    def test_failure_requires_message(self):
        with pytest.raises(ValidationError):
            TranscriptionResult(success=False)

    def test_confidence_range(self):
        with pytest.raises(ValidationError):
            TranscriptionResult(success=True, text="hi", confidence=1.5)
