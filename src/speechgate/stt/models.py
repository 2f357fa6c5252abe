"""Pydantic models shared by every engine adapter and the selector."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EngineId(str, Enum):
    """Closed set of supported speech engines."""

    LOCAL_MODEL = "local-model"
    OPENAI = "openai"
    AZURE = "azure"
    GOOGLE = "google"
    OS_NATIVE = "os-native"

    def __str__(self) -> str:
        return self.value


class ErrorKind(str, Enum):
    """Why a transcription (or a setup step) did not succeed."""

    NOT_INITIALIZED = "not_initialized"
    NO_ENGINE_AVAILABLE = "no_engine_available"
    UNKNOWN_ENGINE = "unknown_engine"
    ENGINE_UNAVAILABLE = "engine_unavailable"
    TRANSCRIPTION_FAILED = "transcription_failed"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"


class EngineCapabilities(BaseModel):
    """Capability flags for one engine."""
    model_config = ConfigDict(frozen=True)

    supports_interim_results: bool = False
    supports_speaker_diarization: bool = False
    supports_word_timing: bool = False
    supports_multiple_languages: bool = True


class EngineDescriptor(BaseModel):
    """Static metadata for an engine, fixed when the adapter is built."""
    model_config = ConfigDict(frozen=True)

    engine_id: EngineId
    name: str
    requires_network: bool
    capabilities: EngineCapabilities = Field(default_factory=EngineCapabilities)
    supported_languages: List[str] = Field(default_factory=list)


class EngineStatus(BaseModel):
    """Point-in-time availability of an engine. Recomputed on every query."""
    model_config = ConfigDict(frozen=True)

    engine_id: EngineId
    is_available: bool
    version: Optional[str] = None
    message: str = ""
    requires_network: bool = False
    last_checked: datetime = Field(default_factory=utcnow)

    @classmethod
    def unavailable(cls, engine_id: EngineId, message: str, **kwargs) -> "EngineStatus":
        return cls(engine_id=engine_id, is_available=False, message=message, **kwargs)


class TranscriptionRequest(BaseModel):
    """Audio to transcribe plus an optional language hint."""
    model_config = ConfigDict(frozen=True)

    audio: bytes
    language: Optional[str] = None

    @field_validator("audio")
    @classmethod
    def _audio_not_empty(cls, value: bytes) -> bytes:
        if not value:
            raise ValueError("audio payload is empty")
        return value


class TranscriptionResult(BaseModel):
    """Normalized output of a transcription, successful or not."""
    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    language: Optional[str] = None
    engine: Optional[EngineId] = None
    success: bool
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    word_count: int = 0
    processing_time: float = Field(default=0.0, ge=0.0, description="Seconds")
    is_final: bool = True
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_outcome(self) -> "TranscriptionResult":
        if self.success:
            if not self.text.strip():
                raise ValueError("successful result must carry text")
            if self.error_message or self.error_kind:
                raise ValueError("successful result cannot carry an error")
        else:
            if self.text:
                raise ValueError("failed result must not carry text")
            if not self.error_message:
                raise ValueError("failed result must carry an error message")
        return self

    @classmethod
    def ok(
        cls,
        text: str,
        engine: EngineId,
        confidence: float,
        language: Optional[str] = None,
        processing_time: float = 0.0,
        **kwargs,
    ) -> "TranscriptionResult":
        """Build a successful result; confidence is clamped into [0, 1]."""
        text = text.strip()
        return cls(
            text=text,
            engine=engine,
            confidence=min(max(float(confidence), 0.0), 1.0),
            language=language,
            success=True,
            word_count=count_words(text),
            processing_time=max(processing_time, 0.0),
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        message: str,
        engine: Optional[EngineId] = None,
        kind: ErrorKind = ErrorKind.TRANSCRIPTION_FAILED,
        processing_time: float = 0.0,
        **kwargs,
    ) -> "TranscriptionResult":
        return cls(
            engine=engine,
            success=False,
            error_message=message or kind.value.replace("_", " "),
            error_kind=kind,
            processing_time=max(processing_time, 0.0),
            **kwargs,
        )


def count_words(text: str) -> int:
    return len(text.split())
