"""Exception hierarchy for SpeechGate."""


class SpeechGateError(Exception):
    """Base exception for all SpeechGate errors."""


class ConfigError(SpeechGateError):
    """Configuration loading or validation error."""


class AudioError(SpeechGateError):
    """Audio decoding or encoding error."""


class STTError(SpeechGateError):
    """Speech-to-text engine error."""


class EngineConfigurationError(ConfigError, STTError):
    """Engine cannot start because it is misconfigured (e.g. missing API key)."""


class ModelNotFoundError(STTError):
    """Required model file or package not found."""


class TranscriptionCancelledError(STTError):
    """The caller cancelled an in-flight transcription."""


class SelectorError(SpeechGateError):
    """Engine selection error."""


class NotInitializedError(SelectorError):
    """No engine is current yet."""


class NoEngineAvailableError(NotInitializedError):
    """Every registered engine failed to initialize."""

    def __init__(self, failures: dict):
        self.failures = dict(failures)
        details = "; ".join(f"{engine}: {reason}" for engine, reason in self.failures.items())
        super().__init__(
            f"No speech recognition engine could be initialized ({details or 'no engines registered'})"
        )


class UnknownEngineError(SelectorError, ValueError):
    """Engine identifier is not known or not registered."""


class EngineUnavailableError(SelectorError):
    """Explicitly requested engine failed to initialize."""

    def __init__(self, engine_id, reason: str, is_configuration_error: bool = False):
        self.engine_id = engine_id
        self.reason = reason
        self.is_configuration_error = is_configuration_error
        super().__init__(f"Engine '{engine_id}' is unavailable: {reason}")


class EngineTimeoutError(STTError):
    """An engine call did not finish within its time limit."""
