"""SpeechGate: one transcription contract over many speech engines."""

__version__ = "0.3.0"
