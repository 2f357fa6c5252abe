"""Audio payload helpers: decode bytes for local models, wrap PCM for cloud APIs.

Callers hand the selector raw bytes. Those bytes are either a complete audio
container (WAV, FLAC, OGG) or headerless 16-bit little-endian mono PCM at the
configured sample rate.
"""

import io
import logging

import numpy as np
import soundfile as sf

from speechgate.core.constants import DEFAULT_SAMPLE_RATE
from speechgate.core.exceptions import AudioError

logger = logging.getLogger(__name__)

_CONTAINER_MAGIC = (b"RIFF", b"fLaC", b"OggS")


def is_container(audio: bytes) -> bool:
    """True if the payload starts with a known container header."""
    return audio[:4] in _CONTAINER_MAGIC


def decode_audio(audio: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> tuple[np.ndarray, int]:
    """Decode a payload into mono float32 samples in [-1, 1].

    Returns (samples, sample_rate).
    """
    if is_container(audio):
        try:
            with io.BytesIO(audio) as buf:
                data, rate = sf.read(buf, dtype="float32")
        except Exception as e:
            raise AudioError(f"Cannot decode audio container: {e}") from e
        if data.ndim > 1:
            data = data.mean(axis=1)
        return data.astype(np.float32), rate

    # Headerless PCM16; a trailing odd byte cannot form a sample
    usable = len(audio) - (len(audio) % 2)
    pcm = np.frombuffer(audio[:usable], dtype="<i2")
    return pcm.astype(np.float32) / 32768.0, sample_rate


def to_wav_bytes(audio: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Return a WAV (PCM_16) rendition of the payload.

    WAV input is passed through untouched; other containers and raw PCM are
    re-encoded.
    """
    if audio[:4] == b"RIFF":
        return audio
    samples, rate = decode_audio(audio, sample_rate)
    wav_buffer = io.BytesIO()
    sf.write(wav_buffer, samples, rate, format="WAV", subtype="PCM_16")
    return wav_buffer.getvalue()


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Linear-interpolation resample, good enough for speech models."""
    if source_rate == target_rate or len(samples) == 0:
        return samples
    target_len = int(len(samples) * target_rate / source_rate)
    logger.debug(f"Resampling {source_rate}Hz -> {target_rate}Hz ({len(samples)} -> {target_len} samples)")
    indices = np.linspace(0, len(samples) - 1, target_len)
    return np.interp(indices, np.arange(len(samples)), samples).astype(np.float32)


def duration_seconds(samples: np.ndarray, sample_rate: int) -> float:
    if sample_rate <= 0:
        return 0.0
    return len(samples) / sample_rate
