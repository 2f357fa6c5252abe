"""Tests for audio payload helpers."""

import io

import numpy as np
import pytest
import soundfile as sf

from speechgate.audio.convert import (
    decode_audio,
    duration_seconds,
    is_container,
    resample,
    to_wav_bytes,
)
from speechgate.core.exceptions import AudioError


class TestDecode:
    def test_raw_pcm(self, sample_pcm):
        samples, rate = decode_audio(sample_pcm, 16000)
        assert rate == 16000
        assert samples.dtype == np.float32
        assert len(samples) == 16000
        assert np.abs(samples).max() <= 1.0

    def test_odd_trailing_byte(self):
        samples, _ = decode_audio(b"\x00\x40\x00\x40\x7f", 16000)
        assert len(samples) == 2
        assert samples[0] == pytest.approx(0.5)

    def test_wav(self, sample_wav):
        assert is_container(sample_wav)
        samples, rate = decode_audio(sample_wav)
        assert rate == 16000
        assert len(samples) == 16000

    def test_stereo_downmixed(self):
        buf = io.BytesIO()
        sf.write(buf, np.zeros((800, 2), dtype=np.float32), 8000, format="WAV")
        samples, rate = decode_audio(buf.getvalue())
        assert samples.ndim == 1
        assert rate == 8000

    def test_corrupt_container(self):
        with pytest.raises(AudioError):
            decode_audio(b"RIFF" + b"\x00" * 20)


class TestToWav:
    def test_wav_passthrough(self, sample_wav):
        assert to_wav_bytes(sample_wav) is sample_wav

    def test_pcm_wrapped(self, sample_pcm):
        wav = to_wav_bytes(sample_pcm, 16000)
        assert wav[:4] == b"RIFF"
        data, rate = sf.read(io.BytesIO(wav))
        assert rate == 16000
        assert len(data) == 16000


class TestResample:
    def test_same_rate(self):
        samples = np.ones(100, dtype=np.float32)
        assert resample(samples, 16000, 16000) is samples

    def test_downsample(self):
        samples = np.zeros(48000, dtype=np.float32)
        out = resample(samples, 48000, 16000)
        assert len(out) == 16000
        assert out.dtype == np.float32

    def test_duration(self):
        assert duration_seconds(np.zeros(8000), 16000) == 0.5
        assert duration_seconds(np.zeros(10), 0) == 0.0
