"""Unit tests for SpeechClip."""

import io
import wave

import numpy as np

from thinkback.services.speech import SpeechClip


def pcm_of(*samples: int) -> bytes:
    return np.array(samples, dtype="<i2").tobytes()


class TestSpeechClip:
    def test_duration(self):
        clip = SpeechClip(pcm=b"\x00\x00" * 24000, sample_rate=24000)
        assert clip.duration == 1.0

    def test_duration_with_speed(self):
        clip = SpeechClip(pcm=b"\x00\x00" * 24000, sample_rate=24000, speed=2.0)
        assert clip.duration == 0.5

    def test_volume_scales_samples(self):
        clip = SpeechClip(pcm=pcm_of(16384, -16384), volume=50)
        assert np.allclose(clip.samples(), [0.25, -0.25])

    def test_odd_trailing_byte_ignored(self):
        clip = SpeechClip(pcm=pcm_of(100) + b"\x01", volume=100)
        assert len(clip.samples()) == 1

    def test_wav_header_reflects_speed(self):
        clip = SpeechClip(pcm=pcm_of(0, 1000, -1000), sample_rate=24000, volume=100, speed=1.5)

        with wave.open(io.BytesIO(clip.to_wav()), "rb") as wav:
            assert wav.getnchannels() == 1
            assert wav.getsampwidth() == 2
            assert wav.getframerate() == 36000
            frames = np.frombuffer(wav.readframes(3), dtype="<i2")

        assert list(frames) == [0, 1000, -1000]

    def test_save(self, tmp_path):
        path = SpeechClip(pcm=pcm_of(1, 2, 3)).save(tmp_path / "out" / "clip.wav")

        assert path.exists()
        assert path.read_bytes()[:4] == b"RIFF"
