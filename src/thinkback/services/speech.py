"""Rendering of synthesized speech to playable audio."""

import io
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

DEFAULT_SAMPLE_RATE = 24000


@dataclass
class SpeechClip:
    """16-bit mono PCM audio plus playback parameters."""

    pcm: bytes
    sample_rate: int = DEFAULT_SAMPLE_RATE
    volume: int = 80  # 0-100
    speed: float = 1.0  # playback rate multiplier

    @property
    def duration(self) -> float:
        """Playback length in seconds at the configured speed."""
        frames = len(self.pcm) // 2
        return frames / (self.sample_rate * self.speed)

    def samples(self) -> np.ndarray:
        """Decode PCM to float samples in [-1, 1) with volume applied."""
        # Drop a trailing odd byte
        usable = len(self.pcm) - len(self.pcm) % 2
        data = np.frombuffer(self.pcm[:usable], dtype="<i2").astype(np.float32) / 32768.0
        return data * (self.volume / 100.0)

    def to_wav(self) -> bytes:
        """Encode as a WAV file. Speed is applied as a playback-rate change."""
        scaled = np.clip(self.samples() * 32768.0, -32768, 32767).astype("<i2")
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(2)
            wav.setframerate(int(round(self.sample_rate * self.speed)))
            wav.writeframes(scaled.tobytes())
        return buffer.getvalue()

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_wav())
        return path
