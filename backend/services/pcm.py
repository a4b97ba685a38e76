"""Raw PCM helpers for the narration audio.

The TTS model answers with headerless little-endian int16 samples, base64
encoded. Everything here is pure so it can be tested without a sound device.
"""
import base64
import binascii
import io
import wave
from dataclasses import dataclass

import numpy as np

from backend import config
from backend.services.errors import AudioDecodeError

INT16_SCALE = 32768.0
PCM16_DTYPE = np.dtype("<i2")


@dataclass(frozen=True)
class AudioBuffer:
    """Normalized float32 samples, shape (frames,) for mono or (frames, channels)."""

    samples: np.ndarray
    sample_rate: int
    channels: int = 1

    @property
    def frames(self) -> int:
        return int(self.samples.shape[0])

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)


def decode_base64(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioDecodeError("Audio payload is not valid base64") from e


def pcm16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    """Little-endian int16 bytes -> float32 in [-1.0, 1.0)."""
    frame_width = PCM16_DTYPE.itemsize * channels
    if len(data) % frame_width:
        raise AudioDecodeError(
            f"Truncated PCM payload: {len(data)} bytes is not a multiple of {frame_width}"
        )

    samples = np.frombuffer(data, dtype=PCM16_DTYPE).astype(np.float32) / INT16_SCALE
    if channels > 1:
        samples = samples.reshape(-1, channels)
    return samples


def float_to_pcm16(samples) -> bytes:
    """Inverse of pcm16_to_float, clipping to the int16 range."""
    scaled = np.round(np.asarray(samples, dtype=np.float64) * INT16_SCALE)
    return np.clip(scaled, -32768, 32767).astype(PCM16_DTYPE).tobytes()


def decode_pcm_payload(
    payload: str,
    sample_rate: int = config.NARRATION_SAMPLE_RATE,
    channels: int = config.NARRATION_CHANNELS,
) -> AudioBuffer:
    """base64 -> bytes -> normalized samples, ready for the audio output."""
    data = decode_base64(payload)
    if not data:
        raise AudioDecodeError("Audio payload is empty")
    return AudioBuffer(pcm16_to_float(data, channels), sample_rate, channels)


def decode_wav(data: bytes) -> AudioBuffer:
    """16-bit WAV (as produced by the local TTS service) -> AudioBuffer."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wav:
            if wav.getsampwidth() != 2:
                raise AudioDecodeError(f"Unsupported sample width: {wav.getsampwidth() * 8} bits")
            channels = wav.getnchannels()
            sample_rate = wav.getframerate()
            frames = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError) as e:
        raise AudioDecodeError("Invalid WAV data") from e

    return AudioBuffer(pcm16_to_float(frames, channels), sample_rate, channels)
