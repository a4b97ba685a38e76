from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

from backend.services.errors import UnsupportedPlatform
from backend.services.pcm import AudioBuffer
from backend.utils.log_setup import get_logger

logger = get_logger("audio")


class PlaybackHandle(ABC):
    @abstractmethod
    def stop(self) -> None:
        """Stop output immediately and release the device stream."""


class AudioOutput(ABC):
    """The local sound device, as seen by the speech bridges."""

    @abstractmethod
    def ensure_available(self) -> None:
        """Raise UnsupportedPlatform when nothing can be played."""

    @abstractmethod
    def play(self, buffer: AudioBuffer, on_finished: Optional[Callable[[], None]] = None) -> PlaybackHandle:
        """Start playback and return at once; `on_finished` fires when output ends."""


class _StreamPlayback(PlaybackHandle):
    """Feeds an AudioBuffer to a sounddevice.OutputStream block by block."""

    def __init__(self, sd, buffer: AudioBuffer, on_finished, device=None):
        self._sd = sd
        samples = buffer.samples.astype(np.float32)
        self._samples = samples.reshape(-1, buffer.channels)
        self._position = 0
        self._stream = sd.OutputStream(
            device=device,
            samplerate=buffer.sample_rate,
            channels=buffer.channels,
            dtype="float32",
            callback=self._callback,
            finished_callback=on_finished,
        )

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug("Output stream status: %s", status)
        chunk = self._samples[self._position:self._position + frames]
        outdata[:len(chunk)] = chunk
        self._position += len(chunk)
        if len(chunk) < frames:
            outdata[len(chunk):] = 0
            raise self._sd.CallbackStop()

    def start(self):
        self._stream.start()

    def stop(self):
        try:
            self._stream.abort()
        finally:
            self.close()

    def close(self):
        self._stream.close()


class SoundDeviceOutput(AudioOutput):
    def __init__(self, device=None):
        self.device = device
        self._sd = None

    def _load(self):
        if self._sd is None:
            try:
                import sounddevice
            except OSError as e:
                # Raised when the PortAudio shared library is missing
                raise UnsupportedPlatform("Audio playback is not available: PortAudio not found.") from e
            self._sd = sounddevice
        return self._sd

    def ensure_available(self):
        sd = self._load()
        try:
            sd.query_devices(self.device, kind="output")
        except (sd.PortAudioError, ValueError) as e:
            raise UnsupportedPlatform("No audio output device found.") from e

    def play(self, buffer, on_finished=None):
        self.ensure_available()
        sd = self._sd
        try:
            playback = _StreamPlayback(sd, buffer, on_finished, self.device)
        except (sd.PortAudioError, ValueError) as e:
            logger.error("Could not open output stream at %d Hz: %s", buffer.sample_rate, e)
            raise UnsupportedPlatform("Audio playback is not available on this device.") from e
        try:
            playback.start()
        except sd.PortAudioError as e:
            playback.close()
            logger.error("Could not start output stream: %s", e)
            raise UnsupportedPlatform("Audio playback is not available on this device.") from e
        logger.debug("Playing %.2fs of audio at %d Hz", buffer.duration, buffer.sample_rate)
        return playback
