import sys
import threading

import numpy as np
import pytest

from backend.services.audio_output import SoundDeviceOutput
from backend.services.errors import UnsupportedPlatform
from backend.services.narration import NarrationPlayer, NarrationState
from backend.services.pcm import AudioBuffer
from conftest import FakeSynthesizer


class FakeSoundDevice:
    """Module-shaped stand-in for sounddevice; streams are driven by hand."""

    class PortAudioError(Exception):
        pass

    class CallbackStop(Exception):
        pass

    def __init__(self):
        self.streams = []
        self.open_error = None
        self.start_error = None
        self.has_output = True

    def query_devices(self, device=None, kind=None):
        if not self.has_output:
            raise self.PortAudioError("No output device")
        return {"name": "fake", "max_output_channels": 2}

    def OutputStream(self, **kwargs):
        if self.open_error is not None:
            raise self.open_error
        stream = FakeStream(self, **kwargs)
        self.streams.append(stream)
        return stream


class FakeStream:
    def __init__(self, sd, device=None, samplerate=None, channels=None, dtype=None,
                 callback=None, finished_callback=None):
        self.sd = sd
        self.samplerate = samplerate
        self.channels = channels
        self.callback = callback
        self.finished_callback = finished_callback
        self.started = False
        self.aborted = False
        self.closed = False
        self.callback_stopped = False

    def start(self):
        if self.sd.start_error is not None:
            raise self.sd.start_error
        self.started = True

    def pull(self, frames):
        outdata = np.ones((frames, self.channels), dtype=np.float32)
        try:
            self.callback(outdata, frames, None, None)
        except self.sd.CallbackStop:
            self.callback_stopped = True
        return outdata

    def abort(self):
        # PortAudio runs finished_callback on its own thread and joins it
        self.aborted = True
        if self.finished_callback is None:
            return
        worker = threading.Thread(target=self.finished_callback, daemon=True)
        worker.start()
        worker.join(timeout=2)
        if worker.is_alive():
            raise RuntimeError("finished callback never returned")

    def close(self):
        self.closed = True


@pytest.fixture
def fake_sd(monkeypatch):
    sd = FakeSoundDevice()
    monkeypatch.setitem(sys.modules, "sounddevice", sd)
    return sd


def _buffer(frames, sample_rate=24000):
    return AudioBuffer(np.arange(1, frames + 1, dtype=np.float32) / 10, sample_rate)


def test_callback_feeds_blocks_then_pads_and_stops(fake_sd):
    SoundDeviceOutput().play(_buffer(5))
    stream = fake_sd.streams[0]

    assert stream.started
    assert stream.samplerate == 24000
    np.testing.assert_allclose(stream.pull(2)[:, 0], [0.1, 0.2])
    np.testing.assert_allclose(stream.pull(2)[:, 0], [0.3, 0.4])
    np.testing.assert_allclose(stream.pull(2)[:, 0], [0.5, 0.0])
    assert stream.callback_stopped


def test_buffer_filling_the_last_block_stops_on_next_pull(fake_sd):
    SoundDeviceOutput().play(_buffer(4))
    stream = fake_sd.streams[0]

    stream.pull(2)
    stream.pull(2)
    assert not stream.callback_stopped

    assert not stream.pull(2).any()
    assert stream.callback_stopped


def test_stream_open_error_is_unsupported_platform(fake_sd):
    fake_sd.open_error = fake_sd.PortAudioError("Invalid sample rate")

    with pytest.raises(UnsupportedPlatform):
        SoundDeviceOutput().play(_buffer(4))


def test_stream_start_error_closes_stream(fake_sd):
    fake_sd.start_error = fake_sd.PortAudioError("Device unavailable")

    with pytest.raises(UnsupportedPlatform):
        SoundDeviceOutput().play(_buffer(4))

    assert fake_sd.streams[0].closed


def test_missing_output_device(fake_sd):
    fake_sd.has_output = False

    with pytest.raises(UnsupportedPlatform):
        SoundDeviceOutput().ensure_available()


def test_stop_during_playback_aborts_and_closes(fake_sd):
    finished = []
    handle = SoundDeviceOutput().play(_buffer(10), on_finished=lambda: finished.append(True))

    handle.stop()

    stream = fake_sd.streams[0]
    assert stream.aborted and stream.closed
    assert finished == [True]


# -------------------------------------------------------
# NARRATION ON THE DEVICE
# -------------------------------------------------------
def test_narration_open_error_returns_to_idle(fake_sd, run_definition):
    fake_sd.open_error = fake_sd.PortAudioError("Invalid sample rate")
    player = NarrationPlayer(FakeSynthesizer(), SoundDeviceOutput())

    with pytest.raises(UnsupportedPlatform):
        player.toggle(run_definition)

    assert player.state is NarrationState.IDLE


def test_narration_unexpected_output_error_returns_to_idle(run_definition):
    class BrokenOutput:
        def play(self, buffer, on_finished=None):
            raise RuntimeError("driver crashed")

    player = NarrationPlayer(FakeSynthesizer(), BrokenOutput())

    with pytest.raises(RuntimeError):
        player.toggle(run_definition)

    assert player.state is NarrationState.IDLE


def test_toggle_stop_lets_finished_callback_run(fake_sd, run_definition):
    player = NarrationPlayer(FakeSynthesizer(), SoundDeviceOutput())
    assert player.toggle(run_definition) is NarrationState.PLAYING

    assert player.toggle(run_definition) is NarrationState.IDLE
    assert fake_sd.streams[0].aborted


def test_stop_lets_finished_callback_run(fake_sd, run_definition):
    player = NarrationPlayer(FakeSynthesizer(), SoundDeviceOutput())
    player.toggle(run_definition)

    player.stop()

    assert player.state is NarrationState.IDLE
    assert fake_sd.streams[0].closed


def test_natural_end_returns_to_idle(fake_sd, run_definition):
    player = NarrationPlayer(FakeSynthesizer(), SoundDeviceOutput())
    player.toggle(run_definition)

    fake_sd.streams[0].finished_callback()

    assert player.state is NarrationState.IDLE
