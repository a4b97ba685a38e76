import pytest
import requests

from backend.services.errors import UnsupportedPlatform
from backend.services.pronunciation import PronunciationPlayer
from conftest import FakeAudioOutput, FakeHTTPSession, FakeResponse, wav_bytes


def _player(http, output=None):
    return PronunciationPlayer(output or FakeAudioOutput(), base_url="http://tts.local/", session=http)


def test_speak_requests_slow_english_voice_and_plays_it():
    http = FakeHTTPSession()
    http.queue("post", FakeResponse(content=wav_bytes([0.1, 0.2, 0.3])))
    output = FakeAudioOutput()

    _player(http, output).speak(" run ")

    call = http.calls[0]
    assert call["url"] == "http://tts.local/tts"
    assert call["json"] == {"text": "run", "language": "EN", "speaker": "EN-US", "speed": 0.8}
    assert output.played[0].frames == 3


def test_speak_swallows_service_failures():
    http = FakeHTTPSession()
    http.queue("post", FakeResponse(status_code=500, text="boom"))
    output = FakeAudioOutput()

    _player(http, output).speak("run")

    assert output.played == []


def test_speak_ignores_blank_words():
    http = FakeHTTPSession()

    _player(http).speak("  ")

    assert http.calls == []


def test_unreachable_service_is_unsupported():
    http = FakeHTTPSession()
    http.queue("get", requests.ConnectionError("refused"))

    with pytest.raises(UnsupportedPlatform):
        _player(http).ensure_available()


def test_model_not_loaded_is_unsupported():
    http = FakeHTTPSession()
    http.queue("get", FakeResponse(body={"status": "healthy", "model_loaded": False}))

    with pytest.raises(UnsupportedPlatform):
        _player(http).ensure_available()


def test_available_needs_an_output_device():
    http = FakeHTTPSession()
    http.queue("get", FakeResponse(body={"status": "healthy", "model_loaded": True}))

    with pytest.raises(UnsupportedPlatform):
        _player(http, FakeAudioOutput(available=False)).ensure_available()
