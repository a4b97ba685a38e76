import base64
import io
import json
import wave
from typing import Any, Dict, List, Optional

import numpy as np
import pytest

from backend.services.audio_output import AudioOutput, PlaybackHandle
from backend.services.errors import UnsupportedPlatform
from backend.services.history_store import LocalStorage, SessionHistoryStore
from backend.services.lookup_client import FixtureLookupClient
from backend.services.narration import NarrationPlayer
from backend.services.pcm import float_to_pcm16
from backend.services.schemas import LookupMode, WordDefinition
from backend.state.store import LinguistSession

RUN_PAYLOAD: Dict[str, Any] = {
    "word": "run",
    "phonetic": "/rʌn/",
    "partOfSpeech": "verb",
    "definition": "move at speed faster than a walk, never having both feet on the ground at the same time",
    "chineseTranslation": "跑",
    "examples": [{"en": "I run every morning.", "cn": "我每天早上跑步。"}],
    "synonyms": ["jog", "sprint"],
    "antonyms": ["walk"],
    "grammarNotes": "run 是不规则动词，过去式 ran，过去分词 run。",
}

# "跑步" under CN mode resolves to a different headword than "run" under EN
JOG_PAYLOAD: Dict[str, Any] = {
    "word": "go jogging",
    "phonetic": "/ɡəʊ ˈdʒɒɡɪŋ/",
    "partOfSpeech": "verb phrase",
    "definition": "run at a steady, gentle pace as exercise",
    "chineseTranslation": "跑步",
    "examples": [],
    "grammarNotes": "“go + 动名词”表示去从事某项活动。",
}


# -------------------------------------------------------
# FAKES
# -------------------------------------------------------
class FakeResponse:
    def __init__(self, status_code=200, body=None, text="", content=b""):
        self.status_code = status_code
        self._body = body
        self.text = text or (json.dumps(body) if body is not None else "")
        self.content = content

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeHTTPSession:
    """Stands in for requests.Session; replies are queued per method."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.replies = {"post": [], "get": []}

    def queue(self, method, reply):
        self.replies[method].append(reply)

    def _reply(self, method, call):
        self.calls.append(call)
        reply = self.replies[method].pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def post(self, url, json=None, headers=None, timeout=None):
        return self._reply("post", {"method": "post", "url": url, "json": json, "headers": headers, "timeout": timeout})

    def get(self, url, timeout=None):
        return self._reply("get", {"method": "get", "url": url, "timeout": timeout})


def gemini_text_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def gemini_audio_body(data: Optional[str]) -> dict:
    part = {"inlineData": {"mimeType": "audio/L16;codec=pcm;rate=24000", "data": data}} if data else {}
    return {"candidates": [{"content": {"parts": [part]}}]}


def pcm_base64(samples) -> str:
    return base64.b64encode(float_to_pcm16(samples)).decode("ascii")


def wav_bytes(samples, sample_rate=44100) -> bytes:
    bio = io.BytesIO()
    with wave.open(bio, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(float_to_pcm16(samples))
    return bio.getvalue()


class FakeHandle(PlaybackHandle):
    def __init__(self, on_finished):
        self.on_finished = on_finished
        self.stopped = False

    def stop(self):
        self.stopped = True

    def finish(self):
        if self.on_finished:
            self.on_finished()


class FakeAudioOutput(AudioOutput):
    def __init__(self, available=True):
        self.available = available
        self.played = []
        self.handles: List[FakeHandle] = []

    def ensure_available(self):
        if not self.available:
            raise UnsupportedPlatform("No audio output device found.")

    def play(self, buffer, on_finished=None):
        self.ensure_available()
        self.played.append(buffer)
        handle = FakeHandle(on_finished)
        self.handles.append(handle)
        return handle


class FakeSynthesizer:
    def __init__(self, payload=None, error=None):
        self.payload = payload if payload is not None else pcm_base64(np.linspace(-0.5, 0.5, 240))
        self.error = error
        self.texts: List[str] = []

    def synthesize(self, text):
        self.texts.append(text)
        if self.error is not None:
            raise self.error
        return self.payload


class FakeRecognizer:
    def __init__(self, transcripts=None, available=True):
        self.transcripts = list(transcripts or [])
        self.available = available
        self.calls = []

    def ensure_available(self):
        if not self.available:
            raise UnsupportedPlatform("Voice search is not supported in this browser.")

    def transcribe(self, audio, language):
        self.calls.append((audio, language))
        reply = self.transcripts.pop(0) if self.transcripts else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakePronunciation:
    def __init__(self, available=True):
        self.available = available
        self.spoken = []

    def ensure_available(self):
        if not self.available:
            raise UnsupportedPlatform("Speech synthesis is not available: TTS service unreachable.")

    def speak(self, word):
        self.spoken.append(word)


# -------------------------------------------------------
# FIXTURES
# -------------------------------------------------------
@pytest.fixture
def run_definition():
    return WordDefinition.model_validate(RUN_PAYLOAD)


@pytest.fixture
def clock():
    ticks = iter(range(1_700_000_000_000, 1_700_000_000_000 + 10_000))
    return lambda: next(ticks)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(tmp_path / "storage.json")


@pytest.fixture
def history_store(storage, clock):
    return SessionHistoryStore(storage, clock=clock)


@pytest.fixture
def lookup_client():
    client = FixtureLookupClient()
    client.add("run", LookupMode.EN, RUN_PAYLOAD)
    client.add("跑步", LookupMode.CN, JOG_PAYLOAD)
    return client


@pytest.fixture
def audio_output():
    return FakeAudioOutput()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def narration(synthesizer, audio_output):
    return NarrationPlayer(synthesizer, audio_output)


@pytest.fixture
def pronunciation():
    return FakePronunciation()


@pytest.fixture
def session(lookup_client, history_store, narration, pronunciation):
    return LinguistSession(lookup_client, history_store, narration=narration, pronunciation=pronunciation)


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def app(session, recognizer):
    from backend.app import create_app

    app = create_app(session=session, recognizer=recognizer)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def socket_client(app):
    from backend.app import socketio

    client = socketio.test_client(app)
    yield client
    if client.is_connected():
        client.disconnect()
