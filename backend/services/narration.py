import threading
from enum import Enum
from typing import Callable, List, Optional

from backend import config
from backend.services.audio_output import AudioOutput, PlaybackHandle
from backend.services.errors import LinguistError, NoAudioPayload
from backend.services.gemini_client import GeminiClient, extract_inline_data
from backend.services.pcm import decode_pcm_payload
from backend.services.schemas import WordDefinition
from backend.utils.log_setup import get_logger

logger = get_logger("narration")

READER_INSTRUCTION = (
    "You are a helpful language teacher. Read the following text naturally and clearly, "
    "pausing briefly between English and Chinese sections: "
)


class NarrationState(str, Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    PLAYING = "PLAYING"


def compose_narration(definition: WordDefinition) -> str:
    """Word, meaning, translation, then the grammar notes; labels give the reader pauses."""
    return (
        f"Word: {definition.word}. "
        f"Meaning: {definition.definition}. "
        f"Chinese translation is {definition.chinese_translation}. "
        f"Here is the detailed explanation: {definition.grammar_notes}"
    )


class GeminiSpeechSynthesizer:
    def __init__(
        self,
        client: Optional[GeminiClient] = None,
        model: str = config.TTS_MODEL,
        voice: str = config.NARRATION_VOICE,
    ):
        self.client = client or GeminiClient()
        self.model = model
        self.voice = voice

    def synthesize(self, text: str) -> str:
        """Return base64 raw PCM for `text`; raises NoAudioPayload when none comes back."""
        body = self.client.generate(
            self.model,
            READER_INSTRUCTION + text,
            {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.voice}},
                },
            },
        )
        data = extract_inline_data(body)
        if not data:
            raise NoAudioPayload()
        return data


class NarrationPlayer:
    """Idle -> Loading -> Playing -> Idle, with toggle-to-stop.

    Owns the audio output exclusively: at most one narration is loading or
    playing at any time. Every start/stop bumps a ticket so late audio and
    completion callbacks from a superseded narration are dropped.
    """

    def __init__(self, synthesizer, output: AudioOutput):
        self.synthesizer = synthesizer
        self.output = output
        self.state = NarrationState.IDLE
        self._handle: Optional[PlaybackHandle] = None
        self._ticket = 0
        self._lock = threading.RLock()
        self._listeners: List[Callable[[NarrationState], None]] = []

    def subscribe(self, listener: Callable[[NarrationState], None]):
        self._listeners.append(listener)

    def _set_state(self, state: NarrationState):
        if state == self.state:
            return
        self.state = state
        for listener in list(self._listeners):
            listener(state)

    # -------------------------------------------------------
    # PUBLIC
    # -------------------------------------------------------
    def toggle(self, definition: WordDefinition) -> NarrationState:
        with self._lock:
            if self.state is NarrationState.LOADING:
                return self.state
            stopping = self.state is NarrationState.PLAYING
            if stopping:
                handle = self._detach_locked()
            else:
                self._ticket += 1
                ticket = self._ticket
                self._set_state(NarrationState.LOADING)
        if stopping:
            self._stop_handle(handle)
            return NarrationState.IDLE

        started = False
        try:
            payload = self.synthesizer.synthesize(compose_narration(definition))
            buffer = decode_pcm_payload(payload)

            with self._lock:
                if ticket != self._ticket:
                    logger.info("Dropping narration audio for %r; it was stopped while loading", definition.word)
                    return self.state

            # Opened outside the lock: the device may call back from its own thread
            handle = self.output.play(buffer, on_finished=lambda: self._on_finished(ticket))
            with self._lock:
                if ticket == self._ticket:
                    self._handle, handle = handle, None
                    self._set_state(NarrationState.PLAYING)
                    started = True
            # Stopped or already finished while the stream was opening
            self._stop_handle(handle)
            return self.state
        except LinguistError as e:
            logger.warning("Narration for %r failed: %s", definition.word, e)
            raise
        finally:
            if not started:
                self._reset(ticket)

    def stop(self):
        with self._lock:
            handle = self._detach_locked()
        self._stop_handle(handle)

    # -------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------
    def _detach_locked(self) -> Optional[PlaybackHandle]:
        self._ticket += 1
        handle, self._handle = self._handle, None
        self._set_state(NarrationState.IDLE)
        return handle

    @staticmethod
    def _stop_handle(handle: Optional[PlaybackHandle]):
        # Never under the player lock: stopping joins the device thread,
        # which may be waiting in _on_finished
        if handle is not None:
            handle.stop()

    def _reset(self, ticket):
        with self._lock:
            if ticket == self._ticket:
                self._handle = None
                self._set_state(NarrationState.IDLE)

    def _on_finished(self, ticket):
        with self._lock:
            if ticket != self._ticket:
                return
            self._ticket += 1
            self._handle = None
            self._set_state(NarrationState.IDLE)
