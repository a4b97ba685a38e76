import threading
from enum import Enum
from typing import Callable, List, Optional

from backend import config
from backend.services.errors import RecognitionError
from backend.services.schemas import LookupMode
from backend.utils.log_setup import get_logger

logger = get_logger("voice")

LISTENING_FEEDBACK = "Listening..."


class VoiceState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    FINALIZING = "FINALIZING"
    ERROR = "ERROR"


class _Attempt:
    def __init__(self, session_id: str, mode: LookupMode):
        self.session_id = session_id
        self.mode = mode
        self.chunks: List[bytes] = []

    @property
    def audio(self) -> bytes:
        return b"".join(self.chunks)


class VoiceInputBridge:
    """Start / listen / finalize flow around a speech recognizer.

    Callbacks:
      on_feedback(text)      live transcript or status text for the UI
      on_state(state)        every state transition
      on_final(text, mode)   finalized transcript, to be looked up
    """

    def __init__(
        self,
        recognizer,
        on_final: Callable[[str, LookupMode], object],
        on_feedback: Optional[Callable[[str], None]] = None,
        on_state: Optional[Callable[[VoiceState], None]] = None,
        interim_every: int = config.INTERIM_EVERY_CHUNKS,
    ):
        self.recognizer = recognizer
        self.on_final = on_final
        self.on_feedback = on_feedback or (lambda text: None)
        self.on_state = on_state or (lambda state: None)
        self.interim_every = max(1, interim_every)
        self.interim_results = True
        self.state = VoiceState.IDLE
        self._attempt: Optional[_Attempt] = None
        self._lock = threading.RLock()

    @property
    def active_session(self) -> Optional[str]:
        return self._attempt.session_id if self._attempt else None

    def _set_state(self, state: VoiceState):
        self.state = state
        self.on_state(state)

    # -------------------------------------------------------
    # PUBLIC
    # -------------------------------------------------------
    def start(self, session_id: str, mode: LookupMode) -> VoiceState:
        # Raises UnsupportedPlatform before anything changes
        self.recognizer.ensure_available()

        with self._lock:
            if self._attempt is not None:
                logger.info("Stopping previous voice session %s", self._attempt.session_id)
                self._abort_locked()
            self._attempt = _Attempt(session_id, LookupMode(mode))
            self._set_state(VoiceState.LISTENING)
        logger.info("Listening for %s speech (session %s)", LookupMode(mode).recognition_locale, session_id)
        self.on_feedback(LISTENING_FEEDBACK)
        return self.state

    def feed(self, session_id: str, chunk: bytes) -> Optional[str]:
        """Accumulate a chunk; return the interim transcript when one was produced."""
        with self._lock:
            attempt = self._attempt
            if attempt is None or attempt.session_id != session_id or self.state is not VoiceState.LISTENING:
                logger.debug("Ignoring chunk for inactive voice session %s", session_id)
                return None
            attempt.chunks.append(chunk)
            if not self.interim_results or len(attempt.chunks) % self.interim_every:
                return None
            audio = attempt.audio

        try:
            partial = self.recognizer.transcribe(audio, attempt.mode.recognition_language)
        except RecognitionError as e:
            # Interim failures are not fatal; the final pass decides
            logger.debug("Interim transcription failed: %s", e)
            return None

        with self._lock:
            if self._attempt is not attempt:
                return None
        if partial:
            self.on_feedback(partial)
        return partial

    def finalize(self, session_id: str) -> Optional[str]:
        with self._lock:
            attempt = self._attempt
            if attempt is None or attempt.session_id != session_id:
                return None
            self._set_state(VoiceState.FINALIZING)
            audio = attempt.audio

        try:
            transcript = self.recognizer.transcribe(audio, attempt.mode.recognition_language)
            if not transcript:
                raise RecognitionError("no-speech")
        except RecognitionError as e:
            self._fail(attempt, e)
            return None

        with self._lock:
            if self._attempt is not attempt:
                return None
            self._attempt = None
        self.on_feedback(transcript)
        try:
            self.on_final(transcript, attempt.mode)
        finally:
            self._set_state(VoiceState.IDLE)
        return transcript

    def stop(self):
        with self._lock:
            if self._attempt is not None:
                self._abort_locked()

    # -------------------------------------------------------
    # HELPERS
    # -------------------------------------------------------
    def _abort_locked(self):
        self._attempt = None
        self._set_state(VoiceState.IDLE)

    def _fail(self, attempt, error: RecognitionError):
        logger.warning("Speech recognition error: %s", error.code)
        with self._lock:
            if self._attempt is not attempt:
                return
            self._attempt = None
            self._set_state(VoiceState.ERROR)
        self.on_feedback(f"Error: {error.code}")
        self._set_state(VoiceState.IDLE)
