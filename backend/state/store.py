import dataclasses
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from backend.services.errors import LinguistError
from backend.services.history_store import SessionHistoryStore
from backend.services.lookup_client import LookupClient
from backend.services.narration import NarrationPlayer, NarrationState
from backend.services.schemas import HistoryItem, LookupMode, WordDefinition
from backend.utils.external_sources import build_links
from backend.utils.log_setup import get_logger

logger = get_logger("session")

PANELS = ("left", "right")


@dataclass(frozen=True)
class AppState:
    """One immutable snapshot of everything the UI renders."""

    query: str = ""
    mode: LookupMode = LookupMode.EN
    loading: bool = False
    result: Optional[WordDefinition] = None
    history: Tuple[HistoryItem, ...] = field(default_factory=tuple)
    left_panel_open: bool = True
    right_panel_open: bool = True
    is_listening: bool = False
    transcript_feedback: str = ""
    narration_state: NarrationState = NarrationState.IDLE
    error: Optional[str] = None
    generation: int = 0

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "mode": self.mode.value,
            "loading": self.loading,
            "result": self.result.to_wire() if self.result else None,
            "history": [h.to_wire() for h in self.history],
            "leftPanelOpen": self.left_panel_open,
            "rightPanelOpen": self.right_panel_open,
            "isListening": self.is_listening,
            "transcriptFeedback": self.transcript_feedback,
            "narrationState": self.narration_state.value,
            "error": self.error,
        }


class LinguistSession:
    """Owns AppState; every mutation goes through `_commit`."""

    def __init__(
        self,
        lookup_client: LookupClient,
        history: SessionHistoryStore,
        narration: Optional[NarrationPlayer] = None,
        pronunciation=None,
    ):
        self.lookup_client = lookup_client
        self.history = history
        self.narration = narration
        self.pronunciation = pronunciation
        self._lock = threading.RLock()
        self._subscribers: List[Callable[[AppState], None]] = []
        self.state = AppState(history=tuple(history.load()))

        if narration is not None:
            narration.subscribe(lambda s: self._commit(narration_state=s))

    def subscribe(self, callback: Callable[[AppState], None]):
        self._subscribers.append(callback)

    def _commit(self, **changes) -> AppState:
        with self._lock:
            self.state = dataclasses.replace(self.state, **changes)
            snapshot = self.state
        for callback in list(self._subscribers):
            callback(snapshot)
        return snapshot

    # -------------------------------------------------------
    # LOOKUP
    # -------------------------------------------------------
    def search(self, query: str, mode: Optional[LookupMode] = None) -> Optional[WordDefinition]:
        """Look up `query`; returns None for blank input or a superseded request."""
        trimmed = (query or "").strip()
        if not trimmed:
            return None

        with self._lock:
            mode = LookupMode(mode) if mode is not None else self.state.mode
            generation = self.state.generation + 1
            self._commit(generation=generation, loading=True, transcript_feedback="", error=None)

        try:
            data = self.lookup_client.lookup(trimmed, mode)
        except LinguistError as e:
            logger.error("Lookup of %r failed: %s", trimmed, type(e).__name__)
            with self._lock:
                if generation == self.state.generation:
                    self._commit(loading=False, error=e.message)
            raise

        if not self._is_current(generation, trimmed):
            return None
        # Narration tied to the previous result must not outlive it
        if self.narration is not None:
            self.narration.stop()

        with self._lock:
            if not self._is_current(generation, trimmed):
                return None
            history = self.history.record(data.word)
            self._commit(
                result=data,
                history=tuple(history),
                query=data.word,
                loading=False,
                error=None,
            )
        return data

    def _is_current(self, generation: int, query: str) -> bool:
        latest = self.state.generation
        if generation != latest:
            logger.warning("Discarding stale result for %r (request %d, latest %d)", query, generation, latest)
            return False
        return True

    def select_history(self, word: str) -> Optional[WordDefinition]:
        """Re-run a history entry; always English mode."""
        return self.search(word, LookupMode.EN)

    def submit_voice_query(self, transcript: str, mode: LookupMode):
        self.set_query(transcript)
        return self.search(transcript, mode)

    # -------------------------------------------------------
    # UI STATE
    # -------------------------------------------------------
    def set_mode(self, mode) -> AppState:
        return self._commit(mode=LookupMode(mode))

    def set_query(self, query: str) -> AppState:
        return self._commit(query=query)

    def toggle_panel(self, side: str) -> AppState:
        if side not in PANELS:
            raise ValueError(f"Unknown panel: {side}")
        attr = f"{side}_panel_open"
        with self._lock:
            return self._commit(**{attr: not getattr(self.state, attr)})

    def set_transcript_feedback(self, text: str) -> AppState:
        return self._commit(transcript_feedback=text)

    def set_listening(self, listening: bool) -> AppState:
        return self._commit(is_listening=listening)

    def links(self, word: Optional[str] = None) -> List[dict]:
        state = self.state
        word = word or (state.result.word if state.result else state.query)
        return build_links(word)

    # -------------------------------------------------------
    # SPEECH
    # -------------------------------------------------------
    def toggle_narration(self) -> NarrationState:
        result = self.state.result
        if result is None:
            raise ValueError("Nothing to read aloud yet")
        try:
            return self.narration.toggle(result)
        except LinguistError as e:
            self._commit(error=e.message)
            raise

    def pronounce(self, word: Optional[str] = None):
        """Check availability now; the caller runs the returned job in the background."""
        state = self.state
        word = word or (state.result.word if state.result else "")
        if not word:
            raise ValueError("No word to pronounce")
        self.pronunciation.ensure_available()
        return lambda: self.pronunciation.speak(word)


# -------------------------------------------------------
# DEFAULT WIRING
# -------------------------------------------------------
def build_default_session() -> LinguistSession:
    from backend.services.audio_output import SoundDeviceOutput
    from backend.services.gemini_client import GeminiClient
    from backend.services.history_store import LocalStorage
    from backend.services.lookup_client import GeminiLookupClient
    from backend.services.narration import GeminiSpeechSynthesizer
    from backend.services.pronunciation import PronunciationPlayer

    gemini = GeminiClient()
    output = SoundDeviceOutput()
    return LinguistSession(
        lookup_client=GeminiLookupClient(gemini),
        history=SessionHistoryStore(LocalStorage()),
        narration=NarrationPlayer(GeminiSpeechSynthesizer(gemini), output),
        pronunciation=PronunciationPlayer(output),
    )
