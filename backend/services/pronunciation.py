from typing import Optional

import requests

from backend import config
from backend.services.audio_output import AudioOutput
from backend.services.errors import LinguistError, RequestFailed, UnsupportedPlatform
from backend.services.pcm import decode_wav
from backend.utils.log_setup import get_logger

logger = get_logger("pronunciation")


class PronunciationPlayer:
    """Word-only pronunciation through the local MeloTTS service."""

    def __init__(
        self,
        output: AudioOutput,
        *,
        base_url: str = config.MELOTTS_API_URL,
        session: Optional[requests.Session] = None,
        rate: float = config.PRONUNCIATION_RATE,
        language: str = config.PRONUNCIATION_LANGUAGE,
        speaker: str = config.PRONUNCIATION_SPEAKER,
        timeout: float = 15,
    ):
        self.output = output
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.rate = rate
        self.language = language
        self.speaker = speaker
        self.timeout = timeout

    def ensure_available(self):
        """Probe the voice service and the sound device."""
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=2)
            healthy = response.status_code == 200 and response.json().get("model_loaded", False)
        except (requests.RequestException, ValueError) as e:
            raise UnsupportedPlatform("Speech synthesis is not available: TTS service unreachable.") from e
        if not healthy:
            raise UnsupportedPlatform("Speech synthesis is not available: voice model not loaded.")
        self.output.ensure_available()

    def synthesize(self, word: str) -> bytes:
        try:
            response = self.session.post(
                f"{self.base_url}/tts",
                json={
                    "text": word,
                    "language": self.language,
                    "speaker": self.speaker,
                    "speed": self.rate,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RequestFailed("Pronunciation request failed.") from e

        if response.status_code != 200:
            logger.error("TTS service returned HTTP %s: %s", response.status_code, response.text)
            raise RequestFailed("Pronunciation request failed.")
        return response.content

    def speak(self, word: str) -> None:
        """Fire-and-forget: failures are logged, never raised."""
        word = (word or "").strip()
        if not word:
            return
        try:
            buffer = decode_wav(self.synthesize(word))
            self.output.play(buffer)
        except LinguistError as e:
            logger.warning("Pronunciation of %r failed: %s", word, e)
