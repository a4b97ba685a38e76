import os
import shutil
import subprocess
import tempfile

from backend import config
from backend.services.errors import RecognitionError, UnsupportedPlatform
from backend.utils.log_setup import get_logger

logger = get_logger("asr")


class ASRHandler:
    """faster-whisper recognizer for WebM chunks recorded by the UI."""

    def __init__(
        self,
        model_size: str = config.WHISPER_MODEL,
        device: str = config.WHISPER_DEVICE,
        compute_type: str = config.WHISPER_COMPUTE_TYPE,
    ):
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.model = None

    def _ensure_model_loaded(self):
        """Load model on first use"""
        if self.model is None:
            try:
                from faster_whisper import WhisperModel

                self.model = WhisperModel(
                    self.model_size,
                    device=self.device,
                    compute_type=self.compute_type,
                    num_workers=1,
                )
            except (RuntimeError, OSError) as e:
                raise UnsupportedPlatform("Voice search is not supported on this machine.") from e
            logger.info("✅ Whisper %s loaded", self.model_size)
        return self.model

    def ensure_available(self):
        if shutil.which("ffmpeg") is None:
            raise UnsupportedPlatform("Voice search is not supported: ffmpeg not found.")
        self._ensure_model_loaded()

    def _convert_webm_to_wav(self, webm_bytes):
        process = subprocess.Popen(
            [
                'ffmpeg', '-hide_banner', '-loglevel', 'error',
                '-i', 'pipe:0', '-f', 'wav',
                '-acodec', 'pcm_s16le', '-ac', '1', '-ar', '16000',
                'pipe:1'
            ],
            stdin=subprocess.PIPE, stdout=subprocess.PIPE, stderr=subprocess.PIPE
        )
        try:
            wav_bytes, stderr = process.communicate(input=webm_bytes, timeout=10)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            raise RecognitionError("audio-capture", "Error: audio-capture (conversion timed out)")

        if process.returncode != 0:
            logger.error("FFmpeg error: %s", stderr.decode(errors="replace"))
            raise RecognitionError("audio-capture")
        return wav_bytes

    def transcribe(self, audio: bytes, language: str) -> str:
        """Transcribe accumulated WebM audio in `language` ('en' or 'zh')."""
        if not audio:
            return ""

        model = self._ensure_model_loaded()
        wav_bytes = self._convert_webm_to_wav(audio)

        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(suffix='.wav', delete=False) as temp_file:
                temp_file.write(wav_bytes)
                temp_path = temp_file.name

            segments, info = model.transcribe(
                temp_path,
                language=language,
                beam_size=5,
                vad_filter=True,
                vad_parameters=dict(min_silence_duration_ms=500),
                condition_on_previous_text=False,
            )
            transcription = "".join(segment.text for segment in segments).strip()
            logger.debug("Transcribed %.2fs of %s audio: %r", info.duration, language, transcription)
            return transcription
        finally:
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)
