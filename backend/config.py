import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Read from the environment: the Gemini credential and the debug switch
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")

# -------------------------------------------------------
# GEMINI
# -------------------------------------------------------
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"
LOOKUP_MODEL = "gemini-3-flash-preview"
TTS_MODEL = "gemini-2.5-flash-preview-tts"
NARRATION_VOICE = "Kore"
REQUEST_TIMEOUT = 30

# Raw PCM returned by the TTS model: mono, little-endian int16
NARRATION_SAMPLE_RATE = 24000
NARRATION_CHANNELS = 1

# -------------------------------------------------------
# LOCAL SPEECH
# -------------------------------------------------------
# MeloTTS service from tts_service/api_server.py
MELOTTS_API_URL = "http://localhost:8000"
PRONUNCIATION_LANGUAGE = "EN"
PRONUNCIATION_SPEAKER = "EN-US"
PRONUNCIATION_RATE = 0.8

WHISPER_MODEL = "small"
WHISPER_DEVICE = "auto"
WHISPER_COMPUTE_TYPE = "int8"
# Transcribe the accumulated audio every N chunks for the live transcript
INTERIM_EVERY_CHUNKS = 4

# -------------------------------------------------------
# STORAGE / UI SHELL
# -------------------------------------------------------
STORAGE_PATH = Path.home() / ".linguist" / "storage.json"
HISTORY_KEY = "linguist_history"
HISTORY_LIMIT = 50

HOST = "127.0.0.1"
PORT = 5000
DEBUG = os.getenv("LINGUIST_DEBUG", "").lower() in ("1", "true", "yes")
CORS_ORIGINS = ["http://127.0.0.1:5173", "http://localhost:5173"]
