"""
Local voice synthesizer used for word pronunciation.
Run with: uvicorn tts_service.api_server:app --host 127.0.0.1 --port 8000
"""
import io
import logging
from contextlib import asynccontextmanager

import torch
from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool  # Essential for non-blocking
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

logger = logging.getLogger("linguist.tts_service")

device = 'cuda' if torch.cuda.is_available() else 'cpu'
if torch.backends.mps.is_available():
    device = 'mps'

LANGUAGES = ('EN',)


def load_models():
    from melo.api import TTS
    return {lang: TTS(language=lang, device=device) for lang in LANGUAGES}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events cleanly"""
    logger.info("Starting TTS service on %s...", device)
    try:
        # Store in app.state so routes can access them
        app.state.tts_models = load_models()
        app.state.model_loaded = True
        logger.info("Voice models loaded: %s", ", ".join(app.state.tts_models))
    except Exception:
        app.state.model_loaded = False
        logger.exception("CRITICAL: error loading voice models")

    yield

    # Clean up on shutdown
    if hasattr(app.state, 'tts_models'):
        app.state.tts_models.clear()
    if torch.cuda.is_available():
        torch.cuda.empty_cache()


app = FastAPI(title="Linguist voice service", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:5000", "http://localhost:5000"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class TTSRequest(BaseModel):
    text: str
    language: str = "EN"
    speaker: str = "EN-US"
    speed: float = 0.8  # pronunciation is read slower than normal speech
    sdp_ratio: float = 0.2
    noise_scale: float = 0.6
    noise_scale_w: float = 0.8


# --- Helper to get models safely ---
def get_tts_model(lang: str):
    models = getattr(app.state, 'tts_models', {})
    if lang not in models:
        raise HTTPException(
            status_code=400,
            detail=f"Language '{lang}' not supported. Available: {list(models.keys())}"
        )
    return models[lang]


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "model_loaded": getattr(app.state, "model_loaded", False),
        "device": device
    }


@app.post("/tts")
async def text_to_speech(request: TTSRequest):
    if not getattr(app.state, "model_loaded", False):
        raise HTTPException(status_code=503, detail="Models are still loading")

    model = get_tts_model(request.language.upper())
    speaker_ids = model.hps.data.spk2id
    if request.speaker not in speaker_ids:
        raise HTTPException(status_code=400, detail=f"Speaker '{request.speaker}' not found")

    bio = io.BytesIO()
    try:
        # Run the heavy synthesis in a threadpool so the API stays responsive
        await run_in_threadpool(
            model.tts_to_file,
            request.text,
            speaker_ids[request.speaker],
            bio,
            speed=request.speed,
            sdp_ratio=request.sdp_ratio,
            noise_scale=request.noise_scale,
            noise_scale_w=request.noise_scale_w,
            format='wav',
            quiet=True
        )
    except Exception as e:
        logger.exception("TTS synthesis failed for %r", request.text)
        raise HTTPException(status_code=500, detail=f"TTS Error: {str(e)}")

    bio.seek(0)
    return StreamingResponse(bio, media_type="audio/wav")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
