from flask import request
from flask_socketio import emit, join_room

from backend.app import current_session, current_voice, socketio
from backend.services.errors import LinguistError, UnsupportedPlatform
from backend.services.schemas import LookupMode
from backend.utils.log_setup import get_logger

logger = get_logger("voice.socket")


@socketio.on('connect')
def handle_connect():
    logger.info("✅ Client connected: %s", request.sid)
    emit("state_changed", current_session().state.to_dict())


@socketio.on('disconnect')
def handle_disconnect(*args):
    logger.info("🔌 Client disconnected: %s", request.sid)


@socketio.on("start_speak")
def start_audio_session(data):
    data = data or {}
    session_id = data.get("session_id", "default")
    session = current_session()

    try:
        mode = LookupMode(data["mode"]) if data.get("mode") else session.state.mode
    except ValueError:
        emit("voice_error", {"error": f"Unknown mode: {data.get('mode')}", "session_id": session_id})
        return

    # Join the room so we can target this specific client
    join_room(session_id)

    try:
        current_voice().start(session_id, mode)
    except UnsupportedPlatform as e:
        logger.warning("Voice search unavailable: %s", e)
        emit("voice_error", {**e.to_dict(), "session_id": session_id}, to=session_id)
        return

    emit("session_ready", {
        "status": "ok",
        "session_id": session_id,
        "locale": mode.recognition_locale
    }, to=session_id)


@socketio.on("audio_chunk")
def handle_audio_chunk(data):
    data = data or {}
    session_id = data.get("session_id", "default")

    if "chunk" not in data:
        logger.warning("No chunk in data for session %s", session_id)
        return

    partial = current_voice().feed(session_id, bytes(data["chunk"]))
    if partial:
        emit("partial_transcript", {"text": partial, "session_id": session_id}, to=session_id)


@socketio.on("end_speak")
def finalize_audio_session(data):
    """Final transcription, then the lookup in the mode the attempt started with."""
    data = data or {}
    session_id = data.get("session_id", "default")
    session = current_session()

    try:
        transcript = current_voice().finalize(session_id)
    except LinguistError as e:
        emit("lookup_error", {**e.to_dict(), "session_id": session_id}, to=session_id)
        return

    if transcript is None:
        emit("voice_error", {
            "error": session.state.transcript_feedback or "Error: aborted",
            "session_id": session_id
        }, to=session_id)
        return

    emit("transcript_ready", {"text": transcript, "session_id": session_id}, to=session_id)

    result = session.state.result
    if result is not None:
        emit("lookup_result", {"entry": result.to_wire(), "session_id": session_id}, to=session_id)


@socketio.on("stop_speak")
def stop_audio_session(data=None):
    current_voice().stop()


@socketio.on_error_default
def default_error_handler(e):
    logger.exception("SocketIO error: %s", e)
