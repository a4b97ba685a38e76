from flask import Flask, current_app, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

from backend import config
from backend.services.errors import LinguistError
from backend.services.voice_input import VoiceInputBridge, VoiceState
from backend.utils.log_setup import get_logger, setup_logging

logger = get_logger("app")

# Use eventlet async_mode for better WebSocket stability
socketio = SocketIO(
    cors_allowed_origins=config.CORS_ORIGINS,
    async_mode="eventlet",
    ping_timeout=60,
    ping_interval=25
)


def current_session():
    return current_app.extensions["linguist_session"]


def current_voice():
    return current_app.extensions["linguist_voice"]


def _build_voice_bridge(session, recognizer):
    if recognizer is None:
        from backend.services.asr_handler import ASRHandler
        recognizer = ASRHandler()

    return VoiceInputBridge(
        recognizer,
        on_final=session.submit_voice_query,
        on_feedback=session.set_transcript_feedback,
        on_state=lambda state: session.set_listening(state is VoiceState.LISTENING),
    )


def create_app(session=None, recognizer=None, debug=False):
    setup_logging(debug)
    app = Flask(__name__)
    CORS(app, origins=config.CORS_ORIGINS)

    if session is None:
        from backend.state.store import build_default_session
        session = build_default_session()

    app.extensions["linguist_session"] = session
    app.extensions["linguist_voice"] = _build_voice_bridge(session, recognizer)

    from .api.lookup import lookup_bp
    from .api.speech import speech_bp

    app.register_blueprint(lookup_bp, url_prefix='/api')
    app.register_blueprint(speech_bp, url_prefix='/api')

    @app.errorhandler(LinguistError)
    def handle_linguist_error(e):
        return jsonify(e.to_dict()), e.status_code

    # Handlers must be queued on socketio before init_app so every new server gets them
    from .api.audio_stream import audio_stream  # noqa: F401

    socketio.init_app(app)
    session.subscribe(lambda state: socketio.emit("state_changed", state.to_dict()))

    logger.info("Linguist app ready (%d history entries)", len(session.state.history))
    return app
