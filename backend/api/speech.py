from flask import Blueprint, jsonify, request

from backend.app import current_session, socketio

speech_bp = Blueprint('speech', __name__)


@speech_bp.route('/narration', methods=['POST'])
def toggle_narration():
    """Start narrating the displayed result, or stop it if it is playing."""
    try:
        state = current_session().toggle_narration()
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    return jsonify({'success': True, 'state': state.value})


@speech_bp.route('/narration', methods=['GET'])
def narration_state():
    return jsonify({'state': current_session().state.narration_state.value})


@speech_bp.route('/pronounce', methods=['POST'])
def pronounce():
    data = request.get_json(silent=True) or {}
    word = (data.get('word') or '').strip() or None

    try:
        job = current_session().pronounce(word)
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    # Fire and forget
    socketio.start_background_task(job)
    return jsonify({'success': True}), 202
