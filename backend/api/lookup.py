from flask import Blueprint, jsonify, request

from backend.app import current_session
from backend.services.schemas import LookupMode

lookup_bp = Blueprint('lookup', __name__)


def _parse_mode(value):
    if value in (None, ""):
        return None
    return LookupMode(str(value).upper())


@lookup_bp.route('/lookup', methods=['POST'])
def lookup_word():
    """
    Look up a word or phrase

    Request body:
    {
        "query": "run",
        "mode": "EN"    // optional, "EN" or "CN"; defaults to the session mode
    }

    Response:
    {
        "success": true,
        "word": "run",
        "entry": { ...WordDefinition... },
        "history": [{"word": "run", "timestamp": 1700000000000}]
    }
    """
    data = request.get_json(silent=True) or {}
    query = (data.get('query') or data.get('word') or '').strip()

    if not query:
        return jsonify({
            'success': False,
            'error': 'No word provided'
        }), 400

    try:
        mode = _parse_mode(data.get('mode'))
    except ValueError:
        return jsonify({'success': False, 'error': f"Unknown mode: {data.get('mode')}"}), 400

    session = current_session()
    result = session.search(query, mode)

    if result is None:
        return jsonify({
            'success': False,
            'stale': True,
            'error': 'Superseded by a newer search'
        }), 409

    return jsonify({
        'success': True,
        'word': result.word,
        'entry': result.to_wire(),
        'history': [h.to_wire() for h in session.state.history]
    }), 200


@lookup_bp.route('/history', methods=['GET'])
def get_history():
    return jsonify([h.to_wire() for h in current_session().state.history])


@lookup_bp.route('/history/select', methods=['POST'])
def select_history():
    """Look up a history entry again (English mode)."""
    data = request.get_json(silent=True) or {}
    word = (data.get('word') or '').strip()
    if not word:
        return jsonify({'success': False, 'error': 'No word provided'}), 400

    session = current_session()
    result = session.select_history(word)
    if result is None:
        return jsonify({'success': False, 'stale': True, 'error': 'Superseded by a newer search'}), 409

    return jsonify({
        'success': True,
        'word': result.word,
        'entry': result.to_wire(),
        'history': [h.to_wire() for h in session.state.history]
    }), 200


@lookup_bp.route('/state', methods=['GET'])
def get_state():
    return jsonify(current_session().state.to_dict())


@lookup_bp.route('/mode', methods=['PUT'])
def set_mode():
    data = request.get_json(silent=True) or {}
    try:
        mode = _parse_mode(data.get('mode'))
    except ValueError:
        mode = None
    if mode is None:
        return jsonify({'success': False, 'error': 'mode must be "EN" or "CN"'}), 400

    state = current_session().set_mode(mode)
    return jsonify({'success': True, 'mode': state.mode.value})


@lookup_bp.route('/panels/<side>/toggle', methods=['POST'])
def toggle_panel(side):
    try:
        state = current_session().toggle_panel(side)
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 404
    return jsonify({
        'success': True,
        'leftPanelOpen': state.left_panel_open,
        'rightPanelOpen': state.right_panel_open
    })


@lookup_bp.route('/sources', methods=['GET'])
def get_sources():
    word = request.args.get('word')
    return jsonify(current_session().links(word))
