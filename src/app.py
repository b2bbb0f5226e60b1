"""
Flask web application exposing the bracket engine as a JSON API.
"""
import os
from datetime import timedelta
from functools import wraps

from flask import Flask, jsonify, request, session

from bracket_core.config import configure_logging, load_settings
from bracket_core.errors import (
    AuthorizationError,
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from bracket_core.results import is_bracket_complete
from bracket_core.service import TournamentService
from storage import OutboxNotifier, StoreAuthorizer, YamlStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SETTINGS_FILE = os.environ.get('TOURNAMENT_SETTINGS_FILE', os.path.join(BASE_DIR, 'settings.yaml'))
SETTINGS = load_settings(SETTINGS_FILE)
DATA_DIR = SETTINGS['data_dir']
configure_logging(SETTINGS)


def _get_or_create_secret_key() -> bytes:
    """Get SECRET_KEY from env, or generate and persist to file."""
    env_key = os.environ.get('SECRET_KEY')
    if env_key:
        return env_key.encode() if isinstance(env_key, str) else env_key
    key_file = os.path.join(DATA_DIR, '.secret_key')
    if os.path.exists(key_file):
        with open(key_file, 'rb') as f:
            return f.read()
    key = os.urandom(24)
    os.makedirs(os.path.dirname(key_file), exist_ok=True)
    with open(key_file, 'wb') as f:
        f.write(key)
    return key


app.secret_key = _get_or_create_secret_key()
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=30)


def get_store() -> YamlStore:
    return YamlStore(DATA_DIR, lock_timeout=SETTINGS['lock_timeout_seconds'])


def get_service() -> TournamentService:
    """Build the service against the current data directory."""
    store = get_store()
    return TournamentService.from_settings(
        SETTINGS,
        store,
        StoreAuthorizer(store, SETTINGS.get('organization_admins')),
        OutboxNotifier(DATA_DIR, SETTINGS['lock_timeout_seconds']),
    )


def login_required(f):
    """Reject the request if no user is signed in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _error(message: str, status: int):
    return jsonify({'success': False, 'error': message}), status


@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return _error(str(e), 400)


@app.errorhandler(NotFoundError)
def handle_not_found(e):
    return _error(str(e), 404)


@app.errorhandler(AuthorizationError)
def handle_authorization_error(e):
    return _error(str(e), 403)


@app.errorhandler(ConcurrencyConflictError)
def handle_conflict(e):
    app.logger.warning(f'Concurrency conflict on {request.path}: {e}')
    return _error(str(e), 409)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _require_int(data: dict, key: str) -> int:
    value = data.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(f'{key} must be an integer')
    return value


# ---- Tournaments ----

@app.route('/api/tournaments/<tournament_id>/bracket', methods=['POST'])
@login_required
def generate_bracket(tournament_id):
    """Generate the bracket or round robin schedule."""
    matches = get_service().generate_bracket(tournament_id, session['user'])
    app.logger.info(f"User {session['user']} generated bracket for {tournament_id}")
    return jsonify({'success': True, 'matches': [m.to_dict() for m in matches]}), 201


@app.route('/api/tournaments/<tournament_id>/bracket', methods=['DELETE'])
@login_required
def clear_bracket(tournament_id):
    removed = get_service().clear_bracket(tournament_id, session['user'])
    return jsonify({'success': True, 'removed': removed})


@app.route('/api/tournaments/<tournament_id>/matches', methods=['GET'])
def list_matches(tournament_id):
    matches = get_service().get_matches(tournament_id)
    return jsonify({
        'matches': [m.to_dict() for m in matches],
        'complete': is_bracket_complete(matches),
    })


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/score', methods=['POST'])
@login_required
def enter_score(tournament_id, match_id):
    """Record or correct a match score."""
    data = _json_body()
    match = get_service().enter_score(
        tournament_id, match_id,
        _require_int(data, 'home_score'),
        _require_int(data, 'away_score'),
        session['user'],
        overtime_winner_id=data.get('overtime_winner_id'),
    )
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/tournaments/<tournament_id>/matches/<match_id>/forfeit', methods=['POST'])
@login_required
def forfeit_match(tournament_id, match_id):
    data = _json_body()
    team_id = data.get('forfeiting_team_id')
    if not team_id:
        raise ValidationError('forfeiting_team_id is required')
    reason = (data.get('reason') or '').strip()
    if not reason:
        raise ValidationError('A forfeit reason is required')
    match = get_service().forfeit_match(tournament_id, match_id, team_id, reason, session['user'])
    return jsonify({'success': True, 'match': match.to_dict()})


@app.route('/api/tournaments/<tournament_id>/standings', methods=['GET'])
def get_standings(tournament_id):
    return jsonify(get_service().get_standings(tournament_id).to_dict())


# ---- Event waitlists ----

@app.route('/api/events/<event_id>/waitlist/promote', methods=['POST'])
@login_required
def promote_waitlist(event_id):
    data = _json_body()
    spot_count = data.get('spot_count', 1)
    if not isinstance(spot_count, int) or isinstance(spot_count, bool):
        raise ValidationError('spot_count must be an integer')
    result = get_service().promote_from_waitlist(event_id, spot_count, requester_id=session['user'])
    return jsonify(dict(result.to_dict(), success=True))


@app.route('/api/events/<event_id>/waitlist', methods=['POST'])
@login_required
def join_waitlist(event_id):
    registered_position = _json_body().get('registered_position')
    if registered_position is not None and not isinstance(registered_position, str):
        raise ValidationError('registered_position must be a string')
    registration = get_service().join_waitlist(event_id, session['user'], registered_position)
    return jsonify({'success': True, 'registration': registration.to_dict()}), 201


@app.route('/api/events/<event_id>/waitlist', methods=['PUT'])
@login_required
def reorder_waitlist(event_id):
    """Body: {"items": [{"registration_id": ..., "position": n}, ...]}"""
    items = _json_body().get('items')
    if not isinstance(items, list):
        raise ValidationError('items must be a list')
    try:
        pairs = [(item['registration_id'], int(item['position'])) for item in items]
    except (KeyError, TypeError, ValueError):
        raise ValidationError('Each item needs a registration_id and an integer position')
    get_service().reorder_waitlist(event_id, pairs, session['user'])
    return jsonify({'success': True})


@app.route('/api/events/<event_id>/registrations/<registration_id>/roster', methods=['POST'])
@login_required
def move_to_roster(event_id, registration_id):
    registration = get_service().move_to_roster(event_id, registration_id, session['user'])
    return jsonify({'success': True, 'registration': registration.to_dict()})


@app.route('/api/events/<event_id>/registrations/<registration_id>/cancel', methods=['POST'])
@login_required
def cancel_registration(event_id, registration_id):
    result = get_service().cancel_registration(event_id, registration_id, session['user'])
    return jsonify(dict(result.to_dict(), success=True))


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1')
