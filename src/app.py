"""
Flask web application for Badminton Showdown.
"""
import os
import re
import queue
import logging
from datetime import timedelta
from functools import wraps
from typing import Optional

import click
import yaml
from filelock import FileLock, Timeout
from flask import Flask, request, jsonify, Response, stream_with_context, session
from werkzeug.security import check_password_hash, generate_password_hash

from showdown.broadcast import Broadcaster, UPDATE_EVENT, format_sse, make_event
from showdown.errors import (
    NotFoundError,
    SetupLockedError,
    ShowdownError,
    ValidationError,
)
from showdown.knockout import champion, ensure_knockout_games, resolve_knockout
from showdown.models import clone_state
from showdown.roster import load_players
from showdown.schedule import generate_schedule, roster_conflicts, update_team
from showdown.scoring import record_group_score, record_knockout_score
from showdown.serialization import normalize_state
from showdown.standings import calculate_all_standings
from showdown.store import DEFAULT_TOURNAMENT, LOCK_TIMEOUT, YamlTournamentStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('SHOWDOWN_DATA_DIR', os.path.join(BASE_DIR, 'data'))
PLAYERS_FILE = os.environ.get('SHOWDOWN_PLAYERS_FILE', os.path.join(BASE_DIR, 'players.csv'))
USERS_FILE = os.path.join(DATA_DIR, 'users.yaml')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

REQUEST_ID_HEADER = 'X-Request-Id'
HEARTBEAT_SECONDS = 15

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
app.logger.setLevel(LOG_LEVEL)


def _secret_key() -> bytes:
    """SECRET_KEY from the environment, else a random key kept in the data dir."""
    if os.environ.get('SECRET_KEY'):
        return os.environ['SECRET_KEY'].encode()
    key_path = os.path.join(DATA_DIR, '.secret_key')
    os.makedirs(DATA_DIR, exist_ok=True)
    with FileLock(key_path + '.lock', timeout=LOCK_TIMEOUT):
        if not os.path.exists(key_path):
            with open(key_path, 'wb') as f:
                f.write(os.urandom(24))
        with open(key_path, 'rb') as f:
            return f.read()


app.secret_key = _secret_key()
app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=1)

store = YamlTournamentStore(DATA_DIR)
broadcaster = Broadcaster()
players = load_players(PLAYERS_FILE)

STORAGE_ERRORS = (OSError, Timeout, yaml.YAMLError)
USERNAME_RE = re.compile(r'^[a-z0-9][a-z0-9-]+$')


def _score_keepers() -> dict:
    """username -> password hash, as stored in USERS_FILE."""
    if not os.path.exists(USERS_FILE):
        return {}
    with open(USERS_FILE, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return data.get('scorekeepers') or {}


def create_user(username: str, password: str) -> tuple:
    """Register a score keeper. Returns (ok, message)."""
    username = username.lower().strip()
    if not USERNAME_RE.match(username):
        return False, 'Username must be at least 2 characters: letters, numbers, hyphens.'
    if len(password) < 4:
        return False, 'Password must be at least 4 characters.'

    os.makedirs(os.path.dirname(USERS_FILE), exist_ok=True)
    with FileLock(USERS_FILE + '.lock', timeout=LOCK_TIMEOUT):
        keepers = _score_keepers()
        if username in keepers:
            return False, 'Username already taken.'
        keepers[username] = generate_password_hash(password)
        with open(USERS_FILE, 'w', encoding='utf-8') as f:
            yaml.safe_dump({'scorekeepers': keepers}, f, default_flow_style=False)
    app.logger.info(f'Score keeper {username} created')
    return True, f'Score keeper {username} created.'


def check_login(username: str, password: str) -> Optional[str]:
    """Return the normalized username if the password matches, else None."""
    username = username.lower().strip()
    password_hash = _score_keepers().get(username)
    if password_hash and check_password_hash(password_hash, password):
        return username
    return None


def login_required(f):
    """Reject writes from clients that are not logged in."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            app.logger.warning(f'Unauthenticated {request.method} {request.path}')
            return jsonify({'error': 'Please login to make changes'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _tournament_id() -> str:
    return request.args.get('tournament', DEFAULT_TOURNAMENT)


def _request_id():
    return request.headers.get(REQUEST_ID_HEADER)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _view(state: dict) -> dict:
    """State as clients see it, with bracket slots derived from the current standings."""
    return resolve_knockout(clone_state(state))


def _error_status(error: ShowdownError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, SetupLockedError):
        return 409
    return 400


def _mutate(action, change, failure_message='Failed to save changes'):
    """Run `change` against the active tournament, persist, and broadcast.

    `change(state)` mutates the state or returns a replacement. The bracket is
    re-resolved before saving. Returns a Flask response.
    """
    tournament_id = _tournament_id()
    request_id = _request_id()
    outcome = {}

    def apply(state):
        result = change(state)
        if isinstance(result, dict) and 'teams' in result:
            state = result
        elif result is not None:
            outcome['result'] = result
        return resolve_knockout(state)

    try:
        state = store.modify(tournament_id, apply)
    except ShowdownError as e:
        app.logger.warning(f'{action} rejected for {tournament_id}: {e}')
        return jsonify({'error': str(e)}), _error_status(e)
    except STORAGE_ERRORS:
        app.logger.exception(f'{action} failed for {tournament_id}')
        return jsonify({'error': failure_message}), 500

    app.logger.info(f'{action} for {tournament_id} by {session.get("user")}')
    broadcaster.publish(tournament_id, state, origin=request_id)
    body = {'success': True, 'state': state, 'requestId': request_id}
    if 'result' in outcome:
        body['result'] = outcome['result']
    return jsonify(body)


@app.route('/login', methods=['POST'])
def login_page():
    """Authenticate and start a session."""
    data = request.get_json(silent=True) or request.form
    username = data.get('username', '')
    try:
        user = check_login(username, data.get('password', ''))
    except STORAGE_ERRORS:
        app.logger.exception(f'Could not read {USERS_FILE}')
        return jsonify({'error': 'Login is unavailable'}), 500
    if user is None:
        app.logger.warning(f'Failed login for {username!r}')
        return jsonify({'error': 'Invalid username or password.'}), 401
    session['user'] = user
    session.permanent = True
    return jsonify({'success': True, 'user': user})


@app.route('/logout')
def logout():
    """Clear session."""
    session.clear()
    return jsonify({'success': True})


@app.route('/auth/user')
def auth_user():
    return jsonify({'user': session.get('user')})


@app.route('/api/players', methods=['GET'])
def api_players():
    """Roster of eligible players."""
    return jsonify(players)


@app.route('/api/tournament', methods=['GET'])
def api_get_tournament():
    try:
        state = store.get(_tournament_id())
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except STORAGE_ERRORS:
        app.logger.exception('Failed to load tournament')
        return jsonify({'error': 'Failed to load tournament data'}), 500
    return jsonify(_view(state))


@app.route('/api/tournament', methods=['POST'])
@login_required
def api_save_tournament():
    """Replace the whole tournament state."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Tournament state must be a JSON object'}), 400
    return _mutate('Tournament replaced', lambda state: normalize_state(data))


@app.route('/api/tournament', methods=['DELETE'])
@login_required
def api_reset_tournament():
    """Reset all tournament data."""
    tournament_id = _tournament_id()
    try:
        state = store.reset(tournament_id)
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except STORAGE_ERRORS:
        app.logger.exception(f'Reset failed for {tournament_id}')
        return jsonify({'error': 'Failed to reset tournament'}), 500

    app.logger.info(f'Tournament {tournament_id} reset by {session.get("user")}')
    broadcaster.publish(tournament_id, state, origin=_request_id())
    return jsonify({'success': True, 'state': state, 'requestId': _request_id()})


@app.route('/api/team/<team_id>', methods=['PUT'])
@login_required
def api_update_team(team_id):
    """Edit a team's name or players before the schedule exists."""
    data = _json_body()
    name = data.get('name')
    team_players = data.get('players')
    if name is not None and not isinstance(name, str):
        return jsonify({'error': 'Team name must be text'}), 400
    if team_players is not None and (
            not isinstance(team_players, list) or
            not all(p is None or isinstance(p, str) for p in team_players)):
        return jsonify({'error': 'Players must be a list of names'}), 400

    def change(state):
        team = update_team(state, team_id, name=name, players=team_players)
        unknown = roster_conflicts(state, players, team_id=team_id)
        if unknown:
            raise ValidationError(f'Unknown player: {unknown[0]}')
        return team

    return _mutate(f'Team {team_id} updated', change)


@app.route('/api/schedule', methods=['POST'])
@login_required
def api_generate_schedule():
    """Generate group matches and the knockout bracket."""
    return _mutate('Schedule generated', generate_schedule)


@app.route('/api/match/<match_id>', methods=['PUT'])
@login_required
def api_update_match(match_id):
    """Enter the game scores of a pool match."""
    data = _json_body()
    scores = data.get('games')
    return _mutate(f'Score entered for {match_id}',
                   lambda state: record_group_score(state, match_id, scores),
                   failure_message='Failed to save score')


@app.route('/api/knockout/<key>/games', methods=['POST'])
@login_required
def api_open_knockout(key):
    """Set up a knockout match's games once both its teams are known."""
    return _mutate(f'Knockout {key} opened', lambda state: ensure_knockout_games(state, key))


@app.route('/api/knockout/<key>', methods=['PUT'])
@login_required
def api_update_knockout(key):
    """Enter the game scores of a semifinal or the final."""
    data = _json_body()
    scores = data.get('games')
    return _mutate(f'Score entered for {key}',
                   lambda state: record_knockout_score(state, key, scores),
                   failure_message='Failed to save score')


@app.route('/api/standings', methods=['GET'])
def api_standings():
    try:
        state = _view(store.get(_tournament_id()))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400
    except STORAGE_ERRORS:
        app.logger.exception('Failed to load tournament')
        return jsonify({'error': 'Failed to load tournament data'}), 500
    return jsonify({
        'standings': calculate_all_standings(state),
        'champion': champion(state),
    })


@app.route('/api/live-stream')
def api_live_stream():
    """Server-Sent Events stream of full-state updates."""
    tournament_id = _tournament_id()
    try:
        initial = _view(store.get(tournament_id))
    except ValidationError as e:
        return jsonify({'error': str(e)}), 400

    subscription = broadcaster.subscribe()

    def generate():
        try:
            # New clients get the current state straight away
            yield format_sse(make_event(tournament_id, initial), UPDATE_EVENT)
            while True:
                try:
                    event = subscription.get(timeout=HEARTBEAT_SECONDS)
                except queue.Empty:
                    yield ": heartbeat\n\n"
                    continue
                if event['tournamentId'] == tournament_id:
                    yield format_sse(event, UPDATE_EVENT)
        finally:
            broadcaster.unsubscribe(subscription)

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no',
        },
    )


@app.cli.command('create-user')
@click.argument('username')
@click.password_option()
def create_user_command(username, password):
    """Create a login for score keepers."""
    ok, message = create_user(username, password)
    click.echo(message)
    if not ok:
        raise SystemExit(1)


if __name__ == '__main__':
    app.run(debug=os.environ.get('FLASK_DEBUG') == '1', port=int(os.environ.get('PORT', 5000)))
