"""
Wire format helpers for the tournament state.
"""
import json
from typing import Dict

from showdown.errors import StateFormatError
from showdown.models import KNOCKOUT_KEYS, PLAYERS_PER_TEAM, POOLS, default_state

MATCH_FIELDS = ('id', 'pool', 'team1Id', 'team2Id', 'team1Name', 'team2Name', 'games',
                'team1GamesWon', 'team2GamesWon', 'winner', 'completed')
KNOCKOUT_FIELDS = ('id', 'seed1', 'seed2', 'team1', 'team2', 'games',
                   'team1GamesWon', 'team2GamesWon', 'winner', 'completed')


def _check_team(team, where: str):
    if not isinstance(team, dict):
        raise StateFormatError(f'{where} must be a team object')
    if not isinstance(team.get('id'), str) or not isinstance(team.get('name'), str):
        raise StateFormatError(f'{where} needs a text id and name')
    players = team.get('players')
    if (not isinstance(players, list) or len(players) != PLAYERS_PER_TEAM or
            not all(isinstance(p, str) for p in players)):
        raise StateFormatError(f'{where} needs exactly {PLAYERS_PER_TEAM} player names')


def _check_games(games, where: str):
    if not isinstance(games, list):
        raise StateFormatError(f'{where} games must be a list')
    for game in games:
        if not isinstance(game, dict):
            raise StateFormatError(f'{where} has a game that is not an object')
        for field in ('team1Score', 'team2Score'):
            score = game.get(field)
            if score is not None and (isinstance(score, bool) or not isinstance(score, int)):
                raise StateFormatError(f'{where} has a non-numeric score')


def _check_result(match: Dict, fields, where: str):
    missing = [field for field in fields if field not in match]
    if missing:
        raise StateFormatError(f'{where} is missing {", ".join(missing)}')
    _check_games(match['games'], where)
    if not isinstance(match['team1GamesWon'], int) or not isinstance(match['team2GamesWon'], int):
        raise StateFormatError(f'{where} games won must be numbers')


def validate_shape(state: Dict):
    """Raise StateFormatError unless every nested record has the fields the engine reads."""
    for pool in POOLS:
        for team in state['teams'][pool]:
            _check_team(team, f'Team in pool {pool}')

    for match in state['matches']:
        if not isinstance(match, dict):
            raise StateFormatError('Each match must be an object')
        _check_result(match, MATCH_FIELDS, f"Match {match.get('id', '?')}")

    for key in KNOCKOUT_KEYS:
        match = state['knockoutMatches'][key]
        if match is None:
            continue
        if not isinstance(match, dict):
            raise StateFormatError(f'Knockout match {key} must be an object or null')
        _check_result(match, KNOCKOUT_FIELDS, f'Knockout match {key}')
        for side in ('team1', 'team2'):
            if match[side] is not None:
                _check_team(match[side], f'Knockout match {key} {side}')


def normalize_state(data) -> Dict:
    """Return a complete state, filling in any missing sections with defaults.

    The input is not modified. Raises StateFormatError when a section is
    present but malformed.
    """
    if data is None:
        return default_state()
    if not isinstance(data, dict):
        raise StateFormatError('Tournament state must be an object')

    defaults = default_state()
    state = dict(data)

    teams = state.get('teams')
    if not isinstance(teams, dict):
        state['teams'] = defaults['teams']
    else:
        teams = state['teams'] = dict(teams)
        for pool in POOLS:
            if not isinstance(teams.get(pool), list):
                teams[pool] = defaults['teams'][pool]

    if not isinstance(state.get('matches'), list):
        state['matches'] = []

    knockout = state.get('knockoutMatches')
    if not isinstance(knockout, dict):
        state['knockoutMatches'] = defaults['knockoutMatches']
    else:
        knockout = state['knockoutMatches'] = dict(knockout)
        for key in KNOCKOUT_KEYS:
            knockout.setdefault(key, None)

    state['scheduleGenerated'] = bool(state.get('scheduleGenerated', False))
    validate_shape(state)
    return state


def dumps_state(state: Dict) -> str:
    return json.dumps(state, sort_keys=True)


def loads_state(text: str) -> Dict:
    try:
        data = json.loads(text)
    except ValueError as e:
        raise StateFormatError(f'Invalid tournament state: {e}')
    return normalize_state(data)
