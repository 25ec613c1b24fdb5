"""
Team setup and schedule generation.

Pool play is a round robin: every pair of teams in a pool meets once, in a
fixed order. Each match is three doubles games, one per pair of a team's
three players.
"""
from itertools import combinations
from typing import Dict, List, Optional

from showdown.errors import ScheduleValidationError, SetupLockedError, TeamNotFoundError
from showdown.models import (
    PLAYERS_PER_TEAM,
    POOLS,
    all_teams,
    clone_state,
    create_games,
    find_team,
)


def validate_setup(teams: Dict[str, List[Dict]]):
    """Check that every team is named, fully staffed, and shares no player.

    Raises:
        ScheduleValidationError: with a message suitable for the user.
    """
    flat = []
    for pool in POOLS:
        flat.extend(teams.get(pool, []))

    for team in flat:
        if not (team.get('name') or '').strip():
            raise ScheduleValidationError('Please enter names for all teams')
        players = team.get('players', [])
        if len(players) != PLAYERS_PER_TEAM or any(not (p or '').strip() for p in players):
            raise ScheduleValidationError(
                f'Please select all players for team "{team["name"] or team["id"]}"')

    seen = set()
    for team in flat:
        for player in team['players']:
            if player in seen:
                raise ScheduleValidationError('Each player can only be on one team')
            seen.add(player)


def update_team(state: Dict, team_id: str, name: Optional[str] = None,
                players: Optional[List[str]] = None) -> Dict:
    """Edit a team's name and/or players in place. Only allowed before scheduling."""
    if state['scheduleGenerated']:
        raise SetupLockedError('Teams cannot be changed after the schedule is generated')

    team = find_team(state, team_id)
    if team is None:
        raise TeamNotFoundError(f'Team {team_id} not found')

    if players is not None:
        if len(players) != PLAYERS_PER_TEAM:
            raise ScheduleValidationError(f'A team needs exactly {PLAYERS_PER_TEAM} players')
        team['players'] = [p or '' for p in players]
    if name is not None:
        team['name'] = name
    return team


def generate_pool_matches(teams: Dict[str, List[Dict]], pool: str) -> List[Dict]:
    """Create the round robin matches for one pool."""
    matches = []
    for team1, team2 in combinations(teams[pool], 2):
        matches.append({
            'id': f"{pool}-{team1['id']}-{team2['id']}",
            'pool': pool,
            'team1Id': team1['id'],
            'team2Id': team2['id'],
            'team1Name': team1['name'],
            'team2Name': team2['name'],
            'games': create_games(team1, team2),
            'team1GamesWon': 0,
            'team2GamesWon': 0,
            'winner': None,
            'completed': False,
        })
    return matches


def create_knockout_match(match_id: str, seed1: str, seed2: str) -> Dict:
    return {
        'id': match_id,
        'seed1': seed1,
        'seed2': seed2,
        'team1': None,
        'team2': None,
        'games': [],
        'team1GamesWon': 0,
        'team2GamesWon': 0,
        'winner': None,
        'completed': False,
    }


def create_knockout_bracket() -> Dict[str, Dict]:
    """Semifinals cross the pools (A1 v B2, B1 v A2); the final takes both winners."""
    return {
        'semi1': create_knockout_match('semi1', 'A1', 'B2'),
        'semi2': create_knockout_match('semi2', 'B1', 'A2'),
        'final': create_knockout_match('final', 'W1', 'W2'),
    }


def initialize_knockout_games(match: Dict) -> bool:
    """Fill in the games of a knockout match once both teams are known.

    Returns True if games were created.
    """
    if not match['team1'] or not match['team2']:
        return False
    match['games'] = create_games(match['team1'], match['team2'])
    return True


def generate_schedule(state: Dict) -> Dict:
    """Return a new state with the group matches and an empty bracket.

    The given state is left untouched, so callers can discard the result if
    persisting it fails.
    """
    if state['scheduleGenerated']:
        raise SetupLockedError('The schedule has already been generated')

    validate_setup(state['teams'])

    scheduled = clone_state(state)
    scheduled['matches'] = []
    for pool in POOLS:
        scheduled['matches'].extend(generate_pool_matches(scheduled['teams'], pool))
    scheduled['knockoutMatches'] = create_knockout_bracket()
    scheduled['scheduleGenerated'] = True
    return scheduled


def roster_conflicts(state: Dict, roster: List[str], team_id: Optional[str] = None) -> List[str]:
    """Assigned players that are not on the roster (empty when there is no roster).

    With `team_id`, only that team's players are checked.
    """
    if not roster:
        return []
    teams = all_teams(state)
    if team_id is not None:
        teams = [team for team in teams if team['id'] == team_id]
    eligible = set(roster)
    return [p for team in teams for p in team['players'] if p and p not in eligible]
