"""
Tournament state shape: teams, games, matches and the knockout bracket.

The state is kept as plain dicts with the exact field names used on the wire
and on disk, so it can be stored and broadcast without conversion.
"""
import copy
from typing import Dict, List, Optional

POOLS = ('A', 'B')
TEAMS_PER_POOL = 3
PLAYERS_PER_TEAM = 3

# Team index pairs for the round robin within a pool
POOL_MATCHUPS = [(0, 1), (0, 2), (1, 2)]

# Player index pairs for the three doubles games of a match.
# Game k uses pairing k on both sides.
GAME_PAIRINGS = [(0, 1), (0, 2), (1, 2)]

KNOCKOUT_KEYS = ('semi1', 'semi2', 'final')

MIN_SCORE = 0
MAX_SCORE = 30


class Team:
    def __init__(self, id, name, players=None):
        self.id = id
        self.name = name
        self.players = list(players) if players is not None else [''] * PLAYERS_PER_TEAM

    @classmethod
    def from_dict(cls, data: Dict) -> 'Team':
        return cls(data['id'], data.get('name', ''), data.get('players'))

    def to_dict(self) -> Dict:
        return {'id': self.id, 'name': self.name, 'players': list(self.players)}

    def __eq__(self, other):
        if not isinstance(other, Team):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Team(id={self.id}, name={self.name}, players={self.players})"


def default_teams() -> Dict[str, List[Dict]]:
    """Six unnamed-player teams, numbered across both pools."""
    teams = {}
    number = 1
    for pool in POOLS:
        teams[pool] = []
        for index in range(TEAMS_PER_POOL):
            teams[pool].append(Team(f"{pool}{index + 1}", f"Team {number}").to_dict())
            number += 1
    return teams


def empty_knockout_matches() -> Dict[str, Optional[Dict]]:
    return {key: None for key in KNOCKOUT_KEYS}


def default_state() -> Dict:
    """Return a fresh, unpopulated tournament state."""
    return {
        'teams': default_teams(),
        'matches': [],
        'knockoutMatches': empty_knockout_matches(),
        'scheduleGenerated': False,
    }


def create_game(game_id: int, team1_players: List[str], team2_players: List[str]) -> Dict:
    return {
        'id': game_id,
        'team1Players': list(team1_players),
        'team2Players': list(team2_players),
        'team1Score': None,
        'team2Score': None,
        'winner': None,
    }


def create_games(team1: Dict, team2: Dict) -> List[Dict]:
    """Build the three doubles games between two teams."""
    games = []
    for game_id, (first, second) in enumerate(GAME_PAIRINGS):
        games.append(create_game(
            game_id,
            [team1['players'][first], team1['players'][second]],
            [team2['players'][first], team2['players'][second]],
        ))
    return games


def all_teams(state: Dict) -> List[Dict]:
    """Teams of both pools, pool A first."""
    teams = []
    for pool in POOLS:
        teams.extend(state['teams'].get(pool, []))
    return teams


def find_team(state: Dict, team_id: str) -> Optional[Dict]:
    for team in all_teams(state):
        if team['id'] == team_id:
            return team
    return None


def find_match(state: Dict, match_id: str) -> Optional[Dict]:
    for match in state['matches']:
        if match['id'] == match_id:
            return match
    return None


def clone_state(state: Dict) -> Dict:
    return copy.deepcopy(state)
