"""
Pool standings derived from completed group matches.
"""
from typing import Dict, List

from showdown.models import POOLS

WIN_POINTS = 2
DRAW_POINTS = 1


def calculate_standings(state: Dict, pool: str) -> List[Dict]:
    """
    Calculate the standings table for one pool.

    Returns: [{'id', 'name', 'played', 'matchesWon', 'matchesLost',
               'gamesWon', 'gamesLost', 'points'}, ...]

    Ranking: points -> game differential -> pool order
    """
    teams = state['teams'].get(pool, [])
    team_stats = {}
    for team in teams:
        team_stats[team['id']] = {
            'id': team['id'],
            'name': team['name'],
            'played': 0,
            'matchesWon': 0,
            'matchesLost': 0,
            'gamesWon': 0,
            'gamesLost': 0,
            'points': 0,
        }

    for match in state['matches']:
        if match['pool'] != pool or not match['completed']:
            continue

        team1 = team_stats.get(match['team1Id'])
        team2 = team_stats.get(match['team2Id'])
        if team1 is None or team2 is None:
            continue

        team1['played'] += 1
        team2['played'] += 1
        team1['gamesWon'] += match['team1GamesWon']
        team1['gamesLost'] += match['team2GamesWon']
        team2['gamesWon'] += match['team2GamesWon']
        team2['gamesLost'] += match['team1GamesWon']

        if match['winner'] == match['team1Id']:
            winner, loser = team1, team2
        elif match['winner'] == match['team2Id']:
            winner, loser = team2, team1
        else:
            team1['points'] += DRAW_POINTS
            team2['points'] += DRAW_POINTS
            continue

        winner['matchesWon'] += 1
        winner['points'] += WIN_POINTS
        loser['matchesLost'] += 1

    # sorted() is stable, so teams level on both keys keep their pool order
    return sorted(
        team_stats.values(),
        key=lambda s: (-s['points'], -(s['gamesWon'] - s['gamesLost']))
    )


def calculate_all_standings(state: Dict) -> Dict[str, List[Dict]]:
    return {pool: calculate_standings(state, pool) for pool in POOLS}
