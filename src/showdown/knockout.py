"""
Knockout bracket: seeding the semifinals from pool standings and carrying
semifinal winners into the final.

Semifinal 1 is A1 vs B2, semifinal 2 is B1 vs A2. Slots stay empty until the
standings can place a team there.
"""
import copy
from typing import Dict, List, Optional

from showdown.errors import KnockoutMatchNotFoundError
from showdown.models import KNOCKOUT_KEYS
from showdown.schedule import initialize_knockout_games
from showdown.standings import calculate_standings

# knockout key -> ((pool, position), (pool, position)) for its two sides
SEMIFINAL_SEEDS = {
    'semi1': (('A', 1), ('B', 2)),
    'semi2': (('B', 1), ('A', 2)),
}


def get_knockout_match(state: Dict, key: str) -> Dict:
    if key not in KNOCKOUT_KEYS or not state['knockoutMatches'].get(key):
        raise KnockoutMatchNotFoundError(f'Knockout match {key} not found')
    return state['knockoutMatches'][key]


def team_at_position(state: Dict, standings: List[Dict], pool: str, position: int) -> Optional[Dict]:
    """Return the team ranked at `position` (1-based), or None if not yet determined.

    A position only counts once the team holding it has played a completed match.
    """
    if len(standings) < position:
        return None
    standing = standings[position - 1]
    if standing['played'] == 0:
        return None
    for team in state['teams'].get(pool, []):
        if team['id'] == standing['id']:
            return copy.deepcopy(team)
    return None


def update_knockout_teams(state: Dict):
    """Place teams into the semifinal slots from the current standings."""
    if not state['scheduleGenerated']:
        return

    standings = {
        'A': calculate_standings(state, 'A'),
        'B': calculate_standings(state, 'B'),
    }
    for key, ((pool1, pos1), (pool2, pos2)) in SEMIFINAL_SEEDS.items():
        match = state['knockoutMatches'].get(key)
        if not match:
            continue
        match['team1'] = team_at_position(state, standings[pool1], pool1, pos1)
        match['team2'] = team_at_position(state, standings[pool2], pool2, pos2)


def _winning_team(match: Optional[Dict]) -> Optional[Dict]:
    if not match or not match['completed'] or not match['winner']:
        return None
    for side in ('team1', 'team2'):
        if match[side] and match[side]['id'] == match['winner']:
            return match[side]
    return None


def update_knockout_progression(state: Dict):
    """Move semifinal winners into the final and set up its games."""
    final = state['knockoutMatches'].get('final')
    if not final:
        return

    winner1 = _winning_team(state['knockoutMatches'].get('semi1'))
    if winner1:
        final['team1'] = copy.deepcopy(winner1)
    winner2 = _winning_team(state['knockoutMatches'].get('semi2'))
    if winner2:
        final['team2'] = copy.deepcopy(winner2)

    # Existing final games are kept even if a semifinal result later changes
    if final['team1'] and final['team2'] and not final['games']:
        initialize_knockout_games(final)


def resolve_knockout(state: Dict) -> Dict:
    """Refresh every derived team slot in the bracket. Returns the state."""
    update_knockout_teams(state)
    update_knockout_progression(state)
    return state


def ensure_knockout_games(state: Dict, key: str) -> Dict:
    """Resolve the bracket and create the match's games if it has none yet."""
    resolve_knockout(state)
    match = get_knockout_match(state, key)
    if not match['games']:
        initialize_knockout_games(match)
    return match


def champion(state: Dict) -> Optional[Dict]:
    return _winning_team(state['knockoutMatches'].get('final'))
