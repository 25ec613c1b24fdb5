"""
Badminton game scoring and match outcomes.

A game is won by the first side to 21 with a two point lead, or by the first
side to 30. A match is three games and is only complete once every game has
a winner.
"""
from typing import Dict, List, Optional, Tuple

from showdown.errors import MatchNotFoundError, ScoreValidationError
from showdown.knockout import ensure_knockout_games, update_knockout_progression
from showdown.models import MAX_SCORE, MIN_SCORE, find_match


def is_game_winner(score: int, other: int) -> bool:
    """Return True if `score` beats `other` under BWF rules."""
    if score <= other:
        return False
    # 29-29 is decided by the next point
    if score == MAX_SCORE:
        return True
    if score >= 21 and other < 20:
        return True
    # Deuce: two point lead after 20-all
    if score >= 21 and other >= 20 and score - other >= 2:
        return True
    return False


def game_winner(game: Dict) -> Optional[str]:
    """Return 'team1', 'team2', or None if the game is unscored or undecided."""
    score1 = game.get('team1Score')
    score2 = game.get('team2Score')
    if score1 is None or score2 is None:
        return None
    if is_game_winner(score1, score2):
        return 'team1'
    if is_game_winner(score2, score1):
        return 'team2'
    return None


def parse_score(value) -> Optional[int]:
    """Coerce a submitted score to an int in range, or None when left empty."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ScoreValidationError('Scores must be whole numbers')
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ScoreValidationError('Scores must be whole numbers')
        value = int(value)
    if not isinstance(value, int):
        raise ScoreValidationError('Scores must be whole numbers')
    if value < MIN_SCORE or value > MAX_SCORE:
        raise ScoreValidationError(f'Scores must be between {MIN_SCORE} and {MAX_SCORE}')
    return value


def _score_pair(entry) -> Tuple[Optional[int], Optional[int]]:
    if isinstance(entry, dict):
        raw1, raw2 = entry.get('team1Score'), entry.get('team2Score')
    elif isinstance(entry, (list, tuple)) and len(entry) == 2:
        raw1, raw2 = entry
    else:
        raise ScoreValidationError('Each game needs a pair of scores')
    score1, score2 = parse_score(raw1), parse_score(raw2)
    if (score1 is None) != (score2 is None):
        raise ScoreValidationError('Both scores must be filled or both must be empty')
    return score1, score2


def recompute_match(match: Dict, team1_id: Optional[str], team2_id: Optional[str]) -> Dict:
    """Derive game winners, games won, completion and match winner in place."""
    wins = [0, 0]
    all_decided = True
    for game in match['games']:
        game['winner'] = game_winner(game)
        if game['winner'] == 'team1':
            wins[0] += 1
        elif game['winner'] == 'team2':
            wins[1] += 1
        else:
            all_decided = False

    match['team1GamesWon'], match['team2GamesWon'] = wins
    match['completed'] = all_decided and bool(match['games'])
    match['winner'] = None
    if match['completed']:
        if wins[0] > wins[1]:
            match['winner'] = team1_id
        elif wins[1] > wins[0]:
            match['winner'] = team2_id
        # Equal counts: a draw, no winner
    return match


def apply_scores(match: Dict, scores: List, team1_id: Optional[str], team2_id: Optional[str]) -> Dict:
    """Write submitted scores into a match's games and recompute its outcome."""
    if not isinstance(scores, list) or len(scores) != len(match['games']):
        raise ScoreValidationError(f"Expected scores for {len(match['games'])} games")

    pairs = [_score_pair(entry) for entry in scores]
    for game, (score1, score2) in zip(match['games'], pairs):
        game['team1Score'] = score1
        game['team2Score'] = score2
    return recompute_match(match, team1_id, team2_id)


def record_group_score(state: Dict, match_id: str, scores: List) -> Dict:
    """Enter scores for a pool match. Returns the updated match."""
    match = find_match(state, match_id)
    if match is None:
        raise MatchNotFoundError(f'Match {match_id} not found')
    return apply_scores(match, scores, match['team1Id'], match['team2Id'])


def record_knockout_score(state: Dict, key: str, scores: List) -> Dict:
    """Enter scores for a semifinal or the final, then advance the bracket."""
    match = ensure_knockout_games(state, key)
    if not match['team1'] or not match['team2']:
        raise ScoreValidationError('Both teams must be known before scores can be entered')

    apply_scores(match, scores, match['team1']['id'], match['team2']['id'])
    update_knockout_progression(state)
    return match
