"""
Tournament state storage.

Each tournament is one state blob addressed by a tournament id. Writes are
last-write-wins; read-modify-write cycles run under a per-tournament lock so
two requests cannot interleave inside one update.
"""
import copy
import logging
import os
import re
import threading
from typing import Callable, Dict, Optional

import yaml
from filelock import FileLock

from showdown.errors import KnockoutMatchNotFoundError, MatchNotFoundError, ValidationError
from showdown.models import KNOCKOUT_KEYS, default_state, find_match
from showdown.serialization import normalize_state

logger = logging.getLogger(__name__)

DEFAULT_TOURNAMENT = 'default'
LOCK_TIMEOUT = 10
_TOURNAMENT_ID_RE = re.compile(r'^[a-z0-9][a-z0-9-]*$')


def validate_tournament_id(tournament_id: str) -> str:
    if not tournament_id or not _TOURNAMENT_ID_RE.match(tournament_id):
        raise ValidationError(f'Invalid tournament id: {tournament_id!r}')
    return tournament_id


class TournamentStore:
    """Read/write access to tournament states keyed by tournament id."""

    def _read(self, tournament_id: str) -> Optional[Dict]:
        raise NotImplementedError

    def _write(self, tournament_id: str, state: Dict):
        raise NotImplementedError

    def _delete(self, tournament_id: str):
        raise NotImplementedError

    def _lock(self, tournament_id: str):
        raise NotImplementedError

    def get(self, tournament_id: str = DEFAULT_TOURNAMENT) -> Dict:
        validate_tournament_id(tournament_id)
        return normalize_state(self._read(tournament_id))

    def save(self, tournament_id: str, state: Dict) -> Dict:
        validate_tournament_id(tournament_id)
        state = normalize_state(copy.deepcopy(state))
        with self._lock(tournament_id):
            self._write(tournament_id, state)
        return self.get(tournament_id)

    def reset(self, tournament_id: str = DEFAULT_TOURNAMENT) -> Dict:
        validate_tournament_id(tournament_id)
        with self._lock(tournament_id):
            self._delete(tournament_id)
        logger.info('Tournament %s reset', tournament_id)
        return default_state()

    def modify(self, tournament_id: str, fn: Callable[[Dict], Optional[Dict]]) -> Dict:
        """Apply `fn` to the current state and store the result.

        `fn` may mutate the state it is given or return a replacement. If it
        raises, nothing is written.
        """
        validate_tournament_id(tournament_id)
        with self._lock(tournament_id):
            state = normalize_state(self._read(tournament_id))
            result = fn(state)
            if result is not None:
                state = result
            self._write(tournament_id, state)
        return copy.deepcopy(state)

    def update_match(self, tournament_id: str, match_id: str, fields: Dict) -> Dict:
        """Merge `fields` into one group match."""
        def apply(state):
            match = find_match(state, match_id)
            if match is None:
                raise MatchNotFoundError(f'Match {match_id} not found')
            match.update(fields)
        return self.modify(tournament_id, apply)

    def update_knockout_match(self, tournament_id: str, key: str, fields: Dict) -> Dict:
        """Merge `fields` into one knockout match (semi1, semi2 or final)."""
        def apply(state):
            if key not in KNOCKOUT_KEYS or not state['knockoutMatches'].get(key):
                raise KnockoutMatchNotFoundError(f'Knockout match {key} not found')
            state['knockoutMatches'][key].update(fields)
        return self.modify(tournament_id, apply)


class MemoryTournamentStore(TournamentStore):
    """Keeps states in process memory. Used for tests and throwaway servers."""

    def __init__(self):
        self._states = {}
        self._mutex = threading.RLock()

    def _read(self, tournament_id):
        with self._mutex:
            state = self._states.get(tournament_id)
            return copy.deepcopy(state) if state is not None else None

    def _write(self, tournament_id, state):
        with self._mutex:
            self._states[tournament_id] = copy.deepcopy(state)

    def _delete(self, tournament_id):
        with self._mutex:
            self._states.pop(tournament_id, None)

    def _lock(self, tournament_id):
        return self._mutex


class _NoAliasDumper(yaml.SafeDumper):
    """Write repeated team records out in full instead of as YAML anchors."""

    def ignore_aliases(self, data):
        return True


class YamlTournamentStore(TournamentStore):
    """Stores each tournament as `<data_dir>/tournaments/<id>/state.yaml`."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def _tournament_dir(self, tournament_id: str) -> str:
        return os.path.join(self.data_dir, 'tournaments', tournament_id)

    def _state_file(self, tournament_id: str) -> str:
        return os.path.join(self._tournament_dir(tournament_id), 'state.yaml')

    def _lock(self, tournament_id):
        os.makedirs(self._tournament_dir(tournament_id), exist_ok=True)
        return FileLock(os.path.join(self._tournament_dir(tournament_id), '.lock'), timeout=LOCK_TIMEOUT)

    def _read(self, tournament_id):
        path = self._state_file(tournament_id)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)

    def _write(self, tournament_id, state):
        path = self._state_file(tournament_id)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp_path = path + '.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            yaml.dump(state, f, Dumper=_NoAliasDumper, default_flow_style=False)
        os.replace(tmp_path, path)
        logger.debug('Wrote %s', path)

    def _delete(self, tournament_id):
        path = self._state_file(tournament_id)
        if os.path.exists(path):
            os.remove(path)
