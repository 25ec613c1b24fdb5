"""
HTTP client for the tournament API.

Each mutation is tagged with a fresh request id. The server echoes that id as
the `origin` of the broadcast it triggers, which lets `should_apply()` skip
updates this client caused itself.
"""
import json
import uuid
from collections import deque
from typing import Dict, Iterator, List, Optional

import requests

REQUEST_ID_HEADER = 'X-Request-Id'
DEFAULT_TIMEOUT = 10
# Request ids remembered for echo suppression; older ones are forgotten
MAX_PENDING_TOKENS = 100


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ShowdownClient:
    def __init__(self, base_url: str, tournament_id: str = 'default', session=None,
                 timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.tournament_id = tournament_id
        self.session = session or requests.Session()
        self.timeout = timeout
        self._pending_tokens = deque(maxlen=MAX_PENDING_TOKENS)

    def _url(self, path: str) -> str:
        return f'{self.base_url}{path}'

    def _request(self, method: str, path: str, mutate: bool = False, **kwargs):
        headers = kwargs.pop('headers', {})
        token = None
        if mutate:
            token = uuid.uuid4().hex
            headers[REQUEST_ID_HEADER] = token
            self._pending_tokens.append(token)

        params = kwargs.pop('params', {})
        params.setdefault('tournament', self.tournament_id)
        try:
            response = self.session.request(method, self._url(path), headers=headers, params=params,
                                            timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException:
            self._forget(token)
            raise

        if response.status_code >= 400:
            self._forget(token)
            try:
                message = response.json().get('error', response.reason)
            except ValueError:
                message = response.reason
            raise ApiError(response.status_code, message)
        return response.json()

    def _forget(self, token: Optional[str]):
        if token in self._pending_tokens:
            self._pending_tokens.remove(token)

    def should_apply(self, event: Dict) -> bool:
        """Return False for a broadcast caused by this client's own request."""
        origin = event.get('origin')
        if origin and origin in self._pending_tokens:
            self._forget(origin)
            return False
        return True

    def login(self, username: str, password: str) -> Dict:
        return self._request('POST', '/login', json={'username': username, 'password': password})

    def get_players(self) -> List[str]:
        return self._request('GET', '/api/players')

    def get_tournament(self) -> Dict:
        return self._request('GET', '/api/tournament')

    def get_standings(self) -> Dict:
        return self._request('GET', '/api/standings')

    def save_tournament(self, state: Dict) -> Dict:
        return self._request('POST', '/api/tournament', mutate=True, json=state)['state']

    def update_team(self, team_id: str, name: Optional[str] = None,
                    players: Optional[List[str]] = None) -> Dict:
        payload = {}
        if name is not None:
            payload['name'] = name
        if players is not None:
            payload['players'] = players
        return self._request('PUT', f'/api/team/{team_id}', mutate=True, json=payload)['state']

    def generate_schedule(self) -> Dict:
        return self._request('POST', '/api/schedule', mutate=True)['state']

    def update_match(self, match_id: str, scores: List) -> Dict:
        return self._request('PUT', f'/api/match/{match_id}', mutate=True,
                             json={'games': scores})['state']

    def open_knockout(self, key: str) -> Dict:
        return self._request('POST', f'/api/knockout/{key}/games', mutate=True)['state']

    def update_knockout(self, key: str, scores: List) -> Dict:
        return self._request('PUT', f'/api/knockout/{key}', mutate=True,
                             json={'games': scores})['state']

    def reset(self) -> Dict:
        return self._request('DELETE', '/api/tournament', mutate=True)['state']

    def listen(self) -> Iterator[Dict]:
        """Yield live updates from other clients. Blocks while waiting."""
        response = self.session.get(self._url('/api/live-stream'),
                                    params={'tournament': self.tournament_id},
                                    stream=True, timeout=None)
        for event in parse_sse(response.iter_lines(decode_unicode=True)):
            if event['event'] != 'tournament:updated':
                continue
            data = json.loads(event['data'])
            if self.should_apply(data):
                yield data


def parse_sse(lines) -> Iterator[Dict]:
    """Group raw SSE lines into {'event', 'data'} dicts."""
    event, data = 'message', []
    for line in lines:
        if not line:
            if data:
                yield {'event': event, 'data': '\n'.join(data)}
            event, data = 'message', []
        elif line.startswith(':'):
            continue
        elif line.startswith('event:'):
            event = line[len('event:'):].strip()
        elif line.startswith('data:'):
            data.append(line[len('data:'):].lstrip())
