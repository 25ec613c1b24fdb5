"""
Tests for the HTTP client, run against the Flask app through its test client.
"""
import pytest
import sys
import os
from urllib.parse import urlsplit

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import PLAYER_NAMES, TEAM1_SWEEP, filled_state
from showdown.client import ApiError, ShowdownClient, parse_sse


class _Response:
    """Just enough of requests.Response for the client."""

    def __init__(self, flask_response):
        self.status_code = flask_response.status_code
        self.reason = flask_response.status.split(' ', 1)[-1]
        self._body = flask_response.get_json(silent=True)

    def json(self):
        if self._body is None:
            raise ValueError('No JSON body')
        return self._body


class FlaskSession:
    """Routes requests.Session.request calls into a Flask test client."""

    def __init__(self, test_client):
        self.test_client = test_client
        self.sent_headers = []

    def request(self, method, url, headers=None, params=None, timeout=None, json=None):
        self.sent_headers.append(dict(headers or {}))
        response = self.test_client.open(urlsplit(url).path, method=method, headers=headers,
                                         query_string=params, json=json)
        return _Response(response)


@pytest.fixture
def api(client):
    return ShowdownClient('http://localhost:5000/', session=FlaskSession(client))


@pytest.fixture
def subscription():
    from app import broadcaster
    q = broadcaster.subscribe()
    yield q
    broadcaster.unsubscribe(q)


class TestShowdownClient:

    def test_reads(self, api):
        assert api.get_players() == PLAYER_NAMES
        assert api.get_tournament()['scheduleGenerated'] is False

    def test_mutations_return_state(self, api):
        state = api.save_tournament(filled_state())
        assert state['teams']['A'][0]['players'] == PLAYER_NAMES[:3]
        state = api.generate_schedule()
        assert len(state['matches']) == 6
        state = api.update_match('A-A1-A2', [{'team1Score': a, 'team2Score': b} for a, b in TEAM1_SWEEP])
        assert state['matches'][0]['winner'] == 'A1'

    def test_each_mutation_sends_a_new_request_id(self, api):
        api.update_team('A1', name='One')
        api.update_team('A1', name='Uno')
        ids = [h['X-Request-Id'] for h in api.session.sent_headers]
        assert len(ids) == 2
        assert ids[0] != ids[1]

    def test_error_response(self, api):
        with pytest.raises(ApiError) as exc_info:
            api.generate_schedule()
        assert exc_info.value.status_code == 400
        assert 'select all players' in exc_info.value.message

    def test_reset(self, api):
        api.update_team('B3', name='Renamed')
        assert api.reset()['teams']['B'][2]['name'] == 'Team 6'


class TestShouldApply:
    """Tests for skipping the echo of our own changes."""

    def test_own_update_skipped_once(self, api, subscription):
        api.update_team('A1', name='Mine')
        event = subscription.get_nowait()
        assert api.should_apply(event) is False
        assert api.should_apply(event) is True

    def test_other_clients_update_applied(self, api, client, subscription):
        other = ShowdownClient('http://localhost:5000', session=FlaskSession(client))
        other.update_team('A1', name='Theirs')
        event = subscription.get_nowait()
        assert api.should_apply(event) is True
        assert other.should_apply(event) is False

    def test_failed_request_forgets_token(self, api):
        with pytest.raises(ApiError):
            api.update_match('nope', [])
        token = api.session.sent_headers[-1]['X-Request-Id']
        assert api.should_apply({'origin': token, 'state': {}}) is True

    def test_event_without_origin_applied(self, api):
        assert api.should_apply({'origin': None, 'state': {}}) is True


class TestParseSse:

    def test_events_and_comments(self):
        lines = [
            'event: tournament:updated',
            'data: {"a": 1}',
            '',
            ': heartbeat',
            '',
            'data: plain',
            '',
        ]
        assert list(parse_sse(lines)) == [
            {'event': 'tournament:updated', 'data': '{"a": 1}'},
            {'event': 'message', 'data': 'plain'},
        ]

    def test_multiline_data_joined(self):
        assert list(parse_sse(['data: one', 'data: two', ''])) == [{'event': 'message', 'data': 'one\ntwo'}]


class TestPendingTokens:

    def test_old_request_ids_are_forgotten(self, client, monkeypatch, subscription):
        monkeypatch.setattr('showdown.client.MAX_PENDING_TOKENS', 3)
        api = ShowdownClient('http://localhost:5000', session=FlaskSession(client))
        for n in range(4):
            api.update_team('A1', name=f'Name {n}')
        events = [subscription.get_nowait() for _ in range(4)]

        assert len(api._pending_tokens) == 3
        assert api.should_apply(events[0]) is True
        assert [api.should_apply(e) for e in events[1:]] == [False, False, False]
