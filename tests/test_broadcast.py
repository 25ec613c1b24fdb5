"""
Unit tests for live update fan-out.
"""
import json
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from showdown.broadcast import Broadcaster, MAX_PENDING, format_sse, make_event
from showdown.models import default_state


class TestFormatSse:

    def test_data_only(self):
        assert format_sse('hello') == 'data: hello\n\n'

    def test_named_event_with_json(self):
        frame = format_sse({'a': 1}, event='tournament:updated')
        assert frame == 'event: tournament:updated\ndata: {"a": 1}\n\n'

    def test_multiline_data(self):
        assert format_sse('one\ntwo') == 'data: one\ndata: two\n\n'


class TestBroadcaster:
    """Tests for subscribe / publish / unsubscribe."""

    def test_every_subscriber_gets_the_event(self):
        broadcaster = Broadcaster()
        first, second = broadcaster.subscribe(), broadcaster.subscribe()
        state = default_state()

        assert broadcaster.publish('default', state, origin='abc') == 2
        for q in (first, second):
            event = q.get_nowait()
            assert event == {'tournamentId': 'default', 'origin': 'abc', 'state': state}

    def test_unsubscribed_queue_gets_nothing(self):
        broadcaster = Broadcaster()
        q = broadcaster.subscribe()
        broadcaster.unsubscribe(q)
        assert broadcaster.publish('default', default_state()) == 0
        assert q.empty()
        assert broadcaster.subscriber_count == 0

    def test_unsubscribe_twice_is_harmless(self):
        broadcaster = Broadcaster()
        q = broadcaster.subscribe()
        broadcaster.unsubscribe(q)
        broadcaster.unsubscribe(q)
        assert broadcaster.subscriber_count == 0

    def test_full_queue_keeps_newest_updates(self):
        broadcaster = Broadcaster()
        slow = broadcaster.subscribe()
        for n in range(MAX_PENDING):
            broadcaster.publish('default', {'n': n})
        fast = broadcaster.subscribe()

        assert broadcaster.publish('default', {'n': MAX_PENDING}) == 2
        assert broadcaster.subscriber_count == 2
        assert fast.qsize() == 1

        received = []
        while not slow.empty():
            received.append(slow.get_nowait()['state']['n'])
        assert received == list(range(1, MAX_PENDING + 1))

    def test_stalled_subscriber_recovers_after_draining(self):
        broadcaster = Broadcaster()
        q = broadcaster.subscribe()
        for _ in range(MAX_PENDING + 1):
            broadcaster.publish('default', {})
        while not q.empty():
            q.get_nowait()

        assert broadcaster.publish('default', {'latest': True}) == 1
        assert q.get_nowait()['state'] == {'latest': True}

    def test_event_without_origin(self):
        event = make_event('club', {'x': 1})
        assert event['origin'] is None
        assert json.loads(json.dumps(event)) == event
