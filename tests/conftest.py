"""
Shared pytest fixtures for Badminton Showdown tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the exhaustive score-range checks
"""
import os
import sys
import tempfile

import pytest

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Keep app import side effects (secret key, data dir) out of the repo
os.environ.setdefault('SECRET_KEY', 'test-secret-key')
os.environ.setdefault('SHOWDOWN_DATA_DIR', tempfile.mkdtemp(prefix='showdown-test-'))

from showdown.models import default_state
from showdown.schedule import generate_schedule
from showdown.store import MemoryTournamentStore

PLAYER_NAMES = [
    'Aisha', 'Ben', 'Chloe',
    'Diego', 'Emma', 'Farid',
    'Grace', 'Hiro', 'Isla',
    'Jonas', 'Kofi', 'Lena',
    'Mateo', 'Nina', 'Omar',
    'Priya', 'Quinn', 'Rosa',
]

# Straight-games win for team1 / team2, and a 2-1 win for team1
TEAM1_SWEEP = [(21, 10), (21, 12), (21, 15)]
TEAM2_SWEEP = [(10, 21), (12, 21), (15, 21)]
TEAM1_TWO_ONE = [(21, 18), (19, 21), (22, 20)]


def filled_state():
    """Default state with every team named and staffed."""
    state = default_state()
    names = iter(PLAYER_NAMES)
    for pool in ('A', 'B'):
        for team in state['teams'][pool]:
            team['players'] = [next(names), next(names), next(names)]
    return state


@pytest.fixture
def setup_state():
    """Teams fully set up, no schedule yet."""
    return filled_state()


@pytest.fixture
def scheduled_state():
    """Teams set up and the schedule generated."""
    return generate_schedule(filled_state())


@pytest.fixture
def memory_store(monkeypatch):
    """Swap the app's file store for an in-memory one."""
    import app as app_module
    test_store = MemoryTournamentStore()
    monkeypatch.setattr(app_module, 'store', test_store)
    return test_store


@pytest.fixture
def roster(monkeypatch):
    import app as app_module
    monkeypatch.setattr(app_module, 'players', list(PLAYER_NAMES))
    return PLAYER_NAMES


@pytest.fixture
def client(memory_store, roster):
    """Create an authenticated test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        with client.session_transaction() as sess:
            sess['user'] = 'testuser'
        yield client


@pytest.fixture
def anon_client(memory_store, roster):
    """Create a test client with no session."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
