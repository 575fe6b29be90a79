import os
import sys
import pytest

# Ensure the backend root (containing the `memory_game` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

import fakeredis

from memory_game import create_app, db


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ENVIRONMENT = 'test'
    APP_VERSION = '1.0.0-test'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {}
    REDIS_URL = 'redis://localhost:6379/15'
    SESSION_TTL_SEC = 3600
    LEADERBOARD_TTL_SEC = 300
    USER_STATS_TTL_SEC = 1800
    CORS_ORIGINS = ['http://localhost:3000']
    RATE_LIMIT_ENABLED = False
    RATE_LIMIT_WINDOW_MS = 60000
    RATE_LIMIT_MAX_REQUESTS = 100
    STORE_RETRY_ATTEMPTS = 2
    STORE_RETRY_DELAY_SEC = 0
    HOUSEKEEPING_INTERVAL_SEC = 0


@pytest.fixture()
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture()
def flask_app(redis_client):
    application = create_app(TestConfig, redis_client=redis_client)
    with application.app_context():
        # Ensure models are imported so tables are created
        import memory_game.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def cache(flask_app):
    return flask_app.extensions['game_cache']


@pytest.fixture()
def sessions(flask_app):
    return flask_app.extensions['game_sessions']


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock(sessions):
    fake = FakeClock()
    sessions.clock = fake
    return fake


def card_pairs(cache, game_id):
    """Group the cached deck by pair id: {pair_id: [card_id, card_id]}."""
    pairs = {}
    for card in cache.get_session(game_id).cards:
        pairs.setdefault(card.pair_id, []).append(card.id)
    return pairs


def a_pair(cache, game_id):
    state = cache.get_session(game_id)
    pairs = card_pairs(cache, game_id)
    for pair_id, ids in pairs.items():
        if not any(state.find_card(i).is_matched for i in ids):
            return ids[0], ids[1]
    raise AssertionError('no unmatched pair left')


def a_mismatch(cache, game_id):
    state = cache.get_session(game_id)
    unmatched = {}
    for card in state.cards:
        if not card.is_matched:
            unmatched.setdefault(card.pair_id, card.id)
    first, second = list(unmatched.values())[:2]
    return first, second
