import threading

import redis

from memory_game.metrics import endpoint_type, score_range
from memory_game.services.housekeeping import sample_once, start_housekeeping


def test_sample_counts_cached_sessions(flask_app, sessions):
    sessions.start('alice', 'easy')
    sessions.start('bob', 'hard')
    sample_once(flask_app)
    registry = flask_app.extensions['metrics'].registry
    assert registry.get_sample_value('active_games_current') == 2.0
    assert registry.get_sample_value('app_uptime_seconds_total') >= 0


def test_sample_survives_cache_outage(flask_app, cache):
    class Down:
        def scan_iter(self, *args, **kwargs):
            raise redis.exceptions.ConnectionError('redis down')

    cache.client = Down()
    sample_once(flask_app)
    registry = flask_app.extensions['metrics'].registry
    assert registry.get_sample_value(
        'redis_operation_failures_total', {'operation': 'count sessions'}) == 1.0


def test_no_ticker_in_tests(flask_app):
    before = {t.name for t in threading.enumerate()}
    start_housekeeping(flask_app)
    assert 'housekeeping' not in {t.name for t in threading.enumerate()} - before


def test_metric_label_helpers():
    assert endpoint_type('/api/game/start') == 'game'
    assert endpoint_type('/api/leaderboard/rank/x') == 'leaderboard'
    assert endpoint_type('/api/health') == 'health'
    assert endpoint_type('/elsewhere') == 'other'
    assert score_range(49) == '0-49'
    assert score_range(150) == '100-199'
    assert score_range(300) == '300+'
