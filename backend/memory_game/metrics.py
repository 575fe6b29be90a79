"""Prometheus metrics for the game API.

Each app owns one ``GameMetrics`` (in ``app.extensions['metrics']``) backed by
its own ``CollectorRegistry``, so test apps never share counters.
"""
import time

from flask import g, request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


def endpoint_type(path: str) -> str:
    if path.startswith('/api/game'):
        return 'game'
    if path.startswith('/api/scores'):
        return 'scores'
    if path.startswith('/api/leaderboard'):
        return 'leaderboard'
    if path in ('/health', '/api/health'):
        return 'health'
    if path == '/metrics':
        return 'metrics'
    return 'other'


def score_range(score: int) -> str:
    if score < 50:
        return '0-49'
    if score < 100:
        return '50-99'
    if score < 200:
        return '100-199'
    if score < 300:
        return '200-299'
    return '300+'


class GameMetrics:

    def __init__(self, registry: CollectorRegistry = None):
        self.registry = registry or CollectorRegistry()
        self.started_at = time.time()
        r = self.registry

        self.http_requests = Counter(
            'http_requests_total', 'Total number of HTTP requests',
            ['method', 'route', 'status_code', 'endpoint_type'], registry=r)
        self.http_duration = Histogram(
            'http_request_duration_seconds', 'Duration of HTTP requests in seconds',
            ['method', 'route', 'status_code', 'endpoint_type'],
            buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10), registry=r)
        self.http_errors = Counter(
            'http_errors_total', 'Total number of HTTP errors (4xx, 5xx)',
            ['method', 'route', 'status_code', 'error_type'], registry=r)

        self.game_starts = Counter(
            'game_starts_total', 'Games started', ['difficulty'], registry=r)
        self.match_attempts = Counter(
            'game_match_attempts_total', 'Match submissions by outcome',
            ['difficulty', 'result'], registry=r)
        self.completions = Counter(
            'game_scores_total', 'Total number of game scores submitted',
            ['difficulty', 'score_range'], registry=r)
        self.final_score = Histogram(
            'game_final_score', 'Final score of completed games', ['difficulty'],
            buckets=(25, 50, 100, 150, 200, 300, 400, 600), registry=r)
        self.completion_time = Histogram(
            'game_completion_time_seconds', 'Time taken to complete games', ['difficulty'],
            buckets=(30, 60, 120, 300, 600, 1200, 1800), registry=r)
        self.active_sessions = Gauge(
            'active_games_current', 'Sessions currently held in the cache', registry=r)

        self.cache_failures = Counter(
            'redis_operation_failures_total', 'Non-critical cache operations that failed',
            ['operation'], registry=r)
        self.health_status = Gauge(
            'app_health_status', 'Application health (1 = healthy, 0 = unhealthy)',
            ['component'], registry=r)
        self.uptime = Gauge(
            'app_uptime_seconds_total', 'Application uptime in seconds', registry=r)

    # -- request middleware ---------------------------------------------------

    def init_app(self, app):
        app.extensions['metrics'] = self

        @app.before_request
        def _start_timer():
            g._metrics_started = time.perf_counter()

        @app.after_request
        def _record_request(response):
            started = g.pop('_metrics_started', None)
            if started is None:
                return response
            route = request.url_rule.rule if request.url_rule is not None else 'unmatched'
            labels = (request.method, route, str(response.status_code), endpoint_type(request.path))
            self.http_requests.labels(*labels).inc()
            self.http_duration.labels(*labels).observe(time.perf_counter() - started)
            if response.status_code >= 400:
                error_type = 'client_error' if response.status_code < 500 else 'server_error'
                self.http_errors.labels(request.method, route, str(response.status_code), error_type).inc()
            return response

        return self

    # -- domain events ----------------------------------------------------------

    def game_started(self, difficulty: str) -> None:
        self.game_starts.labels(difficulty).inc()

    def match_attempt(self, difficulty: str, result: str) -> None:
        self.match_attempts.labels(difficulty, result).inc()

    def game_completed(self, difficulty: str, score: int, elapsed_ms: int) -> None:
        self.completions.labels(difficulty, score_range(score)).inc()
        self.final_score.labels(difficulty).observe(score)
        self.completion_time.labels(difficulty).observe(elapsed_ms / 1000)

    def cache_failure(self, operation: str) -> None:
        self.cache_failures.labels(operation).inc()

    def set_health(self, component: str, healthy: bool) -> None:
        self.health_status.labels(component).set(1 if healthy else 0)

    def sample(self, active_sessions=None) -> None:
        self.uptime.set(time.time() - self.started_at)
        if active_sessions is not None:
            self.active_sessions.set(active_sessions)

    # -- exposition ---------------------------------------------------------

    def render(self):
        self.uptime.set(time.time() - self.started_at)
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
