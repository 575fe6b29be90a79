import time

import redis
from flask import current_app, request

from memory_game.errors import RateLimitedError


def client_identity() -> str:
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr or 'unknown'


def init_rate_limit(app, clock=time.time):
    """Fixed-window limit on /api/ requests, counted per client IP in the cache.

    When the cache cannot be reached the request is let through.
    """
    window_sec = max(1, int(app.config.get('RATE_LIMIT_WINDOW_MS', 900000)) // 1000)
    limit = int(app.config.get('RATE_LIMIT_MAX_REQUESTS', 100))

    @app.before_request
    def _enforce_rate_limit():
        if not current_app.config.get('RATE_LIMIT_ENABLED', True):
            return None
        if not request.path.startswith('/api/') or request.path == '/api/health':
            return None
        cache = current_app.extensions['game_cache']
        try:
            count = cache.hit_window(client_identity(), window_sec, clock())
        except redis.exceptions.RedisError as exc:
            current_app.logger.warning(f"[ratelimit] cache unavailable, allowing request: {exc}")
            current_app.extensions['metrics'].cache_failure('rate limit')
            return None
        if count > limit:
            current_app.logger.info(f"[ratelimit] {client_identity()} exceeded {limit} requests")
            raise RateLimitedError(details=[{
                'field': 'request',
                'message': f"{limit} requests per {window_sec} seconds",
                'value': count,
            }])
        return None
