"""Redis-backed cache for live game sessions and derived snapshots.

Key layout:

- ``game:session:<id>``            live session document (JSON), session TTL
- ``leaderboard:top:<limit>:<tf>`` leaderboard snapshot, leaderboard TTL
- ``user:stats:<username>``        per-user stats snapshot, user-stats TTL
- ``analytics:daily_games:<date>`` games started per day, kept 7 days
- ``activity:<user>:<action>:<h>`` per-user hourly activity, kept 24 hours
- ``daily_challenge:<date>``       challenge of the day, until midnight
- ``ratelimit:<ip>:<window>``      fixed-window request counter

Session writes after the first one go through a WATCH/MULTI check on the
``revision`` field, so two writers racing on the same session cannot both
win. Analytics and activity writes are best effort.
"""
import datetime as dt
import json
import logging
from typing import Any, Callable, Optional

import redis

from memory_game.errors import ConcurrentUpdateError, TransientStoreError
from .games.state import SessionState
from .retry import retrying

logger = logging.getLogger(__name__)

RETRYABLE = (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)

SESSION_PREFIX = 'game:session:'
LEADERBOARD_PREFIX = 'leaderboard:'
USER_STATS_PREFIX = 'user:stats:'
DAILY_GAMES_PREFIX = 'analytics:daily_games:'
ACTIVITY_PREFIX = 'activity:'
DAILY_CHALLENGE_PREFIX = 'daily_challenge:'
RATE_LIMIT_PREFIX = 'ratelimit:'

ALL_NAMESPACES = (
    SESSION_PREFIX, LEADERBOARD_PREFIX, USER_STATS_PREFIX, DAILY_GAMES_PREFIX,
    ACTIVITY_PREFIX, DAILY_CHALLENGE_PREFIX, RATE_LIMIT_PREFIX,
)


class GameCache:

    def __init__(self, client: redis.Redis, *, session_ttl: int = 3600, leaderboard_ttl: int = 300,
                 user_stats_ttl: int = 1800, retry_attempts: int = 3, retry_delay: float = 1.0,
                 on_failure: Optional[Callable[[str], None]] = None):
        self.client = client
        self.session_ttl = session_ttl
        self.leaderboard_ttl = leaderboard_ttl
        self.user_stats_ttl = user_stats_ttl
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._on_failure = on_failure

    @classmethod
    def from_app(cls, app, client=None, on_failure=None):
        if client is None:
            client = redis.Redis.from_url(
                app.config['REDIS_URL'],
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return cls(
            client,
            session_ttl=app.config.get('SESSION_TTL_SEC', 3600),
            leaderboard_ttl=app.config.get('LEADERBOARD_TTL_SEC', 300),
            user_stats_ttl=app.config.get('USER_STATS_TTL_SEC', 1800),
            retry_attempts=app.config.get('STORE_RETRY_ATTEMPTS', 3),
            retry_delay=app.config.get('STORE_RETRY_DELAY_SEC', 1.0),
            on_failure=on_failure,
        )

    def _failed(self, operation: str, exc: Exception) -> None:
        logger.warning(f"[cache] {operation} failed, continuing: {exc}")
        if self._on_failure is not None:
            self._on_failure(operation)

    # -- generic JSON helpers --------------------------------------------

    @retrying('cache get', RETRYABLE)
    def get(self, key: str) -> Any:
        raw = self.client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    @retrying('cache set', RETRYABLE)
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self.client.set(key, json.dumps(value), ex=ttl)

    @retrying('cache delete', RETRYABLE)
    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return self.client.delete(*keys)

    def ping(self) -> bool:
        return bool(self.client.ping())

    def delete_pattern(self, pattern: str) -> int:
        keys = list(self.client.scan_iter(match=pattern, count=500))
        if not keys:
            return 0
        return self.client.delete(*keys)

    # -- sessions -----------------------------------------------------------

    @staticmethod
    def session_key(game_id: str) -> str:
        return f"{SESSION_PREFIX}{game_id}"

    def get_session(self, game_id: str) -> Optional[SessionState]:
        data = self.get(self.session_key(game_id))
        if data is None:
            return None
        return SessionState.from_dict(data)

    @retrying('cache create session', RETRYABLE)
    def create_session(self, state: SessionState) -> None:
        state.revision = 1
        self.client.set(self.session_key(state.game_id), json.dumps(state.to_dict()), ex=self.session_ttl)

    @retrying('cache save session', RETRYABLE)
    def save_session(self, state: SessionState) -> None:
        """Write ``state`` back only if the cached revision is still the one it was read at.

        Raises ConcurrentUpdateError when another writer got there first or the
        entry vanished in between.
        """
        key = self.session_key(state.game_id)
        expected = state.revision
        document = state.to_dict()
        document['revision'] = expected + 1
        with self.client.pipeline() as pipe:
            try:
                pipe.watch(key)
                raw = pipe.get(key)
                if raw is None or json.loads(raw).get('revision') != expected:
                    raise ConcurrentUpdateError()
                pipe.multi()
                pipe.set(key, json.dumps(document), ex=self.session_ttl)
                pipe.execute()
            except redis.exceptions.WatchError:
                raise ConcurrentUpdateError() from None
        state.revision = expected + 1

    def session_count(self) -> int:
        return sum(1 for _ in self.client.scan_iter(match=f"{SESSION_PREFIX}*", count=500))

    # -- leaderboard / user stats snapshots --------------------------------

    def _read_snapshot(self, key: str):
        try:
            return self.get(key)
        except TransientStoreError as exc:
            self._failed('read snapshot', exc)
            return None

    def _write_snapshot(self, key: str, value, ttl: int) -> None:
        try:
            self.set(key, value, ttl=ttl)
        except TransientStoreError as exc:
            self._failed('write snapshot', exc)

    @staticmethod
    def leaderboard_key(limit: int, timeframe: str = 'all') -> str:
        return f"{LEADERBOARD_PREFIX}top:{limit}:{timeframe}"

    def get_leaderboard(self, limit: int, timeframe: str = 'all'):
        return self._read_snapshot(self.leaderboard_key(limit, timeframe))

    def set_leaderboard(self, limit: int, timeframe: str, rows) -> None:
        self._write_snapshot(self.leaderboard_key(limit, timeframe), rows, self.leaderboard_ttl)

    def invalidate_leaderboard(self) -> int:
        return self.delete_pattern(f"{LEADERBOARD_PREFIX}*")

    @staticmethod
    def user_stats_key(username: str) -> str:
        return f"{USER_STATS_PREFIX}{username}"

    def get_user_stats(self, username: str):
        return self._read_snapshot(self.user_stats_key(username))

    def set_user_stats(self, username: str, stats) -> None:
        self._write_snapshot(self.user_stats_key(username), stats, self.user_stats_ttl)

    def invalidate_user_stats(self, username: Optional[str] = None) -> int:
        if username:
            return self.delete(self.user_stats_key(username))
        return self.delete_pattern(f"{USER_STATS_PREFIX}*")

    def invalidate_after_completion(self, username: str) -> None:
        """Drop the leaderboard and the player's stats snapshot.

        The two namespaces are cleared independently; a failure on one is
        logged and does not stop the other.
        """
        for operation, action in (
            ('invalidate leaderboard', self.invalidate_leaderboard),
            ('invalidate user stats', lambda: self.invalidate_user_stats(username)),
        ):
            try:
                action()
            except (redis.exceptions.RedisError, TransientStoreError) as exc:
                self._failed(operation, exc)

    # -- best-effort analytics ---------------------------------------------

    def increment_daily_games(self, today: Optional[dt.date] = None) -> None:
        key = f"{DAILY_GAMES_PREFIX}{(today or dt.date.today()).isoformat()}"
        try:
            with self.client.pipeline() as pipe:
                pipe.incr(key)
                pipe.expire(key, 7 * 24 * 3600)
                pipe.execute()
        except redis.exceptions.RedisError as exc:
            self._failed('increment daily games', exc)

    def daily_games(self, today: Optional[dt.date] = None) -> int:
        key = f"{DAILY_GAMES_PREFIX}{(today or dt.date.today()).isoformat()}"
        try:
            return int(self.client.get(key) or 0)
        except redis.exceptions.RedisError as exc:
            self._failed('read daily games', exc)
            return 0

    def track_activity(self, username: str, action: str, now: Optional[dt.datetime] = None) -> None:
        hour = (now or dt.datetime.now()).strftime('%Y-%m-%dT%H')
        key = f"{ACTIVITY_PREFIX}{username}:{action}:{hour}"
        try:
            with self.client.pipeline() as pipe:
                pipe.incr(key)
                pipe.expire(key, 24 * 3600)
                pipe.execute()
        except redis.exceptions.RedisError as exc:
            self._failed('track activity', exc)

    def get_daily_challenge(self, today: dt.date):
        try:
            return self.get(f"{DAILY_CHALLENGE_PREFIX}{today.isoformat()}")
        except (redis.exceptions.RedisError, TransientStoreError) as exc:
            self._failed('read daily challenge', exc)
            return None

    def set_daily_challenge(self, today: dt.date, challenge: dict, now: Optional[dt.datetime] = None) -> None:
        now = now or dt.datetime.now()
        midnight = dt.datetime.combine(today + dt.timedelta(days=1), dt.time.min)
        ttl = max(1, int((midnight - now).total_seconds()))
        try:
            self.client.set(f"{DAILY_CHALLENGE_PREFIX}{today.isoformat()}", json.dumps(challenge), ex=ttl)
        except redis.exceptions.RedisError as exc:
            self._failed('store daily challenge', exc)

    # -- rate limiting -------------------------------------------------------

    def hit_window(self, identity: str, window_sec: int, now: float) -> int:
        """Count one request for ``identity`` in the current fixed window."""
        window = int(now // window_sec)
        key = f"{RATE_LIMIT_PREFIX}{identity}:{window}"
        with self.client.pipeline() as pipe:
            pipe.incr(key)
            pipe.expire(key, window_sec)
            count, _ = pipe.execute()
        return int(count)

    # -- maintenance ---------------------------------------------------------

    def clear_game_cache(self) -> int:
        removed = 0
        for prefix in ALL_NAMESPACES:
            removed += self.delete_pattern(f"{prefix}*")
        logger.info(f"[cache] cleared {removed} keys")
        return removed
