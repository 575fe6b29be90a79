import threading
import time

import redis

_started_apps = set()


def sample_once(app) -> None:
    metrics = app.extensions['metrics']
    cache = app.extensions['game_cache']
    try:
        active = cache.session_count()
    except redis.exceptions.RedisError as exc:
        app.logger.warning(f"[housekeeping] could not count sessions: {exc}")
        metrics.cache_failure('count sessions')
        active = None
    metrics.sample(active_sessions=active)


def start_housekeeping(app) -> None:
    """Sample uptime and the active-session gauge every HOUSEKEEPING_INTERVAL_SEC.

    - No-ops in TESTING mode or when the interval is 0
    - One ticker per app
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_HOUSEKEEPING_IN_TESTS'):
        return
    interval = int(app.config.get('HOUSEKEEPING_INTERVAL_SEC', 15) or 0)
    if interval <= 0 or id(app) in _started_apps:
        return
    _started_apps.add(id(app))

    def _worker():
        while True:
            time.sleep(interval)
            sample_once(app)

    threading.Thread(target=_worker, name='housekeeping', daemon=True).start()
    app.logger.info(f"[housekeeping] sampling every {interval}s")
