import os


def _redis_url():
    if os.environ.get('REDIS_URL'):
        return os.environ['REDIS_URL']
    host = os.environ.get('REDIS_HOST', 'localhost')
    port = os.environ.get('REDIS_PORT', '6379')
    # Kubernetes service links export REDIS_PORT as tcp://host:port
    if port.startswith('tcp://'):
        host, _, port = port[len('tcp://'):].partition(':')
    db_index = os.environ.get('REDIS_DB', '0')
    password = os.environ.get('REDIS_PASSWORD')
    if password:
        return f"redis://:{password}@{host}:{int(port or 6379)}/{db_index}"
    return f"redis://{host}:{int(port or 6379)}/{db_index}"


def _database_url():
    if os.environ.get('DATABASE_URL'):
        return os.environ['DATABASE_URL']
    return 'postgresql://{user}:{password}@{host}:{port}/{name}'.format(
        user=os.environ.get('DB_USER', 'gameuser'),
        password=os.environ.get('DB_PASSWORD', 'gamepass123'),
        host=os.environ.get('DB_HOST', 'localhost'),
        port=os.environ.get('DB_PORT', '5432'),
        name=os.environ.get('DB_NAME', 'humor_memory_game'),
    )


def _origins():
    raw = os.environ.get('CORS_ORIGIN')
    if not raw:
        return [
            'http://localhost:3000',
            'http://localhost:3002',
            'http://localhost:80',
            'http://frontend',
        ]
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    ENVIRONMENT = os.environ.get('ENVIRONMENT') or os.environ.get('FLASK_ENV', 'development')
    APP_VERSION = os.environ.get('APP_VERSION', '1.0.0')
    PORT = int(os.environ.get('PORT', '3001'))

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Pool sizing and timeouts (ms in the environment, seconds for SQLAlchemy)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': int(os.environ.get('DB_MAX_CONNECTIONS', '20')),
        'pool_recycle': int(os.environ.get('DB_IDLE_TIMEOUT', '30000')) // 1000,
        'pool_timeout': int(os.environ.get('DB_CONNECTION_TIMEOUT', '10000')) // 1000,
        'pool_pre_ping': True,
    }

    REDIS_URL = _redis_url()
    REDIS_TTL = int(os.environ.get('REDIS_TTL', '3600'))
    SESSION_TTL_SEC = int(os.environ.get('SESSION_TTL_SEC', str(REDIS_TTL)))
    LEADERBOARD_TTL_SEC = int(os.environ.get('LEADERBOARD_TTL_SEC', '300'))
    USER_STATS_TTL_SEC = int(os.environ.get('USER_STATS_TTL_SEC', '1800'))

    CORS_ORIGINS = _origins()

    RATE_LIMIT_ENABLED = os.environ.get('RATE_LIMIT_ENABLED', '1') not in ('0', 'false', 'False')
    RATE_LIMIT_WINDOW_MS = int(os.environ.get('RATE_LIMIT_WINDOW_MS', str(15 * 60 * 1000)))
    RATE_LIMIT_MAX_REQUESTS = int(os.environ.get('RATE_LIMIT_MAX_REQUESTS', '100'))

    # Bounded fixed-backoff retries for transient store/cache failures
    STORE_RETRY_ATTEMPTS = int(os.environ.get('STORE_RETRY_ATTEMPTS', '3'))
    STORE_RETRY_DELAY_SEC = float(os.environ.get('STORE_RETRY_DELAY_SEC', '1.0'))

    # Uptime / active-session sampling interval (sec). 0 disables.
    HOUSEKEEPING_INTERVAL_SEC = int(os.environ.get('HOUSEKEEPING_INTERVAL_SEC', '15'))
