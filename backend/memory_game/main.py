import datetime as dt
import time

from flask import Blueprint, Response, current_app, jsonify

from memory_game.services import get_cache, get_metrics, get_store

main = Blueprint('main', __name__)

ENDPOINTS = {
    'health': 'GET /health',
    'metrics': 'GET /metrics',
    'startGame': 'POST /api/game/start',
    'submitMatch': 'POST /api/game/match',
    'completeGame': 'POST /api/game/complete',
    'getGame': 'GET /api/game/:gameId',
    'categories': 'GET /api/game/categories',
    'dailyChallenge': 'GET /api/game/daily-challenge',
    'userScores': 'GET /api/scores/:username',
    'userHistory': 'GET /api/scores/:username/history',
    'createUser': 'POST /api/scores/user',
    'leaderboard': 'GET /api/leaderboard',
    'freshLeaderboard': 'GET /api/leaderboard/fresh',
    'userRank': 'GET /api/leaderboard/rank/:username',
    'leaderboardStats': 'GET /api/leaderboard/stats',
    'refreshLeaderboard': 'POST /api/leaderboard/refresh',
}


@main.route('/')
def index():
    return jsonify({
        'success': True,
        'message': '🎮 Memory match game API',
        'version': current_app.config.get('APP_VERSION'),
        'endpoints': ENDPOINTS,
    })


@main.route('/api')
@main.route('/api/')
def api_index():
    return jsonify({
        'success': True,
        'message': '🎮 Memory match game API',
        'version': current_app.config.get('APP_VERSION'),
        'endpoints': {name: path for name, path in ENDPOINTS.items() if ' /api/' in path},
    })


def _check(component, probe):
    started = time.perf_counter()
    try:
        probe()
    except Exception as exc:
        current_app.logger.warning(f"[health] {component} check failed: {exc}")
        return {'status': 'unhealthy', 'error': str(exc)}
    return {'status': 'healthy', 'latencyMs': round((time.perf_counter() - started) * 1000, 1)}


@main.route('/health')
@main.route('/api/health')
def health():
    services = {
        'database': _check('database', get_store().ping),
        'redis': _check('redis', get_cache().ping),
    }
    metrics = get_metrics()
    for component, result in services.items():
        metrics.set_health(component, result['status'] == 'healthy')
    healthy = all(result['status'] == 'healthy' for result in services.values())
    body = {
        'status': 'healthy' if healthy else 'unhealthy',
        'timestamp': dt.datetime.now(dt.timezone.utc).isoformat(),
        'version': current_app.config.get('APP_VERSION'),
        'environment': current_app.config.get('ENVIRONMENT'),
        'uptime': round(time.time() - metrics.started_at, 1),
        'services': services,
    }
    return jsonify(body), 200 if healthy else 503


@main.route('/metrics')
def metrics_endpoint():
    payload, content_type = get_metrics().render()
    return Response(payload, mimetype=None, content_type=content_type)
