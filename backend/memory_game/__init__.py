from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()

DEMO_PLAYERS = [
    ('memorymaster42', '🧠 Memory Master'),
    ('cardshark_jenny', '🦈 Card Shark Jenny'),
    ('emoji_ninja', '🥷 Emoji Ninja'),
]


def create_app(config_class=Config, redis_client=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=flask_app.config.get('CORS_ORIGINS', []))

    # Per-app services; nothing below is shared between app instances
    from memory_game.metrics import GameMetrics
    from memory_game.services.cache import GameCache
    from memory_game.services.store import GameStore
    from memory_game.services.games.session import GameSessionService

    metrics = GameMetrics().init_app(flask_app)
    cache = GameCache.from_app(flask_app, client=redis_client, on_failure=metrics.cache_failure)
    store = GameStore.from_app(flask_app)
    flask_app.extensions['game_cache'] = cache
    flask_app.extensions['game_store'] = store
    flask_app.extensions['game_sessions'] = GameSessionService(store, cache, metrics)

    from memory_game.ratelimit import init_rate_limit
    init_rate_limit(flask_app)

    # Import and register blueprints here
    from memory_game.main import main
    flask_app.register_blueprint(main)

    from memory_game.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/game')

    from memory_game.api.scores import scores
    flask_app.register_blueprint(scores, url_prefix='/api/scores')

    from memory_game.api.leaderboard import leaderboard
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')

    _register_error_handlers(flask_app)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from memory_game.models import User
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            for username, display_name in DEMO_PLAYERS:
                db.session.add(User(username=username, display_name=display_name))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('cache-clear')
    def cache_clear_command():
        """Deletes every session, snapshot and counter key."""
        removed = flask_app.extensions['game_cache'].clear_game_cache()
        print(f'Removed {removed} cache keys.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(cache_clear_command)

    from memory_game.services.housekeeping import start_housekeeping
    start_housekeeping(flask_app)

    return flask_app


def _register_error_handlers(flask_app):
    from memory_game.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(err):
        if err.status_code >= 500:
            flask_app.logger.error(f"[error] {err.code}: {err.message}")
        return jsonify(err.to_dict()), err.status_code

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({
            'success': False,
            'error': err.name.lower().replace(' ', '_'),
            'message': err.description,
        }), err.code

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(err):
        flask_app.logger.exception(f"[error] unhandled {type(err).__name__}")
        body = {
            'success': False,
            'error': 'internal_error',
            'message': 'Something went wrong on our end',
        }
        if flask_app.config.get('ENVIRONMENT') != 'production':
            body['debug'] = str(err)
        return jsonify(body), 500
