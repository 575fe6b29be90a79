from flask import Blueprint, current_app, jsonify, request

from memory_game.errors import UserNotFoundError
from memory_game.schemas import CreateUserRequest, PaginationQuery, ScoresQuery, parse
from memory_game.services import get_cache, get_store
from memory_game.services import achievements

scores = Blueprint('scores', __name__)


def _history_entry(game):
    entry = game.to_dict()
    entry['duration'] = f"{game.time_elapsed / 1000:.1f}s" if game.time_elapsed else None
    return entry


def _user_stats(user):
    """Stats document for ``user``; everything here is derived from the store."""
    store = get_store()
    rank = store.user_rank(user)
    summary = store.game_summary(user.username)
    last_played = user.last_played.isoformat() if user.last_played else None
    return {
        'user': {**user.to_dict(), 'rank': rank},
        'statistics': {
            'gamesPlayed': user.total_games,
            'totalPoints': user.total_score,
            'highScore': user.best_score,
            'fastestTime': f"{user.best_time / 1000:.1f}s" if user.best_time else None,
            'averageScore': user.avg_score,
            'globalRank': rank,
            'accuracy': summary['accuracy'],
            'averageTime': summary['averageTime'],
            'perfectGames': summary['perfectGames'],
            'favoriteDifficulty': summary['favoriteDifficulty'],
        },
        'performance': {
            'level': achievements.performance_level(user.best_score),
            'progressToNext': achievements.progress_to_next_level(user.best_score),
            'achievements': achievements.user_achievements(
                user.total_games, user.best_score, user.best_time, rank,
                summary['perfectGames'], last_played,
            ),
        },
        'message': achievements.motivational_message(user.best_score),
    }


@scores.route('/user', methods=['POST'])
def create_user():
    body = parse(CreateUserRequest, request.get_json(silent=True))
    user, created = get_store().upsert_user(body.username, body.email, body.display_name)
    get_cache().invalidate_user_stats(user.username)
    current_app.logger.info(f"[user] {'created' if created else 'updated'} {user.username}")
    return jsonify({
        'success': True,
        'message': f"👋 Welcome, {user.display_name or user.username}!" if created else 'Profile updated! ✨',
        'user': user.to_dict(),
    }), 201 if created else 200


@scores.route('/<string:username>', methods=['GET'])
def get_user_scores(username):
    query = parse(ScoresQuery, request.args.to_dict())
    cache = get_cache()
    stats = cache.get_user_stats(username)
    if stats is None:
        user = get_store().get_user(username)
        if user is None:
            raise UserNotFoundError(f"User \"{username}\" hasn't played any games yet! 🎮")
        stats = _user_stats(user)
        cache.set_user_stats(username, stats)
        current_app.logger.info(f"[scores] stats computed for {username}")

    body = {'success': True, **stats}
    if query.include_history:
        recent, _ = get_store().recent_games(username, limit=5)
        body['gameHistory'] = [_history_entry(g) for g in recent]
    return jsonify(body)


@scores.route('/<string:username>/history', methods=['GET'])
def get_user_history(username):
    query = parse(PaginationQuery, request.args.to_dict())
    store = get_store()
    if store.get_user(username) is None:
        raise UserNotFoundError()
    history, total = store.recent_games(username, limit=query.limit, offset=query.offset)
    entries = [_history_entry(g) for g in history]
    best = max(entries, key=lambda e: e['score']) if entries else None
    return jsonify({
        'success': True,
        'gameHistory': entries,
        'pagination': {
            'total': total,
            'limit': query.limit,
            'offset': query.offset,
            'hasMore': query.offset + query.limit < total,
        },
        'summary': {
            'totalGames': len(entries),
            'averageScore': round(sum(e['score'] for e in entries) / len(entries)) if entries else 0,
            'bestGame': best,
        },
    })
