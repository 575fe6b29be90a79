import datetime as dt

from flask import Blueprint, current_app, jsonify, request

from memory_game.errors import UserNotFoundError
from memory_game.schemas import LeaderboardQuery, RankQuery, parse
from memory_game.services import get_cache, get_store
from memory_game.services import achievements

leaderboard = Blueprint('leaderboard', __name__)


def _time_formatted(ms):
    return f"{ms / 1000:.1f}s" if ms else 'N/A'


def _load(limit, timeframe):
    rows = get_store().leaderboard(limit=limit, timeframe=timeframe)
    for row in achievements.decorate_leaderboard(rows):
        row['timeFormatted'] = _time_formatted(row['bestTime'])
    return rows


def _metadata(rows, timeframe, source):
    return {
        'totalPlayers': len(rows),
        'timeframe': timeframe,
        'dataSource': source,
        'lastUpdated': dt.datetime.now(dt.timezone.utc).isoformat(),
        'topScore': rows[0]['bestScore'] if rows else 0,
        'averageScore': round(sum(r['bestScore'] for r in rows) / len(rows)) if rows else 0,
    }


@leaderboard.route('', methods=['GET'])
@leaderboard.route('/', methods=['GET'])
def get_leaderboard():
    query = parse(LeaderboardQuery, request.args.to_dict())
    cache = get_cache()
    rows = cache.get_leaderboard(query.limit, query.timeframe)
    source = 'cache'
    if rows is None:
        rows = _load(query.limit, query.timeframe)
        cache.set_leaderboard(query.limit, query.timeframe, rows)
        source = 'database'
    current_app.logger.info(f"[leaderboard] {len(rows)} players timeframe={query.timeframe} source={source}")
    return jsonify({
        'success': True,
        'leaderboard': rows,
        'metadata': _metadata(rows, query.timeframe, source),
        'message': (f'🏆 Top {len(rows)} memory champions! 🧠' if rows
                    else '🎮 Be the first to claim your spot on the leaderboard! 🚀'),
    })


@leaderboard.route('/fresh', methods=['GET'])
def get_fresh_leaderboard():
    query = parse(LeaderboardQuery, request.args.to_dict())
    rows = _load(query.limit, query.timeframe)
    get_cache().set_leaderboard(query.limit, query.timeframe, rows)
    return jsonify({
        'success': True,
        'leaderboard': rows,
        'metadata': _metadata(rows, query.timeframe, 'fresh'),
        'message': '✨ Fresh leaderboard data loaded! 🎯',
    })


@leaderboard.route('/rank/<string:username>', methods=['GET'])
def get_user_rank(username):
    query = parse(RankQuery, request.args.to_dict())
    store = get_store()
    user = store.get_user(username)
    if user is None or not user.is_active or not user.total_games:
        raise UserNotFoundError(f'User "{username}" not found on leaderboard! 🔍')

    ranking = store.rank_context(user, query.context)
    rank = ranking['rank']
    nearby = ranking['nearby']
    for index, row in enumerate(nearby):
        row['badge'] = achievements.player_badge(row['bestScore'], row['rank'])
        row['timeFormatted'] = _time_formatted(row['bestTime'])
        row['pointsToNext'] = nearby[index - 1]['bestScore'] - row['bestScore'] if index > 0 else 0

    ranked_total = store.ranked_player_count()
    return jsonify({
        'success': True,
        'userRank': {
            'username': user.username,
            'displayName': user.display_name or user.username,
            'currentRank': rank,
            'bestScore': user.best_score,
            'totalGames': user.total_games,
            'badge': achievements.player_badge(user.best_score, rank),
            'performance': achievements.leaderboard_rating(user.best_score),
        },
        'context': nearby,
        'statistics': {
            'totalRankedPlayers': ranked_total,
            'percentile': round((ranked_total - rank + 1) / ranked_total * 100, 1) if ranked_total else 0.0,
            'playersAbove': rank - 1,
            'playersBelow': ranked_total - rank,
        },
        'message': (f"🏆 Amazing! You're in the top 10! (Rank #{rank}) 🌟" if rank <= 10
                    else f"🎯 Great job! You're in the top 100! (Rank #{rank}) 💪" if rank <= 100
                    else f"🎮 Keep playing to climb higher! (Rank #{rank}) 🚀"),
    })


@leaderboard.route('/stats', methods=['GET'])
def get_stats():
    stats = get_store().leaderboard_stats()
    stats['overall']['gamesToday'] = get_cache().daily_games()
    return jsonify({
        'success': True,
        'statistics': stats,
        'insights': achievements.insights(stats),
        'message': '📊 Complete leaderboard statistics loaded! 📈',
    })


@leaderboard.route('/refresh', methods=['POST'])
def refresh_cache():
    cache = get_cache()
    cleared_leaderboard = cache.invalidate_leaderboard()
    cleared_stats = cache.invalidate_user_stats()
    current_app.logger.info(f"[leaderboard] cache refreshed ({cleared_leaderboard + cleared_stats} keys)")
    return jsonify({
        'success': True,
        'message': '✨ Leaderboard cache refreshed! 🔄',
        'clearedKeys': {
            'leaderboard': cleared_leaderboard,
            'userStats': cleared_stats,
            'total': cleared_leaderboard + cleared_stats,
        },
    })
