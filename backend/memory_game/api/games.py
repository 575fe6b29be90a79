import datetime as dt

from flask import Blueprint, current_app, jsonify, request

from memory_game.schemas import CompleteRequest, MatchRequest, StartGameRequest, parse
from memory_game.services import get_cache, get_sessions
from memory_game.services.games.content import daily_challenge, game_config, get_categories

games = Blueprint('games', __name__)


@games.route('/start', methods=['POST'])
def start_game():
    body = parse(StartGameRequest, request.get_json(silent=True))
    result = get_sessions().start(body.username, body.difficulty, body.categories)
    current_app.logger.info(f"[start] user={body.username} difficulty={body.difficulty} game={result['game']['gameId']}")
    return jsonify({
        'success': True,
        'message': f'🎯 Game started! Good luck, {body.username}! 🍀',
        **result,
    }), 201


@games.route('/match', methods=['POST'])
def submit_match():
    body = parse(MatchRequest, request.get_json(silent=True))
    result = get_sessions().match(str(body.game_id), body.card1_id, body.card2_id, body.match_time)
    return jsonify({'success': True, **result})


@games.route('/complete', methods=['POST'])
def complete_game():
    body = parse(CompleteRequest, request.get_json(silent=True))
    result = get_sessions().complete(str(body.game_id), body.time_elapsed)
    current_app.logger.info(
        f"[complete] game={body.game_id} score={result['gameResult']['finalScore']}"
    )
    return jsonify({
        'success': True,
        'message': '🎉 Game completed successfully! Well done! 🏆',
        **result,
    })


@games.route('/categories', methods=['GET'])
def list_categories():
    return jsonify({
        'success': True,
        'categories': get_categories(),
        'config': game_config(),
    })


@games.route('/daily-challenge', methods=['GET'])
def get_daily_challenge():
    today = dt.date.today()
    cache = get_cache()
    challenge = cache.get_daily_challenge(today)
    if challenge:
        return jsonify({
            'success': True,
            'challenge': challenge,
            'message': "Today's challenge is ready! 🌟",
        })

    challenge = daily_challenge(today)
    cache.set_daily_challenge(today, challenge)
    return jsonify({
        'success': True,
        'challenge': challenge,
        'message': 'Fresh daily challenge generated! 🎯',
    })


@games.route('/<string:game_id>', methods=['GET'])
def get_game(game_id):
    snapshot = get_sessions().snapshot(game_id)
    return jsonify({'success': True, **snapshot})
