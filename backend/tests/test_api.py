import fakeredis

from conftest import TestConfig, a_mismatch, a_pair, card_pairs
from memory_game import create_app


def _start(client, username='alice', difficulty='easy', **extra):
    res = client.post('/api/game/start', json={'username': username, 'difficulty': difficulty, **extra})
    assert res.status_code == 201
    return res.get_json()['game']['gameId']


def test_start_game(client):
    res = client.post('/api/game/start', json={'username': 'alice', 'difficulty': 'medium'})
    assert res.status_code == 201
    data = res.get_json()
    assert data['success'] is True
    assert data['user']['username'] == 'alice'
    assert len(data['game']['cards']) == 20
    assert data['game']['config']['gridSize'] == '5x4'
    # pair ids never leave the server
    assert all('pairId' not in card for card in data['game']['cards'])
    assert all('emoji' not in card for card in data['game']['cards'])


def test_start_defaults_to_easy(client):
    data = client.post('/api/game/start', json={'username': 'bob'}).get_json()
    assert data['game']['difficulty'] == 'easy'
    assert len(data['game']['cards']) == 16


def test_start_validation_details(client):
    res = client.post('/api/game/start', json={'username': 'a!', 'difficulty': 'nightmare'})
    assert res.status_code == 400
    data = res.get_json()
    assert data['success'] is False
    assert data['error'] == 'validation_failed'
    fields = {d['field'] for d in data['details']}
    assert fields == {'username', 'difficulty'}


def test_start_rejects_unknown_category(client):
    res = client.post('/api/game/start', json={'username': 'alice', 'categories': ['nope']})
    assert res.status_code == 400
    assert res.get_json()['details'][0]['field'] == 'categories'


def test_start_without_body(client):
    res = client.post('/api/game/start')
    assert res.status_code == 400
    assert res.get_json()['details'][0]['field'] == 'username'


def test_match_and_miss(client, cache):
    game_id = _start(client)
    first, second = a_pair(cache, game_id)
    res = client.post('/api/game/match', json={
        'gameId': game_id, 'card1Id': first, 'card2Id': second, 'matchTime': 5000,
    })
    assert res.status_code == 200
    data = res.get_json()
    assert data['isMatch'] is True
    assert data['pointsEarned'] == 15
    assert data['movesCount'] == 1

    first, second = a_mismatch(cache, game_id)
    data = client.post('/api/game/match', json={
        'gameId': game_id, 'card1Id': first, 'card2Id': second,
    }).get_json()
    assert data['isMatch'] is False
    assert data['movesCount'] == 2
    assert data['game']['score'] == 15


def test_match_same_card_is_validation_error(client, cache):
    game_id = _start(client)
    first, _ = a_pair(cache, game_id)
    res = client.post('/api/game/match', json={'gameId': game_id, 'card1Id': first, 'card2Id': first})
    assert res.status_code == 400
    data = res.get_json()
    assert data['error'] == 'validation_failed'
    assert data['details'][0]['field'] == 'body'


def test_match_bad_game_id(client):
    res = client.post('/api/game/match', json={'gameId': 'not-a-uuid', 'card1Id': 'a', 'card2Id': 'b'})
    assert res.status_code == 400
    assert res.get_json()['details'][0]['field'] == 'gameId'


def test_match_unknown_card(client):
    game_id = _start(client)
    res = client.post('/api/game/match', json={'gameId': game_id, 'card1Id': 'x', 'card2Id': 'y'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'invalid_card'


def test_match_already_matched(client, cache):
    game_id = _start(client)
    first, second = a_pair(cache, game_id)
    body = {'gameId': game_id, 'card1Id': first, 'card2Id': second}
    client.post('/api/game/match', json=body)
    res = client.post('/api/game/match', json=body)
    assert res.status_code == 400
    assert res.get_json()['error'] == 'already_matched'


def test_expired_session_is_404(client):
    res = client.post('/api/game/match', json={
        'gameId': '00000000-0000-4000-8000-000000000000', 'card1Id': 'a', 'card2Id': 'b',
    })
    assert res.status_code == 404
    assert res.get_json()['error'] == 'session_not_found'


def test_complete_full_game(client, cache):
    game_id = _start(client)
    for first, second in card_pairs(cache, game_id).values():
        client.post('/api/game/match', json={'gameId': game_id, 'card1Id': first, 'card2Id': second})

    res = client.post('/api/game/complete', json={'gameId': game_id, 'timeElapsed': 60000, 'finalScore': 999})
    assert res.status_code == 200
    data = res.get_json()
    result = data['gameResult']
    # the claimed score is ignored
    assert result['finalScore'] != 999
    assert result['scoreBreakdown']['perfectGameBonus'] == 50
    assert result['matchesFound'] == 8
    assert data['achievements']

    res = client.post('/api/game/complete', json={'gameId': game_id, 'timeElapsed': 60000})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'already_completed'


def test_complete_time_bounds(client):
    game_id = _start(client)
    res = client.post('/api/game/complete', json={'gameId': game_id, 'timeElapsed': 10})
    assert res.status_code == 400
    assert res.get_json()['details'][0]['field'] == 'timeElapsed'


def test_get_game_snapshot(client, cache):
    game_id = _start(client)
    res = client.get(f'/api/game/{game_id}')
    assert res.status_code == 200
    data = res.get_json()
    assert data['game']['gameId'] == game_id
    assert data['game']['moves'] == 0
    assert data['config']['cardCount'] == 16

    assert client.get('/api/game/00000000-0000-4000-8000-000000000000').status_code == 404


def test_categories(client):
    data = client.get('/api/game/categories').get_json()
    assert 'food' in data['categories']
    assert set(data['config']['difficulties']) == {'easy', 'medium', 'hard', 'expert'}


def test_daily_challenge_is_cached(client):
    first = client.get('/api/game/daily-challenge').get_json()
    second = client.get('/api/game/daily-challenge').get_json()
    assert first['challenge'] == second['challenge']
    assert first['message'] != second['message']


def test_health(client):
    res = client.get('/api/health')
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'healthy'
    assert data['services']['database']['status'] == 'healthy'
    assert data['services']['redis']['status'] == 'healthy'
    assert client.get('/health').status_code == 200


def test_health_reports_broken_cache(client, cache):
    class Down:
        def ping(self):
            raise ConnectionError('redis down')

    cache.client = Down()
    res = client.get('/health')
    assert res.status_code == 503
    data = res.get_json()
    assert data['status'] == 'unhealthy'
    assert data['services']['redis']['status'] == 'unhealthy'
    assert data['services']['database']['status'] == 'healthy'


def test_metrics_exposition(client):
    _start(client)
    res = client.get('/metrics')
    assert res.status_code == 200
    assert res.content_type.startswith('text/plain')
    text = res.get_data(as_text=True)
    assert 'game_starts_total{difficulty="easy"} 1.0' in text
    assert 'http_requests_total' in text


def test_index_lists_endpoints(client):
    data = client.get('/api').get_json()
    assert data['endpoints']['startGame'] == 'POST /api/game/start'
    assert 'metrics' not in data['endpoints']


def test_unknown_route_is_json_404(client):
    res = client.get('/api/nothing-here')
    assert res.status_code == 404
    data = res.get_json()
    assert data['success'] is False
    assert data['error'] == 'not_found'


class LimitedConfig(TestConfig):
    RATE_LIMIT_ENABLED = True
    RATE_LIMIT_WINDOW_MS = 60000
    RATE_LIMIT_MAX_REQUESTS = 2


def test_rate_limit():
    app = create_app(LimitedConfig, redis_client=fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True))
    client = app.test_client()
    assert client.get('/api/game/categories').status_code == 200
    assert client.get('/api/game/categories').status_code == 200
    res = client.get('/api/game/categories')
    assert res.status_code == 429
    assert res.get_json()['error'] == 'rate_limited'
    # health checks and non-API paths are not counted
    assert client.get('/metrics').status_code == 200


def test_rate_limit_is_per_client():
    app = create_app(LimitedConfig, redis_client=fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True))
    client = app.test_client()
    for _ in range(3):
        client.get('/api/game/categories', headers={'X-Forwarded-For': '10.0.0.1'})
    res = client.get('/api/game/categories', headers={'X-Forwarded-For': '10.0.0.2'})
    assert res.status_code == 200
