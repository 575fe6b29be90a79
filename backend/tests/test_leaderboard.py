import pytest

from conftest import a_mismatch, card_pairs
from memory_game import db
from memory_game.models import User


@pytest.fixture()
def play(sessions, cache, clock):
    """Play a full game: ``mistakes`` misses first, then every pair, then complete."""
    def _play(username, time_elapsed=100000, mistakes=0, difficulty='easy'):
        game_id = sessions.start(username, difficulty)['game']['gameId']
        for _ in range(mistakes):
            sessions.match(game_id, *a_mismatch(cache, game_id))
        for first, second in list(card_pairs(cache, game_id).values()):
            sessions.match(game_id, first, second)
        return sessions.complete(game_id, time_elapsed=time_elapsed)['gameResult']
    return _play


@pytest.fixture()
def three_players(play):
    # alice and bob tie on score; bob is faster
    assert play('alice', 100000)['finalScore'] == 274
    assert play('bob', 90000)['finalScore'] == 274
    assert play('carol', 200000)['finalScore'] == 154


def test_create_and_update_user(client):
    res = client.post('/api/scores/user', json={'username': 'dave', 'email': 'dave@example.com'})
    assert res.status_code == 201
    assert res.get_json()['user']['displayName'] == 'dave'

    res = client.post('/api/scores/user', json={'username': 'dave', 'displayName': 'Dave D'})
    assert res.status_code == 200
    user = res.get_json()['user']
    assert user['displayName'] == 'Dave D'
    assert user['email'] == 'dave@example.com'


def test_create_user_validation(client):
    res = client.post('/api/scores/user', json={'username': 'dave', 'email': 'not-an-email'})
    assert res.status_code == 400
    assert res.get_json()['details'][0]['field'] == 'email'


def test_unknown_user_scores_404(client):
    res = client.get('/api/scores/ghost')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'user_not_found'


def test_user_scores(client, cache, three_players):
    res = client.get('/api/scores/alice')
    assert res.status_code == 200
    data = res.get_json()
    stats = data['statistics']
    assert stats['gamesPlayed'] == 1
    assert stats['highScore'] == 274
    assert stats['globalRank'] == 2
    assert stats['accuracy'] == 100.0
    assert stats['perfectGames'] == 1
    assert stats['favoriteDifficulty'] == 'easy'
    assert data['performance']['level']['level'] == 'Expert'
    unlocked = {a['id'] for a in data['performance']['achievements']}
    assert {'score_100', 'score_200', 'perfect_game', 'top_ten', 'podium'} <= unlocked
    assert 'champion' not in unlocked

    # second read comes from the snapshot
    assert cache.get_user_stats('alice') is not None
    assert 'gameHistory' not in data


def test_user_scores_with_history(client, three_players):
    data = client.get('/api/scores/alice?includeHistory=true').get_json()
    assert len(data['gameHistory']) == 1
    assert data['gameHistory'][0]['score'] == 274
    assert data['gameHistory'][0]['duration'] == '100.0s'


def test_user_history_pagination(client, play):
    play('alice', 100000)
    play('alice', 200000)
    play('alice', 120000, mistakes=3)

    data = client.get('/api/scores/alice/history?limit=2').get_json()
    assert len(data['gameHistory']) == 2
    assert data['pagination'] == {'total': 3, 'limit': 2, 'offset': 0, 'hasMore': True}

    data = client.get('/api/scores/alice/history?limit=2&offset=2').get_json()
    assert len(data['gameHistory']) == 1
    assert data['pagination']['hasMore'] is False

    assert client.get('/api/scores/alice/history?limit=500').status_code == 400
    assert client.get('/api/scores/ghost/history').status_code == 404


def test_leaderboard_order_and_caching(client, three_players):
    res = client.get('/api/leaderboard')
    assert res.status_code == 200
    data = res.get_json()
    assert [row['username'] for row in data['leaderboard']] == ['bob', 'alice', 'carol']
    assert [row['rank'] for row in data['leaderboard']] == [1, 2, 3]
    assert data['leaderboard'][0]['badge']['title'] == 'Champion'
    assert data['leaderboard'][0]['timeFormatted'] == '90.0s'
    assert data['metadata']['dataSource'] == 'database'
    assert data['metadata']['topScore'] == 274

    data = client.get('/api/leaderboard/').get_json()
    assert data['metadata']['dataSource'] == 'cache'


def test_completion_invalidates_leaderboard(client, play, three_players):
    client.get('/api/leaderboard')
    play('dave', 80000)
    data = client.get('/api/leaderboard').get_json()
    assert data['metadata']['dataSource'] == 'database'
    assert data['leaderboard'][0]['username'] == 'dave'


def test_leaderboard_limit_and_timeframe(client, three_players):
    data = client.get('/api/leaderboard?limit=2&timeframe=week').get_json()
    assert [row['username'] for row in data['leaderboard']] == ['bob', 'alice']
    assert data['metadata']['timeframe'] == 'week'

    assert client.get('/api/leaderboard?limit=0').status_code == 400
    assert client.get('/api/leaderboard?timeframe=year').status_code == 400


def test_empty_leaderboard(client):
    data = client.get('/api/leaderboard/fresh').get_json()
    assert data['leaderboard'] == []
    assert data['metadata']['dataSource'] == 'fresh'


def test_user_rank(client, three_players):
    res = client.get('/api/leaderboard/rank/alice?context=1')
    assert res.status_code == 200
    data = res.get_json()
    assert data['userRank']['currentRank'] == 2
    assert data['userRank']['badge']['title'] == '2nd Place'
    assert [row['username'] for row in data['context']] == ['bob', 'alice', 'carol']
    assert [row['isCurrentUser'] for row in data['context']] == [False, True, False]
    assert data['context'][2]['pointsToNext'] == 120
    assert data['statistics'] == {
        'totalRankedPlayers': 3,
        'percentile': 66.7,
        'playersAbove': 1,
        'playersBelow': 1,
    }


def test_rank_requires_completed_games(client):
    client.post('/api/scores/user', json={'username': 'newbie'})
    assert client.get('/api/leaderboard/rank/newbie').status_code == 404
    assert client.get('/api/leaderboard/rank/ghost').status_code == 404


def test_rank_of_inactive_player_is_404(client, play):
    play('alice', 100000)
    user = User.query.filter_by(username='alice').one()
    user.is_active = False
    db.session.commit()

    res = client.get('/api/leaderboard/rank/alice')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'user_not_found'


def test_leaderboard_stats(client, sessions, three_players):
    sessions.start('erin', 'hard')
    data = client.get('/api/leaderboard/stats').get_json()
    overall = data['statistics']['overall']
    assert overall['totalGames'] == 3
    assert overall['gamesInProgress'] == 1
    assert overall['completionRate'] == 75.0
    assert overall['highestScore'] == 274
    assert overall['gamesToday'] == 4
    assert data['statistics']['byDifficulty']['easy']['games'] == 3
    assert data['statistics']['records']['topPlayer'] == 'bob'
    assert any('easy' in note for note in data['insights'])


def test_refresh_clears_snapshots(client, three_players):
    client.get('/api/leaderboard')
    client.get('/api/leaderboard?limit=5')
    client.get('/api/scores/alice')

    data = client.post('/api/leaderboard/refresh').get_json()
    assert data['clearedKeys'] == {'leaderboard': 2, 'userStats': 1, 'total': 3}
    assert client.get('/api/leaderboard').get_json()['metadata']['dataSource'] == 'database'
