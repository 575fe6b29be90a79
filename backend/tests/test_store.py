from memory_game import db
from memory_game.models import User


def test_create_or_get_user_is_idempotent(flask_app):
    store = flask_app.extensions['game_store']
    first = store.create_or_get_user('alice')
    second = store.create_or_get_user('alice')
    assert first.id == second.id
    assert User.query.filter_by(username='alice').count() == 1


def test_concurrent_create_reads_the_winning_row(flask_app, monkeypatch):
    store = flask_app.extensions['game_store']
    existing = store.create_or_get_user('alice', display_name='Alice A')
    original = store.get_user
    lookups = []

    def stale_lookup(username):
        # first lookup misses, as if the other request had not committed yet
        lookups.append(username)
        if len(lookups) == 1:
            return None
        return original(username)

    monkeypatch.setattr(store, 'get_user', stale_lookup)
    user = store.create_or_get_user('alice')

    assert len(lookups) == 2
    assert user.id == existing.id
    assert user.display_name == 'Alice A'
    assert User.query.filter_by(username='alice').count() == 1
    # the session is usable after the rolled back insert
    db.session.add(User(username='bob'))
    db.session.commit()
    assert User.query.count() == 2


def test_upsert_user_reports_creation(flask_app):
    store = flask_app.extensions['game_store']
    user, created = store.upsert_user('carol', email='carol@example.com')
    assert created is True
    assert user.display_name == 'carol'

    user, created = store.upsert_user('carol', display_name='Carol C')
    assert created is False
    assert user.email == 'carol@example.com'
    assert user.display_name == 'Carol C'
