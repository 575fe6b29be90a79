from flask import current_app


def get_cache():
    return current_app.extensions['game_cache']


def get_store():
    return current_app.extensions['game_store']


def get_sessions():
    return current_app.extensions['game_sessions']


def get_metrics():
    return current_app.extensions['metrics']
