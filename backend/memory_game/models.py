import uuid
from datetime import datetime, timezone

from memory_game import db


def _uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    username = db.Column(db.String(50), unique=True, nullable=False, index=True)
    email = db.Column(db.String(100), unique=True, nullable=True)
    display_name = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    last_played = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    total_games = db.Column(db.Integer, default=0, nullable=False)
    total_score = db.Column(db.Integer, default=0, nullable=False)
    best_score = db.Column(db.Integer, default=0, nullable=False, index=True)
    best_time = db.Column(db.Integer, nullable=True)  # ms
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    games = db.relationship('Game', back_populates='user', lazy='dynamic')

    @property
    def avg_score(self):
        if not self.total_games:
            return 0
        return round(self.total_score / self.total_games, 2)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'displayName': self.display_name or self.username,
            'email': self.email,
            'totalGames': self.total_games,
            'totalScore': self.total_score,
            'bestScore': self.best_score,
            'bestTime': self.best_time,
            'averageScore': self.avg_score,
            'lastPlayed': _iso(self.last_played),
            'createdAt': _iso(self.created_at),
        }


class Game(db.Model):
    __tablename__ = 'games'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    username = db.Column(db.String(50), nullable=False)  # denormalized for history queries
    score = db.Column(db.Integer, default=0, nullable=False)
    moves = db.Column(db.Integer, default=0, nullable=False)
    time_elapsed = db.Column(db.Integer, default=0, nullable=False)  # ms
    cards_matched = db.Column(db.Integer, default=0, nullable=False)
    difficulty_level = db.Column(db.String(20), default='easy', nullable=False)
    game_completed = db.Column(db.Boolean, default=False, nullable=False)
    started_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    game_data = db.Column(db.JSON, nullable=True)

    user = db.relationship('User', back_populates='games')
    matches = db.relationship('GameMatch', back_populates='game', lazy='dynamic',
                              cascade='all, delete-orphan')

    @property
    def is_perfect(self):
        return self.game_completed and self.moves == self.cards_matched

    @property
    def accuracy(self):
        if not self.moves:
            return 0.0
        return round(self.cards_matched / self.moves * 100, 1)

    def to_dict(self):
        return {
            'gameId': self.id,
            'userId': self.user_id,
            'username': self.username,
            'difficulty': self.difficulty_level,
            'score': self.score,
            'moves': self.moves,
            'timeElapsed': self.time_elapsed,
            'cardsMatched': self.cards_matched,
            'isCompleted': self.game_completed,
            'startTime': _iso(self.started_at),
            'completedAt': _iso(self.completed_at),
            'accuracy': self.accuracy,
        }


class GameMatch(db.Model):
    __tablename__ = 'game_matches'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    game_id = db.Column(db.String(36), db.ForeignKey('games.id', ondelete='CASCADE'), nullable=False, index=True)
    card1_id = db.Column(db.String(50), nullable=False)
    card2_id = db.Column(db.String(50), nullable=False)
    match_time = db.Column(db.Integer, nullable=False)  # ms, as reported by the client
    points_earned = db.Column(db.Integer, default=10, nullable=False)
    bonus_points = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    game = db.relationship('Game', back_populates='matches')

    def to_dict(self):
        return {
            'card1Id': self.card1_id,
            'card2Id': self.card2_id,
            'matchTime': self.match_time,
            'pointsEarned': self.points_earned,
            'bonusPoints': self.bonus_points,
            'createdAt': _iso(self.created_at),
        }
