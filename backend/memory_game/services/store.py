"""Relational store for players, games and the match log.

Writes and the leaderboard reads run inside a bounded retry on
OperationalError (lost connection, server restart); the session is rolled
back between attempts.
"""
import datetime as dt
import logging
from typing import List, Optional, Tuple

from sqlalchemy import and_, func, or_, text, update
from sqlalchemy.exc import IntegrityError, OperationalError

from memory_game import db
from memory_game.models import Game, GameMatch, User, utcnow
from .games.state import MatchEvent
from .retry import retrying

logger = logging.getLogger(__name__)

TIMEFRAMES = {
    'all': None,
    'week': dt.timedelta(days=7),
    'month': dt.timedelta(days=30),
}


def _rollback():
    db.session.rollback()


class GameStore:

    def __init__(self, retry_attempts: int = 3, retry_delay: float = 1.0):
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    @classmethod
    def from_app(cls, app):
        return cls(
            retry_attempts=app.config.get('STORE_RETRY_ATTEMPTS', 3),
            retry_delay=app.config.get('STORE_RETRY_DELAY_SEC', 1.0),
        )

    @retrying('store ping', OperationalError, _rollback)
    def ping(self) -> bool:
        db.session.execute(text('SELECT 1'))
        return True

    # -- users ---------------------------------------------------------------

    def get_user(self, username: str) -> Optional[User]:
        return User.query.filter_by(username=username).first()

    @retrying('create or fetch user', OperationalError, _rollback)
    def create_or_get_user(self, username: str, email: Optional[str] = None,
                           display_name: Optional[str] = None) -> User:
        """Idempotent on the unique username: a concurrent insert of the same
        name loses on the constraint and reads the winner's row."""
        user = self.get_user(username)
        if user is not None:
            return user
        user = User(username=username, email=email, display_name=display_name or username)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            user = self.get_user(username)
            if user is None:
                raise
        return user

    @retrying('upsert user', OperationalError, _rollback)
    def upsert_user(self, username: str, email: Optional[str] = None,
                    display_name: Optional[str] = None) -> Tuple[User, bool]:
        user = self.get_user(username)
        created = user is None
        if created:
            user = User(username=username)
            db.session.add(user)
        if email is not None:
            user.email = email
        if display_name is not None:
            user.display_name = display_name
        elif created:
            user.display_name = username
        db.session.commit()
        return user, created

    # -- games -----------------------------------------------------------------

    def get_game(self, game_id: str) -> Optional[Game]:
        return db.session.get(Game, game_id)

    @retrying('create game', OperationalError, _rollback)
    def create_game(self, game_id: str, user: User, difficulty: str, game_data: dict) -> Game:
        game = Game(
            id=game_id,
            user_id=user.id,
            username=user.username,
            difficulty_level=difficulty,
            game_data=game_data,
        )
        db.session.add(game)
        db.session.commit()
        return game

    @retrying('record match', OperationalError, _rollback)
    def record_progress(self, game_id: str, moves: int, score: int, cards_matched: int,
                        event: Optional[MatchEvent] = None) -> None:
        """Append ``event`` to the match log and mirror the running totals on the game row."""
        if event is not None:
            db.session.add(GameMatch(
                game_id=game_id,
                card1_id=event.card1_id,
                card2_id=event.card2_id,
                match_time=event.match_time,
                points_earned=event.points_earned,
                bonus_points=event.bonus_points,
            ))
        db.session.execute(
            update(Game)
            .where(Game.id == game_id, Game.game_completed.is_(False))
            .values(moves=moves, score=score, cards_matched=cards_matched)
        )
        db.session.commit()

    @retrying('complete game', OperationalError, _rollback)
    def complete_game(self, game_id: str, final_score: int, moves: int, time_elapsed: int,
                      cards_matched: int, game_data: Optional[dict] = None) -> bool:
        """Finalize the game row and fold it into the player's aggregates.

        Both happen in one transaction. Returns False, changing nothing, when
        the row was already completed.
        """
        now = utcnow()
        values = dict(
            score=final_score,
            moves=moves,
            time_elapsed=time_elapsed,
            cards_matched=cards_matched,
            game_completed=True,
            completed_at=now,
        )
        if game_data is not None:
            values['game_data'] = game_data
        result = db.session.execute(
            update(Game)
            .where(Game.id == game_id, Game.game_completed.is_(False))
            .values(**values)
        )
        if result.rowcount == 0:
            db.session.rollback()
            logger.info(f"[store] game {game_id} was already completed")
            return False

        game = db.session.get(Game, game_id)
        user = db.session.get(User, game.user_id)
        user.total_games = (user.total_games or 0) + 1
        user.total_score = (user.total_score or 0) + final_score
        if final_score > (user.best_score or 0):
            user.best_score = final_score
        if user.best_time is None or time_elapsed < user.best_time:
            user.best_time = time_elapsed
        user.last_played = now
        db.session.commit()
        return True

    def recent_games(self, username: str, limit: int = 10, offset: int = 0) -> Tuple[List[Game], int]:
        query = Game.query.filter_by(username=username, game_completed=True)
        total = query.count()
        games = (query.order_by(Game.completed_at.desc())
                 .offset(offset).limit(limit).all())
        return games, total

    # -- per-user statistics -------------------------------------------------

    def user_rank(self, user: User) -> Optional[int]:
        if not user.total_games:
            return None
        faster = User.best_time.isnot(None)
        if user.best_time is not None:
            faster = and_(faster, User.best_time < user.best_time)
        ahead = (User.query
                 .filter(User.is_active.is_(True), User.total_games > 0)
                 .filter(or_(User.best_score > user.best_score,
                             and_(User.best_score == user.best_score, faster)))
                 .count())
        return ahead + 1

    def game_summary(self, username: str) -> dict:
        completed = Game.query.filter_by(username=username, game_completed=True)
        row = completed.with_entities(
            func.count(Game.id),
            func.coalesce(func.sum(Game.cards_matched), 0),
            func.coalesce(func.sum(Game.moves), 0),
            func.avg(Game.time_elapsed),
        ).one()
        games, matched, moves, avg_time = row
        perfect = completed.filter(Game.moves == Game.cards_matched).count()
        favourite = (completed
                     .with_entities(Game.difficulty_level, func.count(Game.id))
                     .group_by(Game.difficulty_level)
                     .order_by(func.count(Game.id).desc())
                     .first())
        return {
            'completedGames': int(games or 0),
            'accuracy': round(matched / moves * 100, 1) if moves else 0.0,
            'averageTime': int(avg_time) if avg_time is not None else None,
            'perfectGames': perfect,
            'favoriteDifficulty': favourite[0] if favourite else None,
        }

    # -- leaderboard -----------------------------------------------------------

    def _ranked_players(self):
        return (User.query
                .filter(User.is_active.is_(True), User.total_games > 0)
                .order_by(User.best_score.desc(), User.best_time.is_(None), User.best_time.asc(),
                          User.username.asc()))

    @staticmethod
    def _player_row(rank: int, user: User) -> dict:
        return {
            'rank': rank,
            'username': user.username,
            'displayName': user.display_name or user.username,
            'bestScore': user.best_score,
            'bestTime': user.best_time,
            'totalGames': user.total_games,
            'averageScore': user.avg_score,
            'lastPlayed': user.last_played.isoformat() if user.last_played else None,
        }

    @retrying('load leaderboard', OperationalError, _rollback)
    def leaderboard(self, limit: int = 10, timeframe: str = 'all', offset: int = 0) -> List[dict]:
        window = TIMEFRAMES[timeframe]
        if window is None:
            players = self._ranked_players().offset(offset).limit(limit).all()
            return [self._player_row(offset + i + 1, u) for i, u in enumerate(players)]

        since = utcnow() - window
        best_score = func.max(Game.score).label('best_score')
        best_time = func.min(Game.time_elapsed).label('best_time')
        rows = (db.session.query(
                    Game.username,
                    best_score,
                    best_time,
                    func.count(Game.id).label('games'),
                    func.avg(Game.score).label('avg_score'),
                    func.max(Game.completed_at).label('last_played'),
                )
                .filter(Game.game_completed.is_(True), Game.completed_at >= since)
                .group_by(Game.username)
                .order_by(best_score.desc(), best_time.asc(), Game.username.asc())
                .offset(offset).limit(limit).all())
        result = []
        for i, row in enumerate(rows):
            last_played = row.last_played
            result.append({
                'rank': offset + i + 1,
                'username': row.username,
                'displayName': row.username,
                'bestScore': int(row.best_score or 0),
                'bestTime': row.best_time,
                'totalGames': int(row.games),
                'averageScore': round(float(row.avg_score or 0), 2),
                'lastPlayed': last_played.isoformat() if last_played else None,
            })
        return result

    def ranked_player_count(self) -> int:
        return User.query.filter(User.is_active.is_(True), User.total_games > 0).count()

    def rank_context(self, user: User, context: int = 5) -> dict:
        rank = self.user_rank(user)
        if rank is None:
            return {'rank': None, 'nearby': []}
        start = max(0, rank - 1 - context)
        nearby = self.leaderboard(limit=context * 2 + 1, offset=start)
        for row in nearby:
            row['isCurrentUser'] = row['username'] == user.username
        return {'rank': rank, 'nearby': nearby}

    @retrying('load leaderboard stats', OperationalError, _rollback)
    def leaderboard_stats(self) -> dict:
        completed = Game.query.filter(Game.game_completed.is_(True))
        overall = completed.with_entities(
            func.count(Game.id),
            func.count(func.distinct(Game.username)),
            func.avg(Game.score),
            func.max(Game.score),
            func.min(Game.time_elapsed),
            func.avg(Game.time_elapsed),
        ).one()
        by_difficulty = {}
        rows = (completed.with_entities(
                    Game.difficulty_level,
                    func.count(Game.id),
                    func.avg(Game.score),
                    func.max(Game.score),
                    func.avg(Game.time_elapsed),
                    func.min(Game.time_elapsed),
                )
                .group_by(Game.difficulty_level).all())
        for difficulty, games, avg_score, best_score, avg_time, fastest in rows:
            by_difficulty[difficulty] = {
                'games': int(games),
                'averageScore': round(float(avg_score or 0), 2),
                'bestScore': int(best_score or 0),
                'averageTime': int(avg_time) if avg_time is not None else None,
                'fastestTime': fastest,
            }
        total_games, players, avg_score, high_score, fastest, avg_time = overall
        in_progress = Game.query.filter(Game.game_completed.is_(False)).count()
        started = int(total_games or 0) + in_progress
        top = self._ranked_players().first()
        return {
            'overall': {
                'totalPlayers': User.query.filter(User.total_games > 0).count(),
                'activePlayers': int(players or 0),
                'totalGames': int(total_games or 0),
                'averageScore': round(float(avg_score or 0), 2),
                'highestScore': int(high_score or 0),
                'fastestTime': fastest,
                'averageTime': int(avg_time) if avg_time is not None else None,
                'gamesInProgress': in_progress,
                'completionRate': round(int(total_games or 0) / started * 100, 1) if started else 0.0,
            },
            'byDifficulty': by_difficulty,
            'records': {
                'topPlayer': top.username if top else None,
                'topScore': top.best_score if top else 0,
            },
        }
