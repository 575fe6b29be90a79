"""Session lifecycle: start -> match* -> complete.

The orchestrator itself is stateless. During play the cached session is the
authoritative copy; the relational store keeps the game row, the append-only
match log and, once completed, the final result.
"""
import logging
import random
import time
import uuid
from typing import Callable, Iterable, Optional

from memory_game.errors import (
    AlreadyCompletedError,
    AlreadyMatchedError,
    ConcurrentUpdateError,
    InvalidCardError,
    SessionNotFoundError,
    TransientStoreError,
)
from memory_game.services.achievements import game_achievements
from .content import (
    ANIMATION,
    DIFFICULTIES,
    generate_deck,
    get_tier,
    random_failure_message,
    random_success_message,
)
from .scoring import calculate_score, longest_streak
from .state import MatchEvent, SessionState

logger = logging.getLogger(__name__)


class GameSessionService:

    def __init__(self, store, cache, metrics=None, clock: Callable[[], float] = time.time,
                 rng: Optional[random.Random] = None):
        self.store = store
        self.cache = cache
        self.metrics = metrics
        self.clock = clock
        self.rng = rng

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    # -- lookups ---------------------------------------------------------------

    def _load_active(self, game_id: str) -> SessionState:
        """Cached session that still accepts moves.

        On a cache miss the store decides between "already finished" and
        "expired"; no session state is rebuilt from it.
        """
        state = self.cache.get_session(game_id)
        if state is None:
            game = self.store.get_game(game_id)
            if game is not None and game.game_completed:
                raise AlreadyCompletedError()
            logger.info(f"[cache-miss] session {game_id} expired or unknown")
            raise SessionNotFoundError()
        if state.is_completed:
            raise AlreadyCompletedError()
        return state

    def snapshot(self, game_id: str) -> dict:
        state = self.cache.get_session(game_id)
        if state is not None:
            return {'game': state.to_public_dict(), 'config': get_tier(state.difficulty).to_dict()}

        game = self.store.get_game(game_id)
        if game is None:
            raise SessionNotFoundError("This game doesn't exist")
        # Cards and flip state are not persisted; only the row totals survive.
        view = {
            'gameId': game.id,
            'userId': game.user_id,
            'username': game.username,
            'difficulty': game.difficulty_level,
            'score': game.score,
            'moves': game.moves,
            'matchesFound': game.cards_matched,
            'isCompleted': game.game_completed,
            'startTime': game.started_at.isoformat() if game.started_at else None,
            'completedAt': game.completed_at.isoformat() if game.completed_at else None,
            'source': 'store',
        }
        tier = DIFFICULTIES.get(game.difficulty_level, DIFFICULTIES['easy'])
        view['totalPairs'] = tier.pair_count
        return {'game': view, 'config': tier.to_dict()}

    # -- transitions -----------------------------------------------------------

    def start(self, username: str, difficulty: str = 'easy',
              categories: Optional[Iterable[str]] = None) -> dict:
        tier = get_tier(difficulty)
        categories = list(categories) if categories else None
        cards = generate_deck(difficulty, categories, rng=self.rng)

        user = self.store.create_or_get_user(username)
        game_id = str(uuid.uuid4())
        started = self._now_ms()
        game = self.store.create_game(game_id, user, difficulty, game_data={
            'difficulty': difficulty,
            'categories': categories,
            'cards': len(cards),
            'startTime': started,
        })

        state = SessionState(
            game_id=game_id,
            user_id=user.id,
            username=user.username,
            difficulty=difficulty,
            categories=categories,
            cards=cards,
            start_time=started,
        )
        self.cache.create_session(state)

        self.cache.increment_daily_games()
        self.cache.track_activity(user.username, 'game_start')
        if self.metrics is not None:
            self.metrics.game_started(difficulty)
        logger.info(f"[start] {difficulty} game {game_id} started by {user.username}")

        return {
            'game': {
                'gameId': game_id,
                'difficulty': difficulty,
                'cards': [card.to_public_dict() for card in cards],
                'config': tier.to_dict(),
                'startTime': game.started_at.isoformat() if game.started_at else None,
                'successMessage': random_success_message(self.rng),
            },
            'user': {
                'id': user.id,
                'username': user.username,
                'displayName': user.display_name or user.username,
            },
        }

    def match(self, game_id: str, card1_id: str, card2_id: str,
              match_time: Optional[int] = None) -> dict:
        """Submit one pairing attempt.

        Rejected submissions (unknown card, same card twice, card already
        matched) leave the session untouched, move counter included. Every
        accepted attempt, hit or miss, adds exactly one move.
        """
        state = self._load_active(game_id)

        card1 = state.find_card(card1_id)
        card2 = state.find_card(card2_id)
        if card1 is None or card2 is None:
            raise InvalidCardError()
        if card1_id == card2_id:
            raise InvalidCardError('A card cannot be matched with itself')
        if card1.is_matched or card2.is_matched:
            raise AlreadyMatchedError()

        tier = get_tier(state.difficulty)
        is_match = card1.pair_id == card2.pair_id
        points = bonus = 0
        event = None
        if is_match:
            points = tier.points_per_match
            if match_time is not None and match_time < tier.bonus_time_threshold:
                bonus = tier.bonus_points
            for card in (card1, card2):
                card.is_matched = True
                card.is_flipped = True
            event = MatchEvent(
                card1_id=card1_id,
                card2_id=card2_id,
                match_time=match_time or 0,
                points_earned=points,
                bonus_points=bonus,
                timestamp=self._now_ms(),
            )
            state.matches.append(event)
            state.score += points + bonus
        state.moves += 1

        # Match log first; a store failure leaves the cached session untouched
        self.store.record_progress(game_id, state.moves, state.score, state.matched_pairs, event)
        try:
            self.cache.save_session(state)
        except ConcurrentUpdateError:
            logger.warning(f"[match] game {game_id}: move {state.moves} logged but lost the session race")
            raise

        self.cache.track_activity(state.username, 'match_attempt')
        if self.metrics is not None:
            self.metrics.match_attempt(state.difficulty, 'match' if is_match else 'miss')

        complete = state.all_pairs_matched
        logger.info(
            f"[match] {state.username} {card1.emoji} + {card2.emoji} = {'SUCCESS' if is_match else 'MISS'} "
            f"game={game_id} moves={state.moves}"
        )

        response = {
            'isMatch': is_match,
            'pointsEarned': points + bonus,
            'movesCount': state.moves,
            'message': random_success_message(self.rng) if is_match else random_failure_message(self.rng),
            'game': {
                'gameId': game_id,
                'score': state.score,
                'moves': state.moves,
                'matchesFound': state.matched_pairs,
                'totalPairs': state.total_pairs,
                'isComplete': complete,
            },
            'cards': [card1.to_revealed_dict(), card2.to_revealed_dict()],
            'match': None,
        }
        if is_match:
            response['match'] = {
                'card1': {'id': card1.id, 'emoji': card1.emoji, 'name': card1.name},
                'card2': {'id': card2.id, 'emoji': card2.emoji, 'name': card2.name},
                'pointsEarned': points,
                'bonusPoints': bonus,
                'isSpeedBonus': bonus > 0,
                'matchTime': match_time,
            }
        else:
            response['hideAfterMs'] = ANIMATION['mismatchHideDelay']
        if complete:
            response['message'] = f"🎉 Congratulations! Game completed! Final score: {state.score}! 🏆"
            response['completionBonus'] = {
                'message': 'Amazing memory skills! 🧠✨',
                'suggestion': 'Ready for the next challenge? 🚀',
            }
        return response

    def complete(self, game_id: str, time_elapsed: Optional[int] = None) -> dict:
        """Finalize the session.

        The store row is completed first, guarded so only one caller can
        win. The cached copy is then flagged; if that write loses a race the
        entry is dropped so later reads fall back to the store.
        """
        state = self._load_active(game_id)
        tier = get_tier(state.difficulty)

        now = self._now_ms()
        elapsed = time_elapsed if time_elapsed is not None else max(0, now - state.start_time)
        matches = state.matched_pairs
        wrong_moves = max(0, state.moves - matches)
        streak = longest_streak(state.matches)
        result = calculate_score(matches, wrong_moves, elapsed, tier, streak)

        finished = self.store.complete_game(
            game_id,
            final_score=result.total,
            moves=state.moves,
            time_elapsed=elapsed,
            cards_matched=matches,
            game_data={
                'difficulty': state.difficulty,
                'categories': state.categories,
                'cards': len(state.cards),
                'startTime': state.start_time,
                'breakdown': result.breakdown.to_dict(),
                'longestStreak': streak,
            },
        )
        if not finished:
            raise AlreadyCompletedError()

        state.is_completed = True
        state.final_score = result.total
        state.completed_at = now
        try:
            self.cache.save_session(state)
        except ConcurrentUpdateError:
            logger.warning(f"[complete] session {game_id} changed during completion, dropping cached copy")
            try:
                self.cache.delete(self.cache.session_key(game_id))
            except TransientStoreError as exc:
                logger.warning(f"[complete] could not drop cached session {game_id}: {exc}")
        except TransientStoreError as exc:
            logger.warning(f"[complete] game {game_id} stored but cache not updated: {exc}")

        self.cache.invalidate_after_completion(state.username)
        self.cache.track_activity(state.username, 'game_complete')
        if self.metrics is not None:
            self.metrics.game_completed(state.difficulty, result.total, elapsed)
        logger.info(f"[complete] game {game_id} by {state.username}: score={result.total} time={elapsed}ms")

        accuracy = round(matches / state.moves * 100, 1) if state.moves else 0.0
        return {
            'gameResult': {
                'gameId': game_id,
                'finalScore': result.total,
                'scoreBreakdown': result.breakdown.to_dict(),
                'performance': result.rating,
                'timeElapsed': elapsed,
                'totalMoves': state.moves,
                'matchesFound': matches,
                'longestStreak': streak,
                'accuracy': accuracy,
                'difficulty': state.difficulty,
            },
            'achievements': game_achievements(result.breakdown, state.moves, matches),
            'nextSteps': {
                'playAgain': 'Ready for another round? 🎮',
                'leaderboard': 'Check the leaderboard to see your rank! 🏆',
                'difficulty': ('Try medium difficulty for more challenge! 💪' if state.difficulty == 'easy'
                               else "You're getting good at this! 🌟"),
            },
        }
