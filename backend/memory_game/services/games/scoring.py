import math
from dataclasses import dataclass
from typing import Iterable, Optional

from .content import SCORING, TierConfig
from .state import MatchEvent


@dataclass
class ScoreBreakdown:
    base_score: int = 0
    speed_bonus: int = 0
    perfect_game_bonus: int = 0
    streak_bonus: int = 0
    penalties: int = 0

    def to_dict(self):
        return {
            'baseScore': self.base_score,
            'speedBonus': self.speed_bonus,
            'perfectGameBonus': self.perfect_game_bonus,
            'streakBonus': self.streak_bonus,
            'penalties': self.penalties,
        }


@dataclass
class ScoreResult:
    total: int
    breakdown: ScoreBreakdown
    rating: dict

    def to_dict(self):
        return {
            'totalScore': self.total,
            'breakdown': self.breakdown.to_dict(),
            'rating': self.rating,
        }


RATING_BUCKETS = (
    (90, 'Legendary', '🏆', 'Memory Master!'),
    (80, 'Excellent', '⭐', 'Outstanding!'),
    (70, 'Great', '🎯', 'Well done!'),
    (60, 'Good', '👍', 'Nice job!'),
    (50, 'Average', '😊', 'Keep trying!'),
    (0, 'Practice', '💪', "You'll get it!"),
)


def max_possible_score(tier: TierConfig) -> int:
    return tier.pair_count * tier.points_per_match + tier.bonus_points + SCORING.perfect_game_bonus


def performance_rating(total: int, tier: TierConfig) -> dict:
    """Map a score to a rating bucket by its share of the tier maximum."""
    percentage = min(100.0, total / max_possible_score(tier) * 100)
    bucket = RATING_BUCKETS[-1]
    for candidate in RATING_BUCKETS:
        if percentage >= candidate[0]:
            bucket = candidate
            break
    _, level, emoji, message = bucket
    return {
        'level': level,
        'emoji': emoji,
        'message': message,
        'percentage': round(percentage, 1),
    }


def calculate_score(match_count: int, wrong_moves: int, elapsed_ms: int,
                    tier: TierConfig, streak: int = 0) -> ScoreResult:
    """Final score for a finished session. Pure; same inputs, same result."""
    breakdown = ScoreBreakdown()
    total = 0

    breakdown.base_score = match_count * tier.points_per_match
    total += breakdown.base_score

    # Finished in under half the time limit
    if elapsed_ms < tier.time_limit * 0.5:
        breakdown.speed_bonus = math.floor(breakdown.base_score * SCORING.speed_bonus_multiplier)
        total += breakdown.speed_bonus

    if wrong_moves == 0:
        breakdown.perfect_game_bonus = SCORING.perfect_game_bonus
        total += breakdown.perfect_game_bonus

    if streak >= 3:
        breakdown.streak_bonus = min(streak * SCORING.streak_bonus, SCORING.max_streak_bonus)
        total += breakdown.streak_bonus

    # Two free mistakes, then 2 points each
    breakdown.penalties = max(0, wrong_moves - 2) * 2
    total -= breakdown.penalties

    total = max(0, total)
    return ScoreResult(total=total, breakdown=breakdown, rating=performance_rating(total, tier))


def longest_streak(matches: Iterable[MatchEvent], gap_ms: Optional[int] = None) -> int:
    """Longest run of matches each within ``gap_ms`` of the previous one."""
    gap_ms = SCORING.streak_gap_ms if gap_ms is None else gap_ms
    ordered = sorted(matches, key=lambda m: m.timestamp)
    if not ordered:
        return 0
    best = current = 1
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.timestamp - prev.timestamp <= gap_ms:
            current += 1
            best = max(best, current)
        else:
            current = 1
    return best
