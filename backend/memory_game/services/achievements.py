"""Achievements, levels and badges.

Everything here is a pure projection over finished games and player
aggregates; nothing is stored.
"""
import datetime as dt
import random
from typing import List, Optional

from .games.scoring import ScoreBreakdown

LEVEL_THRESHOLDS = (100, 150, 200, 250, 300)

PERFORMANCE_LEVELS = (
    (300, 'Memory Master', '🧠', '#FFD700'),
    (250, 'Expert', '🏆', '#C0C0C0'),
    (200, 'Advanced', '⭐', '#CD7F32'),
    (150, 'Intermediate', '🎯', '#4169E1'),
    (100, 'Beginner', '🌱', '#32CD32'),
    (0, 'Rookie', '🎮', '#808080'),
)

MOTIVATION = {
    'rookie': (
        '🌱 Every expert was once a beginner! Keep playing!',
        "🎮 You're just getting started - the fun is ahead!",
        '🚀 Great start! Your memory skills are developing!',
    ),
    'beginner': (
        "🎯 You're making progress! Keep up the good work!",
        '💪 Your memory is getting stronger with each game!',
        "⭐ Nice improvement! You're on the right track!",
    ),
    'intermediate': (
        "🔥 You're getting good at this! Keep the momentum!",
        "🎪 Impressive skills! You're becoming a memory pro!",
        "🌟 Excellent progress! You're in the intermediate league!",
    ),
    'advanced': (
        "🏆 Outstanding performance! You're almost a master!",
        '💎 Your memory skills are truly impressive!',
        "🚀 You're reaching expert levels! Keep pushing!",
    ),
    'expert': (
        '🧠 Memory Master level achieved! Incredible!',
        "👑 You're among the elite players! Amazing work!",
        "🌟 Legendary performance! You're inspiring others!",
    ),
}


def _achievement(id_, title, description, icon, rarity, unlocked_at=None):
    entry = {
        'id': id_,
        'title': title,
        'description': description,
        'icon': icon,
        'rarity': rarity,
    }
    if unlocked_at is not None:
        entry['unlockedAt'] = unlocked_at
    return entry


def game_achievements(breakdown: ScoreBreakdown, moves: int, matches: int) -> List[dict]:
    earned = []
    if breakdown.perfect_game_bonus > 0:
        earned.append(_achievement('perfect_memory', 'Perfect Memory! 🧠',
                                   'Completed without any wrong moves!', '🏆', 'legendary'))
    if breakdown.speed_bonus > 0:
        earned.append(_achievement('speed_demon', 'Speed Demon! ⚡',
                                   'Completed in record time!', '🚀', 'rare'))
    if breakdown.streak_bonus > 0:
        earned.append(_achievement('streak_master', 'Streak Master! 🔥',
                                   'Amazing consecutive matches!', '🌟', 'epic'))
    if moves <= matches + 2:
        earned.append(_achievement('sharp_mind', 'Sharp Mind! 🎯',
                                   'Excellent accuracy on this game!', '💎', 'uncommon'))
    return earned


def user_achievements(total_games: int, best_score: int, best_time: Optional[int],
                      rank: Optional[int], perfect_games: int,
                      last_played: Optional[str] = None) -> List[dict]:
    """Milestones unlocked by a player's aggregates."""
    checks = (
        (total_games >= 10, 'ten_games', 'Getting Warmed Up! 🔥', 'Played 10 games', '🎯', 'common'),
        (total_games >= 50, 'fifty_games', 'Memory Enthusiast! 🤓', 'Played 50 games', '🏅', 'uncommon'),
        (total_games >= 100, 'hundred_games', 'Memory Addict! 🧠', 'Played 100 games', '🏆', 'rare'),
        (best_score >= 100, 'score_100', 'Century Club! 💯',
         'Scored 100 points in a single game', '💯', 'common'),
        (best_score >= 200, 'score_200', 'Double Century! 🎊',
         'Scored 200 points in a single game', '🌟', 'uncommon'),
        (best_score >= 300, 'score_300', 'Memory Master! 👑',
         'Scored 300 points in a single game', '👑', 'legendary'),
        (best_time is not None and best_time <= 60000, 'speed_demon', 'Speed Demon! ⚡',
         'Completed a game in under 1 minute', '⚡', 'rare'),
        (best_time is not None and best_time <= 30000, 'lightning_fast', 'Lightning Fast! 🌩️',
         'Completed a game in under 30 seconds', '🌩️', 'legendary'),
        (rank is not None and rank <= 10, 'top_ten', 'Top 10 Player! 🏆',
         'Reached the top 10 on the leaderboard', '🏆', 'epic'),
        (rank is not None and rank <= 3, 'podium', 'Podium Finisher! 🥇',
         'Reached the top 3 on the leaderboard', '🥇', 'legendary'),
        (rank == 1, 'champion', 'Champion! 👑', 'Reached #1 on the leaderboard', '👑', 'legendary'),
        (perfect_games > 0, 'perfect_game', 'Flawless Victory! 💎',
         'Completed a game with perfect accuracy', '💎', 'epic'),
    )
    return [
        _achievement(id_, title, description, icon, rarity, last_played)
        for unlocked, id_, title, description, icon, rarity in checks
        if unlocked
    ]


def performance_level(best_score: int) -> dict:
    for floor, level, emoji, color in PERFORMANCE_LEVELS:
        if best_score >= floor:
            return {'level': level, 'emoji': emoji, 'color': color}
    return {'level': 'Rookie', 'emoji': '🎮', 'color': '#808080'}


def progress_to_next_level(best_score: int) -> dict:
    upcoming = [level for level in LEVEL_THRESHOLDS if level > best_score]
    if not upcoming:
        return {'isMaxLevel': True, 'message': "You've reached the highest level! 👑"}
    next_level = upcoming[0]
    index = LEVEL_THRESHOLDS.index(next_level)
    previous = LEVEL_THRESHOLDS[index - 1] if index > 0 else 0
    progress = (best_score - previous) / (next_level - previous) * 100
    return {
        'isMaxLevel': False,
        'currentLevel': previous,
        'nextLevel': next_level,
        'progress': round(max(0.0, min(100.0, progress)), 1),
        'pointsNeeded': next_level - best_score,
    }


def motivation_tier(best_score: int) -> str:
    if best_score >= 300:
        return 'expert'
    if best_score >= 200:
        return 'advanced'
    if best_score >= 150:
        return 'intermediate'
    if best_score >= 100:
        return 'beginner'
    return 'rookie'


def motivational_message(best_score: int, rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(MOTIVATION[motivation_tier(best_score)])


def player_badge(score: int, rank: int) -> dict:
    if rank == 1:
        return {'emoji': '👑', 'title': 'Champion', 'color': '#FFD700'}
    if rank == 2:
        return {'emoji': '🥈', 'title': '2nd Place', 'color': '#C0C0C0'}
    if rank == 3:
        return {'emoji': '🥉', 'title': '3rd Place', 'color': '#CD7F32'}
    if rank <= 10:
        return {'emoji': '🏆', 'title': 'Top 10', 'color': '#4169E1'}
    if rank <= 25:
        return {'emoji': '⭐', 'title': 'Top 25', 'color': '#32CD32'}
    if score >= 300:
        return {'emoji': '🧠', 'title': 'Memory Master', 'color': '#9932CC'}
    if score >= 250:
        return {'emoji': '🎯', 'title': 'Expert', 'color': '#FF6347'}
    if score >= 200:
        return {'emoji': '🎪', 'title': 'Advanced', 'color': '#FF8C00'}
    if score >= 150:
        return {'emoji': '🎮', 'title': 'Skilled', 'color': '#20B2AA'}
    if score >= 100:
        return {'emoji': '🌱', 'title': 'Rising Star', 'color': '#90EE90'}
    return {'emoji': '🎲', 'title': 'Player', 'color': '#808080'}


def leaderboard_rating(score: int) -> dict:
    if score >= 300:
        return {'level': 'Legendary', 'color': '#FFD700'}
    if score >= 250:
        return {'level': 'Excellent', 'color': '#C0C0C0'}
    if score >= 200:
        return {'level': 'Great', 'color': '#CD7F32'}
    if score >= 150:
        return {'level': 'Good', 'color': '#4169E1'}
    if score >= 100:
        return {'level': 'Average', 'color': '#32CD32'}
    return {'level': 'Beginner', 'color': '#808080'}


def is_recently_active(last_played: Optional[str], now: Optional[dt.datetime] = None) -> bool:
    if not last_played:
        return False
    played = dt.datetime.fromisoformat(last_played)
    if played.tzinfo is None:
        played = played.replace(tzinfo=dt.timezone.utc)
    now = now or dt.datetime.now(dt.timezone.utc)
    return (now - played) <= dt.timedelta(days=7)


def decorate_leaderboard(rows: List[dict]) -> List[dict]:
    for row in rows:
        row['badge'] = player_badge(row['bestScore'], row['rank'])
        row['performance'] = leaderboard_rating(row['bestScore'])
        row['isRecentlyActive'] = is_recently_active(row.get('lastPlayed'))
    return rows


def insights(stats: dict) -> List[str]:
    """Human-readable remarks over the aggregate leaderboard stats."""
    notes = []
    overall = stats.get('overall') or {}
    if overall.get('totalGames'):
        rate = overall.get('completionRate', 0.0)
        if rate >= 90:
            notes.append('🎯 Excellent completion rate! Players are really engaged!')
        elif rate >= 70:
            notes.append('👍 Good completion rate! Most players finish their games.')
        else:
            notes.append('📈 Room for improvement in game completion rates.')
    by_difficulty = stats.get('byDifficulty') or {}
    if by_difficulty:
        popular, data = max(by_difficulty.items(), key=lambda item: item[1]['games'])
        notes.append(f"🎮 Most popular difficulty: {popular} ({data['games']} games)")
    records = stats.get('records') or {}
    if overall.get('highestScore', 0) >= 300:
        notes.append(f"🏆 Incredible high score of {overall['highestScore']} points by {records.get('topPlayer')}!")
    fastest = overall.get('fastestTime')
    if fastest is not None and fastest < 60000:
        notes.append(f"⚡ Lightning fast completion in {fastest / 1000:.1f}s!")
    if overall.get('activePlayers', 0) >= 5:
        notes.append(f"🔥 Active community with {overall['activePlayers']} players!")
    if not notes:
        notes.append('🌱 The leaderboard is just getting started. Be the first to set a record!')
    return notes
