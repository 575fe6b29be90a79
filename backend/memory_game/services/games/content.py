"""Card catalogue, difficulty tiers and deck generation."""
import datetime as dt
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from memory_game.errors import ConfigurationError
from .state import Card


@dataclass(frozen=True)
class CardTemplate:
    id: str
    emoji: str
    name: str
    category: str


@dataclass(frozen=True)
class TierConfig:
    name: str
    card_count: int
    time_limit: int  # ms
    points_per_match: int
    bonus_time_threshold: int  # ms
    bonus_points: int
    grid_size: str

    @property
    def pair_count(self) -> int:
        return self.card_count // 2

    def to_dict(self):
        return {
            'cardCount': self.card_count,
            'timeLimit': self.time_limit,
            'pointsPerMatch': self.points_per_match,
            'bonusTimeThreshold': self.bonus_time_threshold,
            'bonusPoints': self.bonus_points,
            'gridSize': self.grid_size,
        }


@dataclass(frozen=True)
class ScoringConstants:
    perfect_game_bonus: int = 50
    speed_bonus_multiplier: float = 1.5
    streak_bonus: int = 3
    max_streak_bonus: int = 30
    streak_gap_ms: int = 30000


CARD_TEMPLATES = (
    CardTemplate('laughing', '😂', 'Crying Laugh', 'classic'),
    CardTemplate('wink', '😉', 'Winking Face', 'classic'),
    CardTemplate('cool', '😎', 'Cool Dude', 'classic'),
    CardTemplate('heart_eyes', '😍', 'Heart Eyes', 'love'),
    CardTemplate('thinking', '🤔', 'Thinking Face', 'thoughtful'),
    CardTemplate('upside_down', '🙃', 'Upside Down', 'silly'),
    CardTemplate('rolling_eyes', '🙄', 'Eye Roll', 'sassy'),
    CardTemplate('zany', '🤪', 'Zany Face', 'silly'),
    CardTemplate('robot', '🤖', 'Robot Face', 'tech'),
    CardTemplate('ghost', '👻', 'Friendly Ghost', 'spooky'),
    CardTemplate('alien', '👽', 'Alien Friend', 'space'),
    CardTemplate('unicorn', '🦄', 'Magical Unicorn', 'fantasy'),
    CardTemplate('pizza', '🍕', 'Pizza Slice', 'food'),
    CardTemplate('taco', '🌮', 'Taco Tuesday', 'food'),
    CardTemplate('donut', '🍩', 'Donut Delight', 'food'),
    CardTemplate('rainbow', '🌈', 'Rainbow Magic', 'nature'),
    CardTemplate('rocket', '🚀', 'Blast Off', 'space'),
    CardTemplate('guitar', '🎸', 'Rock Star', 'music'),
    CardTemplate('sunglasses', '🕶️', 'Shades', 'cool'),
    CardTemplate('party', '🎉', 'Party Time', 'celebration'),
    CardTemplate('detective', '🕵️', 'Detective', 'mystery'),
    CardTemplate('ninja', '🥷', 'Stealth Ninja', 'action'),
    CardTemplate('pirate', '🏴‍☠️', 'Pirate Flag', 'adventure'),
    CardTemplate('fire', '🔥', 'On Fire', 'hot'),
    CardTemplate('lightning', '⚡', 'Lightning Bolt', 'energy'),
    CardTemplate('star', '⭐', 'Superstar', 'space'),
    CardTemplate('diamond', '💎', 'Precious Diamond', 'luxury'),
    CardTemplate('crown', '👑', 'Royal Crown', 'luxury'),
    CardTemplate('trophy', '🏆', 'Victory Trophy', 'achievement'),
    CardTemplate('magic_wand', '🪄', 'Magic Wand', 'fantasy'),
)

DIFFICULTIES: Dict[str, TierConfig] = {
    'easy': TierConfig('easy', 16, 300000, 10, 10000, 5, '4x4'),
    'medium': TierConfig('medium', 20, 480000, 15, 8000, 8, '5x4'),
    'hard': TierConfig('hard', 24, 600000, 20, 6000, 12, '6x4'),
    'expert': TierConfig('expert', 30, 900000, 25, 5000, 15, '6x5'),
}

SCORING = ScoringConstants()

ANIMATION = {
    'cardFlipDuration': 300,
    'matchSuccessDelay': 800,
    'mismatchHideDelay': 1500,
    'celebrationDuration': 2000,
}

SUCCESS_MESSAGES = (
    '🎉 Perfect match! Your memory is on fire! 🔥',
    "💫 Brilliant! You're basically a memory wizard! 🧙‍♂️",
    '🏆 Match made in heaven! Well, actually in your brain! 🧠',
    '⚡ Lightning fast! The cards are trembling! 😱',
    '🎯 Bulls-eye! Your memory skills are legendary! 📜',
    '🚀 To the moon! That match was astronomical! 🌙',
    "🔥 Hot streak! You're unstoppable! 💪",
    '💎 Diamond quality match! Sparkling performance! ✨',
    '🎪 Circus-level skills! The crowd goes wild! 👏',
    '🎨 Masterpiece! Picasso would be proud! 🖼️',
    '🎵 Music to our ears! That match was pitch perfect! 🎶',
    '🌟 Star quality! Hollywood is calling! 📞',
)

FAILURE_MESSAGES = (
    '🤔 Oops! Those cards are just friends, not twins! 👯‍♀️',
    '😅 So close! But no cigar... or match! 🚭',
    '🙈 Miss! Even the cards are giggling! 🤭',
    "🎯 Almost! You're getting warmer... well, lukewarm! 🌡️",
    '🔍 Detective mode needed! Those cards are hiding! 🕵️‍♀️',
    '🍀 Better luck next flip! The cards are feeling shy! 😊',
    '🎲 Roll again! Fortune favors the persistent! 🔄',
    "🎈 Pop! That wasn't a match, but don't deflate! 🎈",
    '🐾 Paws for thought... try a different pair! 🐱',
    '🚂 All aboard the try-again train! Choo choo! 🚂',
)

DAILY_SPECIAL_RULES = (
    {'name': 'Speed Demon', 'description': 'Double points for matches under 5 seconds', 'type': 'speed'},
    {'name': 'Category Master', 'description': 'Bonus points for matching specific categories in order', 'type': 'category'},
    {'name': 'Perfect Memory', 'description': 'No wrong moves allowed!', 'type': 'perfect'},
    {'name': 'Chain Reaction', 'description': 'Consecutive matches give increasing bonuses', 'type': 'streak'},
    {'name': 'Time Crunch', 'description': 'Half the usual time limit', 'type': 'time'},
)


def get_tier(difficulty: str) -> TierConfig:
    try:
        return DIFFICULTIES[difficulty]
    except KeyError:
        raise ConfigurationError(f'Invalid difficulty: {difficulty}') from None


def get_categories() -> List[str]:
    return sorted({t.category for t in CARD_TEMPLATES})


def _card_token(rng: random.Random, taken: set) -> str:
    while True:
        token = f"c{rng.getrandbits(32):08x}"
        if token not in taken:
            taken.add(token)
            return token


def generate_deck(difficulty: str, categories: Optional[Iterable[str]] = None,
                  rng: Optional[random.Random] = None) -> List[Card]:
    """Build a shuffled deck of ``tier.card_count`` cards for ``difficulty``.

    Templates from ``categories`` are used when there are enough of them to
    fill the deck; otherwise the whole catalogue is the pool. Card ids are
    opaque tokens so a client cannot infer pairs from them.
    """
    tier = get_tier(difficulty)
    rng = rng or random.SystemRandom()

    pool = list(CARD_TEMPLATES)
    if categories:
        wanted = set(categories)
        filtered = [t for t in CARD_TEMPLATES if t.category in wanted]
        if len(filtered) >= tier.pair_count:
            pool = filtered

    selected = rng.sample(pool, tier.pair_count)
    taken = set()
    cards = []
    for template in selected:
        for _ in range(2):
            cards.append(Card(
                id=_card_token(rng, taken),
                pair_id=template.id,
                emoji=template.emoji,
                name=template.name,
                category=template.category,
            ))

    rng.shuffle(cards)
    for index, card in enumerate(cards):
        card.position = index
    return cards


def random_success_message(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(SUCCESS_MESSAGES)


def random_failure_message(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(FAILURE_MESSAGES)


def daily_challenge(today: Optional[dt.date] = None) -> dict:
    """Deterministic challenge for a calendar day."""
    today = today or dt.date.today()
    seed = today.year + today.month + today.day
    difficulties = list(DIFFICULTIES)
    categories = get_categories()
    return {
        'date': today.isoformat(),
        'difficulty': difficulties[seed % len(difficulties)],
        'requiredCategories': categories[:3 + (seed % 3)],
        'targetTime': int(DIFFICULTIES['medium'].time_limit * 0.7),
        'bonusMultiplier': round(1.5 + (seed % 10) / 10, 1),
        'specialRule': dict(DAILY_SPECIAL_RULES[seed % len(DAILY_SPECIAL_RULES)]),
    }


def game_config() -> dict:
    return {
        'difficulties': {name: tier.to_dict() for name, tier in DIFFICULTIES.items()},
        'animation': dict(ANIMATION),
        'scoring': {
            'perfectGameBonus': SCORING.perfect_game_bonus,
            'speedBonusMultiplier': SCORING.speed_bonus_multiplier,
            'streakBonus': SCORING.streak_bonus,
            'maxStreakBonus': SCORING.max_streak_bonus,
        },
    }
