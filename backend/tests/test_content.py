import datetime as dt
import random
from collections import Counter

import pytest

from memory_game.errors import ConfigurationError
from memory_game.services.games.content import (
    CARD_TEMPLATES,
    DIFFICULTIES,
    daily_challenge,
    generate_deck,
    get_categories,
    get_tier,
)


@pytest.mark.parametrize('difficulty', sorted(DIFFICULTIES))
def test_deck_has_tier_card_count_and_exact_pairs(difficulty):
    tier = DIFFICULTIES[difficulty]
    for seed in range(20):
        deck = generate_deck(difficulty, rng=random.Random(seed))
        assert len(deck) == tier.card_count
        counts = Counter(card.pair_id for card in deck)
        assert set(counts.values()) == {2}
        assert len(counts) == tier.pair_count
        assert [card.position for card in deck] == list(range(tier.card_count))
        assert len({card.id for card in deck}) == tier.card_count
        assert not any(card.is_flipped or card.is_matched for card in deck)


def test_tier_card_counts_are_even():
    for tier in DIFFICULTIES.values():
        assert tier.card_count % 2 == 0


def test_unknown_tier_is_configuration_error():
    with pytest.raises(ConfigurationError):
        generate_deck('impossible')
    with pytest.raises(ConfigurationError):
        get_tier('')


def test_category_filter_used_when_it_can_fill_the_deck():
    wanted = {'classic', 'food', 'space', 'fantasy', 'luxury', 'silly'}
    deck = generate_deck('easy', categories=wanted, rng=random.Random(3))
    assert {card.category for card in deck} <= wanted


def test_category_filter_falls_back_to_full_catalogue():
    # Only three food templates exist, easy needs eight pairs
    deck = generate_deck('easy', categories=['food'], rng=random.Random(3))
    assert len(deck) == 16
    assert len(Counter(card.pair_id for card in deck)) == 8
    assert {card.category for card in deck} != {'food'}


def test_card_ids_do_not_reveal_pairs():
    deck = generate_deck('medium', rng=random.Random(11))
    template_ids = {t.id for t in CARD_TEMPLATES}
    for card in deck:
        assert card.id not in template_ids
        assert card.pair_id not in card.id
        assert 'pairId' not in card.to_public_dict()


def test_same_seed_same_deck():
    first = generate_deck('hard', rng=random.Random(42))
    second = generate_deck('hard', rng=random.Random(42))
    assert [c.to_dict() for c in first] == [c.to_dict() for c in second]


def test_categories_sorted_and_unique():
    categories = get_categories()
    assert categories == sorted(set(categories))
    assert 'food' in categories
    assert len(CARD_TEMPLATES) == 30


def test_daily_challenge_is_deterministic_per_day():
    day = dt.date(2026, 10, 19)
    challenge = daily_challenge(day)
    assert challenge == daily_challenge(day)
    assert challenge['date'] == '2026-10-19'
    assert challenge['difficulty'] in DIFFICULTIES
    assert set(challenge['requiredCategories']) <= set(get_categories())
    assert 3 <= len(challenge['requiredCategories']) <= 5
    assert challenge['targetTime'] == int(DIFFICULTIES['medium'].time_limit * 0.7)
