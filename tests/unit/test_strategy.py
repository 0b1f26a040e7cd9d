"""AI 策略测试"""
import numpy as np
import pytest

from core.strategy import (
    PLACEHOLDER_POWER,
    best_trait,
    card_power,
    choose_attack,
    choose_defense,
    cull_hand,
    trait_score,
)
from core.traits import GameMode, TraitCategory


class TestCardPower:
    """card_power 测试"""

    def test_resolved(self, make_record, rng):
        traits = {1: make_record(strength=90)}
        assert card_power(1, traits, rng) == 290.0

    def test_placeholder(self, rng):
        for _ in range(20):
            power = card_power(7, {}, rng)
            assert 0.0 <= power < PLACEHOLDER_POWER


class TestCullHand:
    """cull_hand 测试"""

    def test_drops_weakest(self, make_record, rng):
        hand = list(range(1, 13))
        traits = {card: make_record(strength=card) for card in hand}
        keep, dropped = cull_hand(hand, traits, rng, discard=3)

        assert len(keep) == 9
        assert sorted(dropped) == [1, 2, 3]
        assert set(keep) | set(dropped) == set(hand)

    def test_stable_ties(self, make_record, rng):
        hand = [5, 6, 7, 8]
        traits = {card: make_record() for card in hand}
        keep, dropped = cull_hand(hand, traits, rng, discard=2)
        assert keep == (5, 6)
        assert dropped == (7, 8)

    def test_unresolved_weaker_than_resolved(self, make_record, rng):
        hand = [1, 2, 3, 4]
        traits = {1: make_record(), 2: make_record(), 3: make_record()}
        _, dropped = cull_hand(hand, traits, rng, discard=1)
        assert dropped == (4,)

    def test_too_many(self, rng):
        with pytest.raises(ValueError):
            cull_hand([1, 2], {}, rng, discard=3)


class TestTraitScore:
    """trait_score 测试"""

    def test_numeric(self, classifier):
        assert trait_score(TraitCategory.STRENGTH, 73, classifier) == 73.0

    def test_rarity_scores(self, classifier):
        assert trait_score(TraitCategory.WEAPON, "Plasma Scythe", classifier) == 1000.0
        assert trait_score(TraitCategory.WEAPON, "Railgun", classifier) == 500.0
        assert trait_score(TraitCategory.WEAPON, "Katana", classifier) == 100.0

    def test_best_trait_first_wins_ties(self, make_record, classifier):
        record = make_record()
        category, score = best_trait(record, [TraitCategory.CLASS, TraitCategory.RACE], classifier)
        assert category == TraitCategory.CLASS
        assert score == 100.0


class TestChooseAttack:
    """choose_attack 测试"""

    def test_full_visibility_strongest_card(self, make_record, classifier, rng):
        traits = {
            1: make_record(strength=99, weapon="Plasma Scythe"),
            2: make_record(strength=20, class_name="Dark Lord"),
        }
        card, category = choose_attack([1, 2], traits, GameMode.OMNIPRESENT, classifier, rng)
        assert card == 1
        assert category == TraitCategory.WEAPON

    def test_reduced_best_pair(self, make_record, classifier, rng):
        traits = {
            1: make_record(strength=99),
            2: make_record(strength=20, class_name="Dark Lord"),
        }
        card, category = choose_attack([1, 2], traits, GameMode.CHAOTIC, classifier, rng)
        assert card == 2
        assert category == TraitCategory.CLASS

    def test_category_in_mode(self, make_record, classifier, rng):
        traits = {1: make_record(cool=99, strength=10)}
        _, category = choose_attack([1], traits, GameMode.THREAT_INTELLIGENCE, classifier, rng)
        assert category in GameMode.THREAT_INTELLIGENCE.active_traits

    def test_unresolved_skipped(self, make_record, classifier, rng):
        traits = {2: make_record()}
        card, _ = choose_attack([1, 2, 3], traits, GameMode.CHAOTIC, classifier, rng)
        assert card == 2

    def test_all_unresolved(self, classifier, rng):
        card, category = choose_attack([4, 5], {}, GameMode.CHAOTIC, classifier, rng)
        assert card in (4, 5)
        assert category in GameMode.CHAOTIC.active_traits

    def test_empty_deck(self, classifier, rng):
        with pytest.raises(ValueError):
            choose_attack([], {}, GameMode.CHAOTIC, classifier, rng)


class TestChooseDefense:
    """choose_defense 测试"""

    def test_weakest_winning_card(self, make_record, rng):
        traits = {
            1: make_record(strength=95, cool=90),
            2: make_record(strength=85, cool=10),
            3: make_record(strength=30, cool=10),
        }
        card = choose_defense([1, 2, 3], TraitCategory.STRENGTH, 80, traits, rng)
        assert card == 2

    def test_sacrifice_when_cannot_win(self, make_record, rng):
        traits = {
            1: make_record(strength=50, cool=90),
            2: make_record(strength=60, cool=10),
        }
        card = choose_defense([1, 2], TraitCategory.STRENGTH, 99, traits, rng)
        assert card == 2

    def test_tie_does_not_win(self, make_record, rng):
        traits = {
            1: make_record(strength=80, cool=10),
            2: make_record(strength=81, cool=90),
        }
        card = choose_defense([1, 2], TraitCategory.STRENGTH, 80, traits, rng)
        assert card == 2

    def test_categorical_sacrifices_weakest(self, make_record, rng):
        traits = {
            1: make_record(class_name="Dark Lord", strength=10),
            2: make_record(strength=90),
        }
        card = choose_defense([1, 2], TraitCategory.CLASS, "Nerd", traits, rng)
        assert card == 1

    def test_reward_treated_as_categorical(self, make_record, rng):
        traits = {
            1: make_record(reward_rate="8", strength=90),
            2: make_record(reward_rate="1", strength=10),
        }
        card = choose_defense([1, 2], TraitCategory.REWARD, "4", traits, rng)
        assert card == 2

    def test_empty_deck(self, rng):
        with pytest.raises(ValueError):
            choose_defense([], TraitCategory.STRENGTH, 50, {}, rng)
