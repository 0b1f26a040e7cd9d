"""
AI 策略

对手 (AI) 的纯决策函数:
- 整理阶段: 丢弃总战力最低的卡
- 进攻: 选择卡与特征
- 防守: 用能赢的最弱卡，赢不了就牺牲最弱卡

特征尚未解析的卡不会阻塞决策，其战力使用随机占位值。
"""
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .traits import GameMode, TraitCategory, TraitRecord, TraitScalar
from .rarity import Rarity, RarityClassifier


# 类别特征的启发式分值
RARITY_SCORES: Dict[Rarity, float] = {
    Rarity.ULTRA_RARE: 1000.0,
    Rarity.RARE: 500.0,
    Rarity.COMMON: 100.0,
}

# 未解析卡的占位战力上限
PLACEHOLDER_POWER = 100.0

TraitLookup = Mapping[int, TraitRecord]


def card_power(card: int, traits: TraitLookup, rng: np.random.Generator) -> float:
    """卡的总战力 (五项数值特征之和)，特征未解析时为 [0, 100) 的随机数"""
    record = traits.get(card)
    if record is None:
        return float(rng.uniform(0.0, PLACEHOLDER_POWER))
    return float(record.total_power)


def cull_hand(
    hand: Sequence[int],
    traits: TraitLookup,
    rng: np.random.Generator,
    discard: int = 3,
) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """
    按总战力丢弃最弱的若干张

    排序稳定: 战力相同时保持手牌顺序

    Args:
        hand: 手牌
        traits: 已解析的特征
        rng: 随机数生成器
        discard: 丢弃张数

    Returns:
        (保留的卡, 丢弃的卡)
    """
    if discard > len(hand):
        raise ValueError(f"Cannot discard {discard} cards from a hand of {len(hand)}")
    powered = [(card, card_power(card, traits, rng)) for card in hand]
    powered.sort(key=lambda cp: cp[1], reverse=True)
    keep_count = len(hand) - discard
    keep = tuple(card for card, _ in powered[:keep_count])
    dropped = tuple(card for card, _ in powered[keep_count:])
    return keep, dropped


def trait_score(category: TraitCategory, value: TraitScalar, classifier: RarityClassifier) -> float:
    """
    进攻启发式分值

    数值特征直接取值；类别特征按稀有度: 超稀有 1000，稀有 500，普通 100
    """
    if category.is_numeric:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0
    return RARITY_SCORES[classifier.classify(category, value)]


def best_trait(
    record: TraitRecord,
    categories: Sequence[TraitCategory],
    classifier: RarityClassifier,
) -> Tuple[TraitCategory, float]:
    """在给定类别中选出分值最高的特征 (相同分值取先出现者)"""
    best: Optional[Tuple[TraitCategory, float]] = None
    for category in categories:
        score = trait_score(category, record.get(category), classifier)
        if best is None or score > best[1]:
            best = (category, score)
    if best is None:
        raise ValueError("No trait categories to choose from")
    return best


def choose_attack(
    deck: Sequence[int],
    traits: TraitLookup,
    mode: GameMode,
    classifier: RarityClassifier,
    rng: np.random.Generator,
) -> Tuple[int, TraitCategory]:
    """
    AI 进攻: 选择卡与特征

    - 全可见模式: 选总战力最高的卡，再选该卡分值最高的特征
    - 其他模式: 在所有 (卡, 特征) 组合中选启发式分值最高者

    Returns:
        (卡, 特征类别)
    """
    if not deck:
        raise ValueError("AI has no cards to attack with")
    categories = mode.active_traits

    if mode.full_visibility:
        card = _strongest(deck, traits, rng)
        record = traits.get(card)
        if record is None:
            return card, categories[int(rng.integers(len(categories)))]
        category, _ = best_trait(record, categories, classifier)
        return card, category

    best: Optional[Tuple[int, TraitCategory, float]] = None
    for card in deck:
        record = traits.get(card)
        if record is None:
            continue
        category, score = best_trait(record, categories, classifier)
        if best is None or score > best[2]:
            best = (card, category, score)

    if best is None:
        # 全部未解析: 随机出牌
        card = deck[int(rng.integers(len(deck)))]
        return card, categories[int(rng.integers(len(categories)))]
    return best[0], best[1]


def choose_defense(
    deck: Sequence[int],
    category: TraitCategory,
    attack_value: TraitScalar,
    traits: TraitLookup,
    rng: np.random.Generator,
) -> int:
    """
    AI 防守: 选择一张卡

    数值特征且存在严格大于进攻值的卡时，选其中总战力最低者；
    否则 (包括所有类别特征) 牺牲总战力最低的卡。

    Returns:
        防守卡
    """
    if not deck:
        raise ValueError("AI has no cards to defend with")

    analysis: List[Tuple[int, float, Optional[TraitScalar]]] = []
    for card in deck:
        record = traits.get(card)
        value = record.get(category) if record is not None else None
        analysis.append((card, card_power(card, traits, rng), value))

    if category.is_numeric and isinstance(attack_value, (int, float)):
        can_win = [
            entry for entry in analysis
            if isinstance(entry[2], (int, float)) and entry[2] > attack_value
        ]
        if can_win:
            return min(can_win, key=lambda entry: entry[1])[0]

    return min(analysis, key=lambda entry: entry[1])[0]


def _strongest(deck: Sequence[int], traits: TraitLookup, rng: np.random.Generator) -> int:
    best_card = deck[0]
    best_power = card_power(best_card, traits, rng)
    for card in deck[1:]:
        power = card_power(card, traits, rng)
        if power > best_power:
            best_card, best_power = card, power
    return best_card
