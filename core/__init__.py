"""
Core Layer - 纯游戏逻辑 (无网络依赖)

Modules:
    traits: 特征定义与解析
    rarity: 稀有度分类
    rules: 回合判定
    strategy: AI 决策
    state: 游戏状态
    pool: 卡池选择
"""
from .traits import (
    TraitCategory,
    TraitRecord,
    TraitValue,
    GameMode,
    NUMERIC_CATEGORIES,
    ALL_CATEGORIES,
    FULL_TRAITS,
    REDUCED_TRAITS,
    category_from_label,
    record_to_str,
)

from .rarity import (
    Rarity,
    RarityEntry,
    RarityTable,
    RarityClassifier,
    COMMON_COUNT,
    default_table,
    tally_attributes,
)

from .rules import BattleRules, Verdict

from .strategy import (
    card_power,
    cull_hand,
    trait_score,
    choose_attack,
    choose_defense,
)

from .state import (
    Phase,
    Side,
    Outcome,
    Commitment,
    RoundResult,
    BattleRound,
    GameState,
    HAND_SIZE,
    DISCARD_COUNT,
    DECK_SIZE,
    WIN_SCORE,
)

from .pool import CardPool, draw_card_ids, CARD_ID_MIN, CARD_ID_MAX

__all__ = [
    # traits
    "TraitCategory",
    "TraitRecord",
    "TraitValue",
    "GameMode",
    "NUMERIC_CATEGORIES",
    "ALL_CATEGORIES",
    "FULL_TRAITS",
    "REDUCED_TRAITS",
    "category_from_label",
    "record_to_str",
    # rarity
    "Rarity",
    "RarityEntry",
    "RarityTable",
    "RarityClassifier",
    "COMMON_COUNT",
    "default_table",
    "tally_attributes",
    # rules
    "BattleRules",
    "Verdict",
    # strategy
    "card_power",
    "cull_hand",
    "trait_score",
    "choose_attack",
    "choose_defense",
    # state
    "Phase",
    "Side",
    "Outcome",
    "Commitment",
    "RoundResult",
    "BattleRound",
    "GameState",
    "HAND_SIZE",
    "DISCARD_COUNT",
    "DECK_SIZE",
    "WIN_SCORE",
    # pool
    "CardPool",
    "draw_card_ids",
    "CARD_ID_MIN",
    "CARD_ID_MAX",
]
