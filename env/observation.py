"""
观察空间与动作编码

将游戏状态 (玩家视角) 转换为 numpy 特征表示
"""
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple
import numpy as np

from core.rarity import Rarity, RarityClassifier
from core.state import GameState, Phase, Side, HAND_SIZE, WIN_SCORE
from core.traits import (
    ALL_CATEGORIES,
    STAT_MAX,
    GameMode,
    TraitCategory,
    TraitRecord,
    TraitScalar,
)


NUM_CATEGORIES = len(ALL_CATEGORIES)
NUM_ACTIONS = HAND_SIZE * NUM_CATEGORIES

_PHASES = (Phase.CULL, Phase.COMBAT, Phase.FINISHED)
_MODES = tuple(GameMode)


def encode_action(slot: int, category: Optional[TraitCategory] = None) -> int:
    """
    编码动作

    Args:
        slot: 手牌槽位 (初始 12 张手牌中的下标)
        category: 进攻特征 (整理和防守时为 None)

    Returns:
        动作索引 slot * 16 + 类别下标
    """
    if not 0 <= slot < HAND_SIZE:
        raise ValueError(f"Invalid slot: {slot}")
    offset = ALL_CATEGORIES.index(category) if category is not None else 0
    return slot * NUM_CATEGORIES + offset


def decode_action(action: int) -> Tuple[int, TraitCategory]:
    """解码动作索引为 (槽位, 类别)"""
    action = int(action)
    if not 0 <= action < NUM_ACTIONS:
        raise ValueError(f"Invalid action index: {action}. Valid range: 0-{NUM_ACTIONS - 1}")
    slot, offset = divmod(action, NUM_CATEGORIES)
    return slot, ALL_CATEGORIES[offset]


def encode_trait(
    category: TraitCategory,
    value: TraitScalar,
    classifier: RarityClassifier,
) -> float:
    """
    单项特征的归一化表示

    数值特征: value / 100；类别特征: 稀有度等级 / 2
    """
    if category.is_numeric:
        try:
            return float(value) / STAT_MAX
        except (TypeError, ValueError):
            return 0.0
    return float(classifier.classify(category, value)) / float(Rarity.ULTRA_RARE)


def encode_record(record: Optional[TraitRecord], classifier: RarityClassifier) -> np.ndarray:
    """编码一张卡的全部 16 项特征 (未解析时全 0)"""
    result = np.zeros(NUM_CATEGORIES, dtype=np.float32)
    if record is None:
        return result
    for i, category in enumerate(ALL_CATEGORIES):
        result[i] = encode_trait(category, record.get(category), classifier)
    return result


@dataclass
class Observation:
    """
    结构化观测 (玩家视角)

    Attributes:
        hand: 12 个槽位的特征 (12, 16)
        slot_mask: 槽位当前可出 (12,)
        attack: 来袭的进攻 (类别 one-hot 16 + 归一化值 1) (17,)
        active_traits: 当前模式可用的特征类别 (16,)
        scores: 双方比分 / WIN_SCORE (2,)
        phase: 阶段 one-hot (3,)
        mode: 模式 one-hot (3,)
        role: [进攻, 防守] (2,)
        legal_actions: 合法动作索引
    """
    hand: np.ndarray
    slot_mask: np.ndarray
    attack: np.ndarray
    active_traits: np.ndarray
    scores: np.ndarray
    phase: np.ndarray
    mode: np.ndarray
    role: np.ndarray
    legal_actions: List[int]

    def to_dict(self) -> Dict[str, np.ndarray]:
        return {
            "hand": self.hand,
            "slot_mask": self.slot_mask,
            "attack": self.attack,
            "active_traits": self.active_traits,
            "scores": self.scores,
            "phase": self.phase,
            "mode": self.mode,
            "role": self.role,
        }

    def to_flat_array(self) -> np.ndarray:
        return np.concatenate([
            self.hand.flatten(),
            self.slot_mask,
            self.attack,
            self.active_traits,
            self.scores,
            self.phase,
            self.mode,
            self.role,
        ])


class ObservationBuilder:
    """
    观测构建器

    只编码玩家可见的信息: 自己的手牌、来袭进攻的值、比分。
    AI 的卡组不进入观测。
    """

    def __init__(self, classifier: Optional[RarityClassifier] = None):
        self.classifier = classifier or RarityClassifier.default()

    def build(self, state: GameState, traits: Mapping[int, TraitRecord]) -> Observation:
        """
        Args:
            state: 游戏状态
            traits: 已解析的特征

        Returns:
            Observation 对象
        """
        hand = np.zeros((HAND_SIZE, NUM_CATEGORIES), dtype=np.float32)
        for slot, card in enumerate(state.player_hand):
            hand[slot] = encode_record(traits.get(card), self.classifier)

        return Observation(
            hand=hand,
            slot_mask=self._encode_slot_mask(state),
            attack=self._encode_attack(state),
            active_traits=self._encode_active_traits(state.mode),
            scores=np.array(
                [state.player_score / WIN_SCORE, state.opponent_score / WIN_SCORE],
                dtype=np.float32,
            ),
            phase=self._one_hot(_PHASES.index(state.phase), len(_PHASES)),
            mode=self._one_hot(_MODES.index(state.mode), len(_MODES)),
            role=self._encode_role(state),
            legal_actions=legal_action_indices(state),
        )

    def _encode_slot_mask(self, state: GameState) -> np.ndarray:
        result = np.zeros(HAND_SIZE, dtype=np.float32)
        if state.phase == Phase.CULL:
            playable = set(state.undiscarded)
        elif state.pending_side == Side.PLAYER:
            playable = set(state.unused_cards(Side.PLAYER))
        else:
            playable = set()
        for slot, card in enumerate(state.player_hand):
            if card in playable:
                result[slot] = 1.0
        return result

    def _encode_attack(self, state: GameState) -> np.ndarray:
        result = np.zeros(NUM_CATEGORIES + 1, dtype=np.float32)
        battle = state.battle
        if battle is None or battle.attacker != Side.OPPONENT:
            return result
        category = battle.category
        result[ALL_CATEGORIES.index(category)] = 1.0
        result[-1] = encode_trait(category, battle.attack.trait.value, self.classifier)
        return result

    def _encode_active_traits(self, mode: GameMode) -> np.ndarray:
        result = np.zeros(NUM_CATEGORIES, dtype=np.float32)
        for category in mode.active_traits:
            result[ALL_CATEGORIES.index(category)] = 1.0
        return result

    def _encode_role(self, state: GameState) -> np.ndarray:
        result = np.zeros(2, dtype=np.float32)
        if state.phase != Phase.COMBAT:
            return result
        if state.pending_side == Side.PLAYER:
            result[0 if state.battle is None else 1] = 1.0
        return result

    @staticmethod
    def _one_hot(index: int, size: int) -> np.ndarray:
        result = np.zeros(size, dtype=np.float32)
        result[index] = 1.0
        return result


def legal_action_indices(state: GameState) -> List[int]:
    """
    玩家当前的合法动作索引

    整理与防守时类别部分无意义，同一槽位的 16 个索引都合法
    """
    if state.pending_side != Side.PLAYER:
        return []

    if state.phase == Phase.CULL:
        cards = set(state.undiscarded)
        categories = ALL_CATEGORIES
    elif state.battle is None:
        cards = set(state.unused_cards(Side.PLAYER))
        categories = state.mode.active_traits
    else:
        cards = set(state.unused_cards(Side.PLAYER))
        categories = ALL_CATEGORIES

    indices = []
    for slot, card in enumerate(state.player_hand):
        if card not in cards:
            continue
        for category in categories:
            indices.append(encode_action(slot, category))
    return sorted(indices)


def build_legal_mask(legal_actions: List[int]) -> np.ndarray:
    mask = np.zeros(NUM_ACTIONS, dtype=np.float32)
    for a in legal_actions:
        mask[a] = 1.0
    return mask
