"""
游戏状态定义

使用不可变数据结构，每次状态转移返回新的快照:
- 渲染层只订阅快照，不持有游戏真值
- 易于测试与回放
"""
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional, Tuple, Union
from enum import Enum
import logging

import numpy as np

from .traits import GameMode, TraitCategory, TraitRecord, TraitValue
from .rarity import RarityClassifier
from .rules import BattleRules
from . import strategy

logger = logging.getLogger(__name__)


HAND_SIZE = 12
DISCARD_COUNT = 3
DECK_SIZE = HAND_SIZE - DISCARD_COUNT
WIN_SCORE = 5


class Phase(Enum):
    """游戏阶段"""
    CULL = "cull"          # 整理阶段: 12 张丢 3 张
    COMBAT = "combat"      # 对战阶段: 攻守轮换
    FINISHED = "finished"  # 游戏结束


class Side(Enum):
    """对局双方"""
    PLAYER = "player"
    OPPONENT = "opponent"

    @property
    def other(self) -> 'Side':
        return Side.OPPONENT if self == Side.PLAYER else Side.PLAYER


class Outcome(Enum):
    """结局 (玩家视角)"""
    WIN = "win"
    LOSE = "lose"


@dataclass(frozen=True)
class Commitment:
    """一方在本回合的出牌: 卡 + 特征"""
    side: Side
    card: int
    trait: TraitValue

    @property
    def category(self) -> TraitCategory:
        return self.trait.category


@dataclass(frozen=True)
class RoundResult:
    """
    回合结果

    Attributes:
        attacker: 进攻方
        winner: 获胜方
        category: 比较的特征类别
        attacker_card / defender_card: 双方的卡
        attacker_value / defender_value: 双方的特征值
        message: 可读描述
        attacker_count / defender_count: 出现次数 (类别特征比较时)
    """
    attacker: Side
    winner: Side
    category: TraitCategory
    attacker_card: int
    defender_card: int
    attacker_value: Union[int, str]
    defender_value: Union[int, str]
    message: str
    attacker_count: Optional[int] = None
    defender_count: Optional[int] = None


@dataclass(frozen=True)
class BattleRound:
    """进行中的回合 (进攻方出牌时创建，结算并展示后清除)"""
    attack: Commitment
    defense: Optional[Commitment] = None
    result: Optional[RoundResult] = None

    @property
    def attacker(self) -> Side:
        return self.attack.side

    @property
    def defender(self) -> Side:
        return self.attack.side.other

    @property
    def category(self) -> TraitCategory:
        return self.attack.category

    @property
    def is_ready(self) -> bool:
        """双方都已出牌且尚未结算"""
        return self.defense is not None and self.result is None

    @property
    def is_resolved(self) -> bool:
        return self.result is not None


@dataclass(frozen=True)
class GameState:
    """
    不可变游戏状态

    Attributes:
        mode: 游戏模式
        phase: 游戏阶段
        player_hand: 玩家的初始 12 张手牌
        opponent_hand: AI 的初始 12 张手牌
        discarded: 玩家在整理阶段丢弃的卡 (按丢弃顺序)
        opponent_discarded: AI 丢弃的卡
        player_deck: 玩家对战卡组
        opponent_deck: AI 对战卡组
        player_score / opponent_score: 比分
        turn: 当前进攻方
        battle: 进行中的回合
        results: 已结算回合
        outcome: 结局
    """
    mode: GameMode
    phase: Phase
    player_hand: Tuple[int, ...]
    opponent_hand: Tuple[int, ...]
    discarded: Tuple[int, ...] = ()
    opponent_discarded: Tuple[int, ...] = ()
    player_deck: Tuple[int, ...] = ()
    opponent_deck: Tuple[int, ...] = ()
    player_score: int = 0
    opponent_score: int = 0
    turn: Side = Side.PLAYER
    battle: Optional[BattleRound] = None
    results: Tuple[RoundResult, ...] = ()
    outcome: Optional[Outcome] = None

    @classmethod
    def initial(
        cls,
        player_hand,
        opponent_hand,
        mode: GameMode = GameMode.OMNIPRESENT,
    ) -> 'GameState':
        """
        创建初始游戏状态 (整理阶段)

        Args:
            player_hand: 玩家 12 张手牌
            opponent_hand: AI 12 张手牌
            mode: 游戏模式

        Returns:
            初始状态
        """
        player_hand = tuple(int(c) for c in player_hand)
        opponent_hand = tuple(int(c) for c in opponent_hand)

        for name, hand in (("player", player_hand), ("opponent", opponent_hand)):
            if len(hand) != HAND_SIZE:
                raise ValueError(f"{name} hand must have {HAND_SIZE} cards, got {len(hand)}")
            if len(set(hand)) != HAND_SIZE:
                raise ValueError(f"{name} hand contains duplicate cards")
        if set(player_hand) & set(opponent_hand):
            raise ValueError("Player and opponent hands must be disjoint")

        return cls(
            mode=mode,
            phase=Phase.CULL,
            player_hand=player_hand,
            opponent_hand=opponent_hand,
        )

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def deck(self, side: Side) -> Tuple[int, ...]:
        return self.player_deck if side == Side.PLAYER else self.opponent_deck

    def score(self, side: Side) -> int:
        return self.player_score if side == Side.PLAYER else self.opponent_score

    def hand(self, side: Side) -> Tuple[int, ...]:
        return self.player_hand if side == Side.PLAYER else self.opponent_hand

    def unused_cards(self, side: Side) -> Tuple[int, ...]:
        """卡组中未在本回合出过的卡"""
        committed = set()
        if self.battle is not None:
            committed.add(self.battle.attack.card)
            if self.battle.defense is not None:
                committed.add(self.battle.defense.card)
        return tuple(c for c in self.deck(side) if c not in committed)

    @property
    def undiscarded(self) -> Tuple[int, ...]:
        return tuple(c for c in self.player_hand if c not in self.discarded)

    @property
    def pending_side(self) -> Optional[Side]:
        """当前需要行动的一方 (无人需要行动时为 None)"""
        if self.phase == Phase.CULL:
            return Side.PLAYER
        if self.phase != Phase.COMBAT:
            return None
        if self.battle is None:
            return self.turn
        if self.battle.defense is None:
            return self.battle.defender
        return None

    @property
    def is_finished(self) -> bool:
        return self.phase == Phase.FINISHED

    @property
    def round_number(self) -> int:
        """已结算的回合数"""
        return len(self.results)

    @property
    def last_result(self) -> Optional[RoundResult]:
        return self.results[-1] if self.results else None

    def get_legal_actions(self) -> List:
        """
        当前行动方的合法动作

        Returns:
            整理阶段 / 防守: List[int] (卡)
            进攻: List[Tuple[int, TraitCategory]]
        """
        if self.phase == Phase.CULL:
            return list(self.undiscarded)
        side = self.pending_side
        if side is None:
            return []
        cards = self.unused_cards(side)
        if self.battle is None:
            return [(card, category) for card in cards for category in self.mode.active_traits]
        return list(cards)

    # ------------------------------------------------------------------
    # 整理阶段
    # ------------------------------------------------------------------

    def with_discard(
        self,
        card: int,
        traits: Mapping[int, TraitRecord],
        rng: np.random.Generator,
    ) -> 'GameState':
        """
        玩家丢弃一张手牌

        第 3 张丢弃时进入对战阶段，同时 AI 丢弃自己最弱的 3 张

        Args:
            card: 要丢弃的卡
            traits: 已解析的特征 (用于 AI 整理)
            rng: 随机数生成器

        Returns:
            新状态
        """
        if self.phase != Phase.CULL:
            raise ValueError("Not in cull phase")
        if card not in self.player_hand:
            raise ValueError(f"Card {card} is not in the player's hand")
        if card in self.discarded:
            raise ValueError(f"Card {card} is already discarded")

        discarded = self.discarded + (card,)
        if len(discarded) < DISCARD_COUNT:
            return replace(self, discarded=discarded)
        return self._finish_cull(discarded, traits, rng)

    def with_forced_discards(
        self,
        traits: Mapping[int, TraitRecord],
        rng: np.random.Generator,
    ) -> 'GameState':
        """倒计时结束: 剩余的丢弃从未丢弃的手牌中均匀随机选择"""
        if self.phase != Phase.CULL:
            raise ValueError("Not in cull phase")
        remaining = DISCARD_COUNT - len(self.discarded)
        pool = list(self.undiscarded)
        picks = rng.choice(len(pool), size=remaining, replace=False)
        forced = tuple(pool[int(i)] for i in picks)
        logger.info(f"Cull timer expired, forcing discards {list(forced)}")
        return self._finish_cull(self.discarded + forced, traits, rng)

    def _finish_cull(
        self,
        discarded: Tuple[int, ...],
        traits: Mapping[int, TraitRecord],
        rng: np.random.Generator,
    ) -> 'GameState':
        player_deck = tuple(c for c in self.player_hand if c not in discarded)
        opponent_deck, opponent_discarded = strategy.cull_hand(
            self.opponent_hand, traits, rng, discard=DISCARD_COUNT
        )
        logger.info(
            f"Cull complete: player keeps {len(player_deck)}, "
            f"opponent discards {list(opponent_discarded)}"
        )
        return replace(
            self,
            phase=Phase.COMBAT,
            discarded=discarded,
            opponent_discarded=opponent_discarded,
            player_deck=player_deck,
            opponent_deck=opponent_deck,
            turn=Side.PLAYER,
        )

    # ------------------------------------------------------------------
    # 对战阶段
    # ------------------------------------------------------------------

    def with_attack(
        self,
        card: int,
        category: TraitCategory,
        record: TraitRecord,
    ) -> 'GameState':
        """
        进攻方出牌并选择特征

        Args:
            card: 进攻卡
            category: 特征类别 (必须属于当前模式)
            record: 进攻卡的特征

        Returns:
            新状态
        """
        if self.phase != Phase.COMBAT:
            raise ValueError("Not in combat phase")
        if self.battle is not None:
            raise ValueError("A round is already in flight")
        if card not in self.deck(self.turn):
            raise ValueError(f"Card {card} is not in the {self.turn.value} deck")
        if category not in self.mode.active_traits:
            raise ValueError(f"{category.label} is not playable in {self.mode.value} mode")

        attack = Commitment(self.turn, card, TraitValue(category, record.get(category)))
        return replace(self, battle=BattleRound(attack=attack))

    def with_defense(self, card: int, record: TraitRecord) -> 'GameState':
        """
        防守方出牌 (特征类别由进攻方决定)

        盲防模式下防守值在结算前保持隐藏
        """
        if self.phase != Phase.COMBAT:
            raise ValueError("Not in combat phase")
        if self.battle is None:
            raise ValueError("No attack to defend against")
        if self.battle.defense is not None:
            raise ValueError("Defense already committed")
        defender = self.battle.defender
        if card not in self.deck(defender):
            raise ValueError(f"Card {card} is not in the {defender.value} deck")

        category = self.battle.category
        trait = TraitValue(category, record.get(category), revealed=not self.mode.blind_defense)
        defense = Commitment(defender, card, trait)
        return replace(self, battle=replace(self.battle, defense=defense))

    def with_resolution(self, classifier: RarityClassifier) -> 'GameState':
        """
        结算回合

        揭示防守值，胜方加 1 分，双方出过的卡从卡组中移除

        Returns:
            新状态 (回合结果保留在 battle.result 中以供展示)
        """
        if self.battle is None or not self.battle.is_ready:
            raise ValueError("Round is not ready to resolve")

        attack = self.battle.attack
        defense = replace(self.battle.defense, trait=self.battle.defense.trait.reveal())

        verdict = BattleRules.resolve(
            attack.category, attack.trait.value, defense.trait.value, classifier
        )
        winner = attack.side if verdict.attacker_wins else defense.side

        result = RoundResult(
            attacker=attack.side,
            winner=winner,
            category=attack.category,
            attacker_card=attack.card,
            defender_card=defense.card,
            attacker_value=attack.trait.value,
            defender_value=defense.trait.value,
            message=verdict.message,
            attacker_count=verdict.attacker_count,
            defender_count=verdict.defender_count,
        )

        played = {attack.card, defense.card}
        logger.info(f"Round {self.round_number + 1}: {verdict.message} ({winner.value} scores)")

        return replace(
            self,
            player_deck=tuple(c for c in self.player_deck if c not in played),
            opponent_deck=tuple(c for c in self.opponent_deck if c not in played),
            player_score=self.player_score + (1 if winner == Side.PLAYER else 0),
            opponent_score=self.opponent_score + (1 if winner == Side.OPPONENT else 0),
            battle=BattleRound(attack=attack, defense=defense, result=result),
            results=self.results + (result,),
        )

    def with_round_cleared(self) -> 'GameState':
        """
        清除已展示的回合

        有一方达到 WIN_SCORE 时游戏结束，否则交换攻守
        """
        if self.battle is None or not self.battle.is_resolved:
            raise ValueError("No resolved round to clear")

        if self.player_score >= WIN_SCORE or self.opponent_score >= WIN_SCORE:
            return self._finished()
        if not self.player_deck or not self.opponent_deck:
            return self._finished()

        return replace(self, battle=None, turn=self.turn.other)

    def _finished(self) -> 'GameState':
        outcome = Outcome.WIN if self.player_score > self.opponent_score else Outcome.LOSE
        logger.info(
            f"Game over: {outcome.value} ({self.player_score}-{self.opponent_score})"
        )
        return replace(self, phase=Phase.FINISHED, battle=None, outcome=outcome)

    def forced_choice(self, rng: np.random.Generator) -> Tuple[int, Optional[TraitCategory]]:
        """
        倒计时结束时的强制动作

        Returns:
            (随机未用卡, 随机特征类别)；防守时类别为 None
        """
        side = self.pending_side
        if side is None or self.phase != Phase.COMBAT:
            raise ValueError("No combat decision is pending")
        cards = self.unused_cards(side)
        card = cards[int(rng.integers(len(cards)))]
        if self.battle is None:
            categories = self.mode.active_traits
            return card, categories[int(rng.integers(len(categories)))]
        return card, None

    def scores(self) -> Dict[str, int]:
        return {Side.PLAYER.value: self.player_score, Side.OPPONENT.value: self.opponent_score}
