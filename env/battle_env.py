"""
特征对战 Gymnasium 环境

智能体坐在玩家席位，对手由内置 AI 策略控制。
遵循标准 Gymnasium API，无倒计时、无动画延迟。
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
import asyncio
import logging

import numpy as np
import gymnasium as gym
from gymnasium import spaces

from core.pool import CARD_ID_MAX, CARD_ID_MIN, draw_card_ids
from core.rarity import RarityClassifier
from core.state import GameState, Phase, Side, HAND_SIZE
from core.strategy import choose_attack, choose_defense
from core.traits import GameMode, TraitRecord, record_to_str
from providers.base import TraitProvider
from providers.resolver import TraitResolver
from providers.synthetic import SyntheticTraitProvider

from .observation import (
    NUM_ACTIONS,
    NUM_CATEGORIES,
    ObservationBuilder,
    build_legal_mask,
    decode_action,
    legal_action_indices,
)

logger = logging.getLogger(__name__)


class TraitClashEnv(gym.Env):
    """
    特征对战环境

    动作: Discrete(12 * 16)，索引 = 槽位 * 16 + 特征类别下标
    - 整理: 丢弃槽位上的卡 (类别部分忽略)
    - 进攻: 用槽位上的卡以指定类别进攻
    - 防守: 用槽位上的卡防守 (类别部分忽略)

    奖励: 每赢一回合 +1，每输一回合 -1

    reset() 与 close() 内部使用 asyncio.run 解析特征，
    因此只能在没有运行中事件循环的线程里调用；
    异步代码请改用 session.GameSession。

    API:
    - reset() -> observation, info
    - step(action) -> observation, reward, terminated, truncated, info
    """

    metadata = {
        "render_modes": ["human", "ansi"],
        "name": "TraitClash-v0",
    }

    def __init__(
        self,
        mode: Union[GameMode, str] = GameMode.OMNIPRESENT,
        render_mode: Optional[str] = None,
        provider: Optional[TraitProvider] = None,
        classifier: Optional[RarityClassifier] = None,
        card_id_min: int = CARD_ID_MIN,
        card_id_max: int = CARD_ID_MAX,
        seed: Optional[int] = None,
    ):
        """
        Args:
            mode: 游戏模式
            render_mode: 渲染模式 ("human", "ansi", None)
            provider: 特征提供方 (默认合成特征)
            classifier: 稀有度分类器
            card_id_min / card_id_max: 卡号区间
            seed: 随机种子
        """
        super().__init__()

        self.mode = GameMode(mode)
        self.render_mode = render_mode
        self.classifier = classifier or RarityClassifier.default()
        self.card_id_min = card_id_min
        self.card_id_max = card_id_max
        self._seed = seed

        if provider is None:
            provider = SyntheticTraitProvider(seed=seed)
        self.resolver = TraitResolver(provider)

        self._obs_builder = ObservationBuilder(self.classifier)
        self._state: Optional[GameState] = None

        self._define_spaces()

    def _define_spaces(self):
        self.action_space = spaces.Discrete(NUM_ACTIONS)

        self.observation_space = spaces.Dict({
            "hand": spaces.Box(0, 1, shape=(HAND_SIZE, NUM_CATEGORIES), dtype=np.float32),
            "slot_mask": spaces.Box(0, 1, shape=(HAND_SIZE,), dtype=np.float32),
            "attack": spaces.Box(0, 1, shape=(NUM_CATEGORIES + 1,), dtype=np.float32),
            "active_traits": spaces.Box(0, 1, shape=(NUM_CATEGORIES,), dtype=np.float32),
            "scores": spaces.Box(0, 2, shape=(2,), dtype=np.float32),
            "phase": spaces.Box(0, 1, shape=(3,), dtype=np.float32),
            "mode": spaces.Box(0, 1, shape=(3,), dtype=np.float32),
            "role": spaces.Box(0, 1, shape=(2,), dtype=np.float32),
        })

    @property
    def traits(self) -> Mapping[int, TraitRecord]:
        return self.resolver.cached

    def reset(
        self,
        *,
        seed: Optional[int] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, np.ndarray], Dict[str, Any]]:
        """
        重置环境: 抽 24 张卡并解析全部特征

        Args:
            seed: 随机种子
            options: 额外选项 ("mode" 可覆盖游戏模式)

        Returns:
            (observation, info) 元组
        """
        if seed is None and self._seed is not None and self._state is None:
            seed = self._seed
        super().reset(seed=seed)

        if options and "mode" in options:
            self.mode = GameMode(options["mode"])

        card_ids = draw_card_ids(
            2 * HAND_SIZE, self.card_id_min, self.card_id_max, self.np_random
        )
        if len(card_ids) < 2 * HAND_SIZE:
            raise ValueError(
                f"Card id range [{self.card_id_min}, {self.card_id_max}] "
                f"is too small for {2 * HAND_SIZE} cards"
            )

        self.resolver.clear()
        asyncio.run(self.resolver.resolve_many(card_ids))

        self._state = GameState.initial(
            card_ids[:HAND_SIZE], card_ids[HAND_SIZE:], self.mode
        )
        logger.debug(f"Episode reset in {self.mode.value} mode with cards {card_ids}")
        self._advance()

        obs = self._build_observation()
        info = self._build_info()

        if self.render_mode == "human":
            self.render()

        return obs, info

    def step(
        self,
        action: int,
    ) -> Tuple[Dict[str, np.ndarray], float, bool, bool, Dict[str, Any]]:
        """
        执行玩家动作，随后自动推进 AI 行动与结算

        Returns:
            (observation, reward, terminated, truncated, info) 元组
        """
        if self._state is None:
            raise RuntimeError("Environment not reset. Call reset() first.")
        if self._state.is_finished:
            raise RuntimeError("Episode finished. Call reset() to start a new game.")

        if int(action) not in legal_action_indices(self._state):
            # 非法动作：给予惩罚并保持状态
            obs = self._build_observation()
            info = self._build_info()
            info["error"] = "Invalid action"
            return obs, -1.0, False, False, info

        rounds_before = self._state.round_number
        self._state = self._apply_player_action(int(action))
        self._advance()

        reward = self._compute_reward(rounds_before)
        terminated = self._state.is_finished
        truncated = False

        obs = self._build_observation()
        info = self._build_info()

        if self.render_mode == "human":
            self.render()

        return obs, reward, terminated, truncated, info

    def _apply_player_action(self, action: int) -> GameState:
        state = self._state
        slot, category = decode_action(action)
        card = state.player_hand[slot]

        if state.phase == Phase.CULL:
            return state.with_discard(card, self.traits, self.np_random)
        if state.battle is None:
            return state.with_attack(card, category, self.traits[card])
        return state.with_defense(card, self.traits[card])

    def _advance(self):
        """推进所有非玩家步骤，直到轮到玩家或游戏结束"""
        state = self._state
        while not state.is_finished:
            battle = state.battle
            if battle is not None and battle.is_ready:
                state = state.with_resolution(self.classifier)
            elif battle is not None and battle.is_resolved:
                state = state.with_round_cleared()
            elif state.pending_side == Side.OPPONENT:
                state = self._opponent_move(state)
            else:
                break
        self._state = state

    def _opponent_move(self, state: GameState) -> GameState:
        deck = list(state.unused_cards(Side.OPPONENT))
        if state.battle is None:
            card, category = choose_attack(
                deck, self.traits, state.mode, self.classifier, self.np_random
            )
            return state.with_attack(card, category, self.traits[card])
        card = choose_defense(
            deck,
            state.battle.category,
            state.battle.attack.trait.value,
            self.traits,
            self.np_random,
        )
        return state.with_defense(card, self.traits[card])

    def _compute_reward(self, rounds_before: int) -> float:
        reward = 0.0
        for result in self._state.results[rounds_before:]:
            reward += 1.0 if result.winner == Side.PLAYER else -1.0
        return reward

    def _build_observation(self) -> Dict[str, np.ndarray]:
        return self._obs_builder.build(self._state, self.traits).to_dict()

    def _build_info(self) -> Dict[str, Any]:
        legal_actions = legal_action_indices(self._state)
        info = {
            "phase": self._state.phase.value,
            "mode": self._state.mode.value,
            "round": self._state.round_number,
            "scores": self._state.scores(),
            "legal_actions": legal_actions,
            "legal_action_mask": build_legal_mask(legal_actions),
            "state": self._state,
            "traits": self.traits,
        }
        if self._state.last_result is not None:
            info["last_result"] = self._state.last_result.message
        if self._state.is_finished:
            info["outcome"] = self._state.outcome.value
        return info

    def render(self) -> Optional[str]:
        if self.render_mode == "ansi" or self.render_mode == "human":
            return self._render_text()
        return None

    def _render_text(self) -> str:
        state = self._state
        lines = []
        lines.append("=" * 50)
        lines.append(f"Mode: {state.mode.value}  Phase: {state.phase.value}")
        lines.append(f"Score: player {state.player_score} - {state.opponent_score} opponent")

        if state.phase == Phase.CULL:
            cards = state.undiscarded
            lines.append(f"Discarded: {list(state.discarded)}")
        else:
            cards = state.player_deck
        for card in cards:
            record = self.traits.get(card)
            detail = record_to_str(record, list(state.mode.active_traits)) if record else "?"
            lines.append(f"  #{card}: {detail}")

        if state.battle is not None:
            lines.append(f"Attack: {state.battle.attack.trait} (#{state.battle.attack.card})")
            if state.battle.defense is not None:
                lines.append(f"Defense: {state.battle.defense.trait}")

        if state.last_result is not None:
            lines.append(f"Last: {state.last_result.message}")

        if state.is_finished:
            lines.append(f"Outcome: {state.outcome.value}")

        lines.append("=" * 50)

        output = "\n".join(lines)
        if self.render_mode == "human":
            print(output)
        return output

    def close(self):
        asyncio.run(self.resolver.close())

    @property
    def state(self) -> Optional[GameState]:
        """获取当前状态 (用于调试)"""
        return self._state

    def get_legal_actions(self) -> List[int]:
        """获取当前合法动作"""
        if self._state is None:
            return []
        return legal_action_indices(self._state)

    def sample_action(self) -> int:
        """随机采样一个合法动作"""
        legal_actions = self.get_legal_actions()
        if not legal_actions:
            return 0
        return int(legal_actions[int(self.np_random.integers(len(legal_actions)))])


def make_env(env_id: str = "TraitClash-v0", **kwargs) -> TraitClashEnv:
    """
    工厂函数：创建环境

    Args:
        env_id: 环境 ID
        **kwargs: 环境参数

    Returns:
        TraitClashEnv 实例
    """
    return TraitClashEnv(**kwargs)
