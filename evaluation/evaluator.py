"""
评估器

在无头环境中批量对局，统计智能体对内置 AI 的表现
"""
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
import logging

import numpy as np

from core.rarity import RarityClassifier
from core.state import GameState, Outcome, Phase, Side
from core.strategy import choose_attack, choose_defense, cull_hand
from env.observation import encode_action

logger = logging.getLogger(__name__)


@dataclass
class EvalResult:
    """评估结果"""
    win_rate: float
    avg_reward: float
    avg_length: float
    games_played: int
    avg_rounds: float = 0.0
    avg_margin: float = 0.0
    extra_stats: Dict[str, float] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"EvalResult(win_rate={self.win_rate:.2%}, "
            f"avg_reward={self.avg_reward:.2f}, "
            f"games={self.games_played})"
        )


class Agent:
    """智能体基类"""

    def __init__(self, name: str = "agent"):
        self.name = name

    def act(self, obs: Dict[str, Any], legal_actions: List[int], info: Optional[Dict] = None) -> int:
        """选择动作"""
        raise NotImplementedError

    def reset(self):
        """重置状态"""
        pass


class RandomAgent(Agent):
    """随机智能体"""

    def __init__(self, name: str = "random", seed: Optional[int] = None):
        super().__init__(name)
        self.rng = np.random.default_rng(seed)

    def act(self, obs: Dict[str, Any], legal_actions: List[int], info: Optional[Dict] = None) -> int:
        if not legal_actions:
            return 0
        return int(legal_actions[int(self.rng.integers(len(legal_actions)))])


class GreedyAgent(Agent):
    """
    贪心智能体

    在玩家席位上使用与内置 AI 相同的启发式:
    整理时丢最弱卡，进攻选最强组合，防守用能赢的最弱卡
    """

    def __init__(
        self,
        name: str = "greedy",
        classifier: Optional[RarityClassifier] = None,
        seed: Optional[int] = None,
    ):
        super().__init__(name)
        self.classifier = classifier or RarityClassifier.default()
        self.rng = np.random.default_rng(seed)

    def act(self, obs: Dict[str, Any], legal_actions: List[int], info: Optional[Dict] = None) -> int:
        if not legal_actions:
            return 0
        if info is None or "state" not in info:
            return int(legal_actions[0])

        state: GameState = info["state"]
        traits = info.get("traits", {})

        if state.phase == Phase.CULL:
            _, dropped = cull_hand(state.undiscarded, traits, self.rng, discard=1)
            return encode_action(state.player_hand.index(dropped[0]))

        deck = list(state.unused_cards(Side.PLAYER))
        if state.battle is None:
            card, category = choose_attack(
                deck, traits, state.mode, self.classifier, self.rng
            )
            return encode_action(state.player_hand.index(card), category)

        card = choose_defense(
            deck, state.battle.category, state.battle.attack.trait.value, traits, self.rng
        )
        return encode_action(state.player_hand.index(card))


class Evaluator:
    """
    评估器

    评估智能体在环境中的表现
    """

    def __init__(self, env_fn: Callable):
        self.env_fn = env_fn

    def _play(self, env, agent: Agent, seed: Optional[int] = None) -> Dict[str, Any]:
        agent.reset()
        obs, info = env.reset(seed=seed)
        done = False
        episode_reward = 0.0
        episode_length = 0

        while not done:
            legal_actions = env.get_legal_actions()
            action = agent.act(obs, legal_actions, info)
            obs, reward, terminated, truncated, info = env.step(action)
            done = terminated or truncated
            episode_reward += reward
            episode_length += 1

        state: GameState = info["state"]
        return {
            "won": state.outcome == Outcome.WIN,
            "reward": episode_reward,
            "length": episode_length,
            "rounds": state.round_number,
            "margin": state.player_score - state.opponent_score,
        }

    def evaluate(
        self,
        agent: Agent,
        n_games: int = 100,
        seed: Optional[int] = None,
        verbose: bool = False,
    ) -> EvalResult:
        """
        评估智能体

        Args:
            agent: 待评估智能体 (玩家席位)
            n_games: 游戏数量
            seed: 第一局的随机种子 (之后每局递增)
            verbose: 是否输出详情

        Returns:
            评估结果
        """
        env = self.env_fn()

        wins = 0
        total_reward = 0.0
        total_length = 0
        total_rounds = 0
        total_margin = 0

        try:
            for game_idx in range(n_games):
                game_seed = seed + game_idx if seed is not None else None
                stats = self._play(env, agent, game_seed)

                wins += int(stats["won"])
                total_reward += stats["reward"]
                total_length += stats["length"]
                total_rounds += stats["rounds"]
                total_margin += stats["margin"]

                if verbose and (game_idx + 1) % 10 == 0:
                    logger.info(f"Game {game_idx + 1}/{n_games}, Win rate: {wins/(game_idx+1):.2%}")
        finally:
            env.close()

        return EvalResult(
            win_rate=wins / n_games if n_games > 0 else 0.0,
            avg_reward=total_reward / n_games if n_games > 0 else 0.0,
            avg_length=total_length / n_games if n_games > 0 else 0.0,
            games_played=n_games,
            avg_rounds=total_rounds / n_games if n_games > 0 else 0.0,
            avg_margin=total_margin / n_games if n_games > 0 else 0.0,
        )

    def compare(
        self,
        agent1: Agent,
        agent2: Agent,
        n_games: int = 100,
        seed: int = 0,
    ) -> Dict[str, float]:
        """
        对比两个智能体

        两者使用相同的种子序列 (相同的发牌) 分别对阵内置 AI

        Returns:
            对比结果
        """
        result1 = self.evaluate(agent1, n_games, seed=seed)
        result2 = self.evaluate(agent2, n_games, seed=seed)

        return {
            "agent1_win_rate": result1.win_rate,
            "agent2_win_rate": result2.win_rate,
            "agent1_avg_reward": result1.avg_reward,
            "agent2_avg_reward": result2.avg_reward,
        }
