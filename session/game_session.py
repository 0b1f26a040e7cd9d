"""
对局会话

把纯状态机与异步协作方 (卡池探测、特征解析、倒计时) 连接起来:
- 玩家动作: discard / attack / defend
- AI 在轮到自己时自动行动
- 双方出牌后自动结算，展示后清除回合
- 每次状态转移都会把新快照推送给订阅者

所有状态转移在同一把锁内串行执行。
"""
from typing import Callable, List, Optional, Tuple, Union
import asyncio
import logging

import numpy as np

from core.pool import CardPool
from core.rarity import RarityClassifier
from core.state import GameState, Phase, Side, HAND_SIZE
from core.strategy import choose_attack, choose_defense
from core.traits import GameMode, TraitCategory, category_from_label
from providers.base import AssetProbe
from providers.resolver import TraitResolver

from .config import SessionConfig
from .countdown import Countdown

logger = logging.getLogger(__name__)


Subscriber = Callable[[GameState], None]
Transition = Callable[[GameState], GameState]


def _decision_scope(state: GameState) -> Tuple:
    """
    倒计时所属的决策范围

    整理阶段共用一个倒计时；对战阶段每次进攻、每次防守各自一个
    """
    if state.phase == Phase.CULL:
        return (Phase.CULL,)
    if state.phase == Phase.COMBAT:
        has_attack = state.battle is not None
        return (Phase.COMBAT, state.round_number, state.pending_side, has_attack)
    return (state.phase,)


class GameSession:
    """
    单局游戏会话

    Args:
        resolver: 特征解析器
        probe: 卡图探测
        classifier: 稀有度分类器 (默认使用包内数据集)
        config: 会话配置
        rng: 随机数生成器
    """

    def __init__(
        self,
        resolver: TraitResolver,
        probe: AssetProbe,
        classifier: Optional[RarityClassifier] = None,
        config: Optional[SessionConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or SessionConfig()
        self.resolver = resolver
        self.probe = probe
        self.classifier = classifier or RarityClassifier.default()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)

        self.countdown = Countdown(
            self.config.countdown_seconds,
            self._on_expire,
            tick=self.config.tick_seconds,
        )

        self._state: Optional[GameState] = None
        self._lock = asyncio.Lock()
        self._finished = asyncio.Event()
        self._subscribers: List[Subscriber] = []

    @property
    def state(self) -> Optional[GameState]:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        订阅状态快照

        Returns:
            取消订阅函数
        """
        self._subscribers.append(callback)
        if self._state is not None:
            callback(self._state)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def _set_state(self, new_state: GameState) -> None:
        old_state = self._state
        if old_state is None or _decision_scope(old_state) != _decision_scope(new_state):
            self.countdown.cancel()
        self._state = new_state
        for callback in list(self._subscribers):
            callback(new_state)

    async def _apply(self, transition: Transition, seen: GameState) -> bool:
        """
        在锁内执行状态转移

        若状态在决策期间已被其他路径修改，则放弃本次转移
        """
        async with self._lock:
            if self._state is not seen:
                return False
            self._set_state(transition(seen))
            return True

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    async def start(self, mode: Optional[Union[GameMode, str]] = None) -> GameState:
        """
        开始新对局

        1. 抽卡并等待足够的可用卡
        2. 预取双方 24 张卡的特征
        3. 进入整理阶段并启动倒计时

        Returns:
            初始状态
        """
        mode = GameMode(mode if mode is not None else self.config.mode)
        self._finished.clear()
        self.resolver.clear()

        pool = CardPool(
            self.probe,
            low=self.config.card_id_min,
            high=self.config.card_id_max,
            draw_size=self.config.draw_size,
        )
        valid = await pool.gather(2 * HAND_SIZE, self.rng)
        player_hand = valid[:HAND_SIZE]
        opponent_hand = valid[HAND_SIZE:2 * HAND_SIZE]

        await self.resolver.resolve_many(player_hand + opponent_hand)

        async with self._lock:
            self._state = None
            self._set_state(GameState.initial(player_hand, opponent_hand, mode))
        logger.info(f"Game started in {mode.value} mode")

        await self._advance()
        return self._state

    async def wait_finished(self) -> GameState:
        await self._finished.wait()
        return self._state

    async def close(self) -> None:
        self.countdown.cancel()
        await self.resolver.close()
        await self.probe.close()

    # ------------------------------------------------------------------
    # 玩家动作
    # ------------------------------------------------------------------

    async def _player_action(self, transition: Transition) -> GameState:
        async with self._lock:
            if self._state is None:
                raise RuntimeError("Session not started. Call start() first.")
            if self._state.pending_side != Side.PLAYER:
                raise ValueError("It is not the player's decision")
            self._set_state(transition(self._state))
        await self._advance()
        return self._state

    async def discard(self, card: int) -> GameState:
        """整理阶段丢弃一张手牌"""
        return await self._player_action(
            lambda s: s.with_discard(card, self.resolver.cached, self.rng)
        )

    async def attack(self, card: int, category: Union[TraitCategory, str]) -> GameState:
        """玩家进攻"""
        if not isinstance(category, TraitCategory):
            category = category_from_label(category)
        record = await self.resolver.resolve(card)
        return await self._player_action(lambda s: s.with_attack(card, category, record))

    async def defend(self, card: int) -> GameState:
        """玩家防守"""
        record = await self.resolver.resolve(card)
        return await self._player_action(lambda s: s.with_defense(card, record))

    # ------------------------------------------------------------------
    # 自动推进
    # ------------------------------------------------------------------

    async def _advance(self) -> None:
        """推进所有无需玩家参与的步骤，直到轮到玩家或游戏结束"""
        while True:
            state = self._state
            if state is None:
                return

            if state.is_finished:
                self.countdown.cancel()
                self._finished.set()
                return

            battle = state.battle
            if battle is not None and battle.is_ready:
                await asyncio.sleep(self.config.resolve_delay)
                await self._apply(lambda s: s.with_resolution(self.classifier), state)
                continue

            if battle is not None and battle.is_resolved:
                await asyncio.sleep(self.config.display_delay)
                await self._apply(lambda s: s.with_round_cleared(), state)
                continue

            side = state.pending_side
            if side == Side.OPPONENT:
                await asyncio.sleep(self.config.ai_delay)
                await self._opponent_move(state)
                continue

            if side == Side.PLAYER and not self.countdown.running:
                self.countdown.start()
            return

    async def _opponent_move(self, state: GameState) -> None:
        traits = self.resolver.cached
        deck = list(state.unused_cards(Side.OPPONENT))

        if state.battle is None:
            card, category = choose_attack(
                deck, traits, state.mode, self.classifier, self.rng
            )
            record = await self.resolver.resolve(card)
            logger.info(f"Opponent attacks with card {card} on {category.label}")
            await self._apply(lambda s: s.with_attack(card, category, record), state)
        else:
            card = choose_defense(
                deck, state.battle.category, state.battle.attack.trait.value, traits, self.rng
            )
            record = await self.resolver.resolve(card)
            logger.info(f"Opponent defends with card {card}")
            await self._apply(lambda s: s.with_defense(card, record), state)

    async def _on_expire(self, generation: int) -> None:
        """倒计时到期: 替玩家做出随机的强制动作"""
        state = self._state
        if state is None or state.pending_side != Side.PLAYER:
            return
        if not self.countdown.is_current(generation):
            return

        if state.phase == Phase.CULL:
            applied = await self._apply(
                lambda s: s.with_forced_discards(self.resolver.cached, self.rng), state
            )
        else:
            card, category = state.forced_choice(self.rng)
            record = await self.resolver.resolve(card)
            if category is not None:
                logger.info(f"Timer expired, forcing attack with card {card} on {category.label}")
                transition = lambda s: s.with_attack(card, category, record)
            else:
                logger.info(f"Timer expired, forcing defense with card {card}")
                transition = lambda s: s.with_defense(card, record)
            applied = await self._apply(transition, state)

        if applied:
            await self._advance()
