"""
可取消倒计时

每个倒计时属于一个决策阶段，阶段结束时必须取消，
否则过期回调会作用到之后的阶段上。
每次 start/cancel 都会递增 generation，过期回调只在 generation 未变时触发。
"""
from typing import Awaitable, Callable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)


ExpireCallback = Callable[[int], Awaitable[None]]


class Countdown:
    """
    基于 asyncio 的倒计时

    Args:
        seconds: 总时长
        on_expire: 到期回调，参数为启动时的 generation
        tick: 步长
        on_tick: 每步回调，参数为剩余时间
    """

    def __init__(
        self,
        seconds: float,
        on_expire: ExpireCallback,
        tick: float = 1.0,
        on_tick: Optional[Callable[[float], None]] = None,
    ):
        if tick <= 0:
            raise ValueError("tick must be positive")
        self.seconds = seconds
        self.tick = tick
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.remaining = seconds
        self.generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def start(self) -> int:
        """(重新) 开始倒计时，返回本次的 generation"""
        self.cancel()
        self.remaining = self.seconds
        self._task = asyncio.ensure_future(self._run(self.generation))
        return self.generation

    def cancel(self) -> None:
        self.generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, generation: int) -> None:
        while self.remaining > 0:
            await asyncio.sleep(min(self.tick, self.remaining))
            if not self.is_current(generation):
                return
            remaining = self.remaining - self.tick
            self.remaining = remaining if remaining > 1e-9 else 0.0
            if self.on_tick is not None:
                self.on_tick(self.remaining)

        if not self.is_current(generation):
            return
        # 到期回调可能触发新的状态转移并取消本倒计时，先与任务解绑
        self._task = None
        logger.debug(f"Countdown expired (generation {generation})")
        await self.on_expire(generation)
