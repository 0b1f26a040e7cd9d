"""
卡池选择

从编号区间内随机抽取不重复的卡，交给资源探测方确认可用，
只暴露确认可用的卡 (按确认先后顺序)。
抽样数量应多于所需，以容忍任意比例的失效编号。
"""
from typing import Awaitable, Callable, Iterable, List, Optional, Set
import asyncio
import logging

import numpy as np

logger = logging.getLogger(__name__)


CARD_ID_MIN = 1
CARD_ID_MAX = 3968
DEFAULT_DRAW_SIZE = 48

Probe = Callable[[int], Awaitable[bool]]


def draw_card_ids(
    n: int,
    low: int,
    high: int,
    rng: np.random.Generator,
    exclude: Iterable[int] = (),
) -> List[int]:
    """
    在闭区间 [low, high] 内抽取 n 个不重复的编号

    Args:
        n: 数量 (可用编号不足时返回全部剩余编号)
        low / high: 区间边界
        rng: 随机数生成器
        exclude: 排除的编号

    Returns:
        编号列表
    """
    if high < low:
        raise ValueError(f"Empty id range [{low}, {high}]")
    excluded = set(exclude)
    available = np.array(
        [i for i in range(low, high + 1) if i not in excluded], dtype=np.int64
    )
    n = min(n, len(available))
    if n <= 0:
        return []
    picks = rng.choice(available, size=n, replace=False)
    return [int(i) for i in picks]


class CardPool:
    """
    可用卡池

    Attributes:
        valid: 已确认可用的卡 (按确认顺序)
        drawn: 已抽取过的全部编号
    """

    def __init__(
        self,
        probe: Probe,
        low: int = CARD_ID_MIN,
        high: int = CARD_ID_MAX,
        draw_size: int = DEFAULT_DRAW_SIZE,
    ):
        self.probe = probe
        self.low = low
        self.high = high
        self.draw_size = draw_size
        self.valid: List[int] = []
        self.drawn: Set[int] = set()

    async def _check(self, card_id: int) -> Optional[int]:
        try:
            ok = await self.probe(card_id)
        except Exception as e:
            logger.debug(f"Probe failed for card {card_id}: {e}")
            return None
        return card_id if ok else None

    async def gather(self, threshold: int, rng: np.random.Generator) -> List[int]:
        """
        抽卡并探测，直到可用卡数达到阈值

        一批探测全部完成仍不足时，抽取新的一批 (排除已抽过的编号)

        Args:
            threshold: 所需可用卡数
            rng: 随机数生成器

        Returns:
            可用卡 (按确认顺序，长度 >= threshold)

        Raises:
            ValueError: 编号区间耗尽仍不足
        """
        while len(self.valid) < threshold:
            batch = draw_card_ids(self.draw_size, self.low, self.high, rng, exclude=self.drawn)
            if not batch:
                raise ValueError(
                    f"Card id range exhausted with only {len(self.valid)}/{threshold} valid cards"
                )
            self.drawn.update(batch)

            tasks = [asyncio.ensure_future(self._check(card_id)) for card_id in batch]
            try:
                for next_done in asyncio.as_completed(tasks):
                    card_id = await next_done
                    if card_id is not None:
                        self.valid.append(card_id)
                        if len(self.valid) >= threshold:
                            break
            finally:
                pending = [task for task in tasks if not task.done()]
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)

            if len(self.valid) < threshold:
                logger.warning(
                    f"Still gathering cards: {len(self.valid)}/{threshold} valid "
                    f"after {len(self.drawn)} drawn"
                )

        logger.info(f"Card pool ready: {len(self.valid)} valid of {len(self.drawn)} drawn")
        return list(self.valid)
