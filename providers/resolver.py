"""
特征解析器

主提供方 + 兜底提供方 + 会话级缓存:
- 主提供方失败 (或数据不完整) 时使用兜底提供方 (合成数据)
- 每张卡在一个会话内最多解析一次
- 同一张卡的并发请求共享同一个任务
- resolve 永不抛出提供方错误，调用方无需区分"网络是否成功"
"""
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional
import asyncio
import logging

from core.traits import TraitRecord
from .base import TraitProvider, TraitProviderError
from .synthetic import SyntheticTraitProvider

logger = logging.getLogger(__name__)


class TraitResolver:
    """
    带缓存与兜底策略的特征解析器

    Attributes:
        primary: 主提供方
        fallback: 兜底提供方 (必须不会失败)
    """

    def __init__(
        self,
        primary: TraitProvider,
        fallback: Optional[TraitProvider] = None,
    ):
        self.primary = primary
        self.fallback = fallback if fallback is not None else SyntheticTraitProvider()
        self._cache: Dict[int, TraitRecord] = {}
        self._inflight: Dict[int, asyncio.Task] = {}
        self.fallback_count = 0

    @property
    def cached(self) -> Mapping[int, TraitRecord]:
        """已解析的特征 (只读视图)"""
        return MappingProxyType(self._cache)

    def peek(self, card_id: int) -> Optional[TraitRecord]:
        """不触发请求，仅查看缓存"""
        return self._cache.get(card_id)

    async def _load(self, card_id: int) -> TraitRecord:
        try:
            record = await self.primary.fetch(card_id)
        except TraitProviderError as e:
            logger.warning(f"Trait lookup failed ({e}), using {self.fallback.name} traits")
            self.fallback_count += 1
            record = await self.fallback.fetch(card_id)
        except Exception as e:
            logger.warning(
                f"Unexpected error from {self.primary.name} for card {card_id} "
                f"({type(e).__name__}: {e}), using {self.fallback.name} traits"
            )
            self.fallback_count += 1
            record = await self.fallback.fetch(card_id)
        self._cache[card_id] = record
        return record

    async def resolve(self, card_id: int) -> TraitRecord:
        """
        解析单张卡的特征

        Returns:
            特征记录 (主提供方或兜底提供方)
        """
        record = self._cache.get(card_id)
        if record is not None:
            logger.debug(f"Trait cache hit for card {card_id}")
            return record

        task = self._inflight.get(card_id)
        if task is None:
            task = asyncio.ensure_future(self._load(card_id))
            self._inflight[card_id] = task
            task.add_done_callback(lambda t, cid=card_id: self._forget(cid, t))
        return await asyncio.shield(task)

    def _forget(self, card_id: int, task: asyncio.Task) -> None:
        if self._inflight.get(card_id) is task:
            del self._inflight[card_id]

    async def resolve_many(self, card_ids: Iterable[int]) -> List[TraitRecord]:
        """并发解析多张卡"""
        card_ids = list(card_ids)
        return list(await asyncio.gather(*(self.resolve(cid) for cid in card_ids)))

    def clear(self) -> None:
        """新会话开始时清空缓存，并取消上一会话未完成的请求"""
        for task in list(self._inflight.values()):
            task.cancel()
        self._inflight.clear()
        self._cache.clear()

    async def close(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        await self.primary.close()
        await self.fallback.close()
