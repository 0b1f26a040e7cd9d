"""
外部协作方接口

- TraitProvider: 按卡号异步获取特征记录
- AssetProbe: 按卡号异步确认资源 (图片) 是否可加载
"""
from abc import ABC, abstractmethod

from core.traits import TraitRecord


class TraitProviderError(Exception):
    """特征获取失败或数据不完整"""

    def __init__(self, card_id: int, reason: str):
        super().__init__(f"Card {card_id}: {reason}")
        self.card_id = card_id
        self.reason = reason


class TraitProvider(ABC):
    """特征提供方基类"""

    name: str = "provider"

    @abstractmethod
    async def fetch(self, card_id: int) -> TraitRecord:
        """
        获取特征记录

        Raises:
            TraitProviderError: 获取失败或数据缺少必要字段
        """
        raise NotImplementedError

    async def close(self) -> None:
        """释放资源"""
        pass


class AssetProbe(ABC):
    """资源探测基类"""

    @abstractmethod
    async def is_loadable(self, card_id: int) -> bool:
        raise NotImplementedError

    async def __call__(self, card_id: int) -> bool:
        return await self.is_loadable(card_id)

    async def close(self) -> None:
        pass
