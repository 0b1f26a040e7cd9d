"""
Providers Layer - 外部数据协作方

Modules:
    base: 接口定义
    synthetic: 合成特征
    remote: 远程特征与卡图探测 (aiohttp)
    resolver: 缓存 + 兜底的特征解析器
"""
from .base import TraitProvider, TraitProviderError, AssetProbe
from .synthetic import SyntheticTraitProvider, OfflineAssetProbe
from .remote import RemoteTraitProvider, HttpAssetProbe, extract_attributes
from .resolver import TraitResolver

__all__ = [
    "TraitProvider",
    "TraitProviderError",
    "AssetProbe",
    "SyntheticTraitProvider",
    "OfflineAssetProbe",
    "RemoteTraitProvider",
    "HttpAssetProbe",
    "extract_attributes",
    "TraitResolver",
]
