"""
远程特征与资源

- RemoteTraitProvider: 通过 NFT 元数据接口获取 attributes
- HttpAssetProbe: 请求卡图，HTTP 200 且为图片即视为可用
"""
from typing import Any, Dict, List, Optional
import asyncio
import logging

import aiohttp

from core.traits import TraitRecord
from .base import AssetProbe, TraitProvider, TraitProviderError

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://eth-mainnet.g.alchemy.com/nft/v3"
DEFAULT_CONTRACT = "0xb9951b43802dcf3ef5b14567cb17adf367ed1c0f"


def extract_attributes(data: Any) -> List[Dict[str, Any]]:
    """从元数据响应中取出 attributes (raw.metadata 优先，其次 metadata)"""
    if not isinstance(data, dict):
        return []
    for container in ((data.get("raw") or {}).get("metadata"), data.get("metadata")):
        if isinstance(container, dict):
            attributes = container.get("attributes")
            if isinstance(attributes, list) and attributes:
                return attributes
    return []


class RemoteTraitProvider(TraitProvider):
    """
    NFT 元数据特征提供方

    请求: {base_url}/{api_key}/getNFTMetadata?contractAddress=...&tokenId=...
    """

    name = "remote"

    def __init__(
        self,
        api_key: str,
        contract_address: str = DEFAULT_CONTRACT,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay_s: float = 0.5,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            api_key: 接口密钥
            contract_address: 合约地址
            base_url: 接口根地址
            timeout: 单次请求超时 (秒)
            max_retries: 限流 (429) 时的重试次数
            retry_delay_s: 重试基础间隔
            session: 外部传入的会话 (不传则自动创建并在 close 时关闭)
        """
        self.api_key = api_key
        self.contract_address = contract_address
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay_s = retry_delay_s
        self._session = session
        self._owns_session = session is None

    def _url(self) -> str:
        return f"{self.base_url}/{self.api_key}/getNFTMetadata"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def fetch_attributes(self, card_id: int) -> List[Dict[str, Any]]:
        """
        获取原始 attributes 列表

        Raises:
            TraitProviderError: 请求失败
        """
        params = {
            "contractAddress": self.contract_address,
            "tokenId": str(card_id),
            "refreshCache": "false",
        }
        session = self._get_session()

        for attempt in range(self.max_retries + 1):
            try:
                async with session.get(self._url(), params=params) as response:
                    if response.status == 429 and attempt < self.max_retries:
                        await asyncio.sleep(self.retry_delay_s * (attempt + 1) * 2)
                        continue
                    if response.status != 200:
                        raise TraitProviderError(card_id, f"HTTP {response.status}")
                    data = await response.json(content_type=None)
                    return extract_attributes(data)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                raise TraitProviderError(card_id, f"request failed: {e}") from e

        raise TraitProviderError(card_id, "rate limited")

    async def fetch(self, card_id: int) -> TraitRecord:
        attributes = await self.fetch_attributes(card_id)
        if not attributes:
            raise TraitProviderError(card_id, "no attributes")
        record = TraitRecord.from_attributes(attributes)
        if record is None:
            raise TraitProviderError(card_id, "missing class or race")
        return record

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()


class HttpAssetProbe(AssetProbe):
    """
    卡图探测

    url_template 中的 {id} 会被替换为卡号
    """

    def __init__(
        self,
        url_template: str,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def is_loadable(self, card_id: int) -> bool:
        url = self.url_template.format(id=card_id)
        try:
            async with self._get_session().get(url) as response:
                content_type = response.headers.get("Content-Type", "")
                ok = response.status == 200 and content_type.startswith("image/")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Asset probe failed for card {card_id}: {e}")
            return False
        logger.debug(f"Asset probe card {card_id}: {'ok' if ok else 'missing'}")
        return ok

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
