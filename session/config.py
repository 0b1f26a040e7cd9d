"""
会话配置

定义对局节奏、卡池与外部数据源相关的配置
"""
from dataclasses import dataclass
from typing import Optional


@dataclass
class SessionConfig:
    """
    对局配置

    Attributes:
        mode: 游戏模式 ("omnipresent" / "chaotic" / "threat-intelligence")
        countdown_seconds: 每个决策的倒计时
        tick_seconds: 倒计时步长
        ai_delay: AI 行动前的延迟
        resolve_delay: 双方出牌后到结算的延迟
        display_delay: 结算结果展示时长
        card_id_min / card_id_max: 卡号区间
        draw_size: 每批抽取的卡数 (多于所需以容忍失效卡)
        seed: 随机种子
    """
    mode: str = "omnipresent"

    # 倒计时
    countdown_seconds: float = 30.0
    tick_seconds: float = 1.0

    # 节奏 (仅用于动画，无头运行时可设为 0)
    ai_delay: float = 1.5
    resolve_delay: float = 1.5
    display_delay: float = 1.5

    # 卡池
    card_id_min: int = 1
    card_id_max: int = 3968
    draw_size: int = 48

    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, d: dict) -> 'SessionConfig':
        valid_keys = cls.__dataclass_fields__.keys()
        filtered = {k: v for k, v in d.items() if k in valid_keys}
        return cls(**filtered)

    @classmethod
    def headless(cls, **overrides) -> 'SessionConfig':
        """无动画延迟的配置 (测试与模拟使用)"""
        params = dict(ai_delay=0.0, resolve_delay=0.0, display_delay=0.0)
        params.update(overrides)
        return cls(**params)


@dataclass
class ProviderConfig:
    """
    外部数据源配置

    Attributes:
        api_key: 元数据接口密钥 (为空时只使用合成特征)
        contract_address: 合约地址
        base_url: 元数据接口根地址
        image_url_template: 卡图地址模板，{id} 为卡号
        timeout: 请求超时
        synthetic_seed: 合成特征的随机种子
    """
    api_key: str = ""
    contract_address: str = "0xb9951b43802dcf3ef5b14567cb17adf367ed1c0f"
    base_url: str = "https://eth-mainnet.g.alchemy.com/nft/v3"
    image_url_template: str = "https://neo-tokyo.nyc3.cdn.digitaloceanspaces.com/s1Citizen/pngs/{id}.png"
    timeout: float = 10.0
    synthetic_seed: Optional[int] = None

    @classmethod
    def from_dict(cls, d: dict) -> 'ProviderConfig':
        valid_keys = cls.__dataclass_fields__.keys()
        filtered = {k: v for k, v in d.items() if k in valid_keys}
        return cls(**filtered)
