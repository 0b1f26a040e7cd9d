"""
Session Layer - 异步对局编排

Modules:
    config: 会话与数据源配置
    countdown: 可取消倒计时
    game_session: 对局会话
"""
from .config import SessionConfig, ProviderConfig
from .countdown import Countdown
from .game_session import GameSession

__all__ = [
    "SessionConfig",
    "ProviderConfig",
    "Countdown",
    "GameSession",
]
