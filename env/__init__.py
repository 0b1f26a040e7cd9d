"""
Environment Layer - Gymnasium 兼容环境

Modules:
    battle_env: 主环境类
    observation: 观测空间与动作编码
"""
from .battle_env import (
    TraitClashEnv,
    make_env,
)

from .observation import (
    Observation,
    ObservationBuilder,
    NUM_ACTIONS,
    NUM_CATEGORIES,
    encode_action,
    decode_action,
    encode_trait,
    encode_record,
    legal_action_indices,
    build_legal_mask,
)

__all__ = [
    # env
    "TraitClashEnv",
    "make_env",
    # observation
    "Observation",
    "ObservationBuilder",
    "NUM_ACTIONS",
    "NUM_CATEGORIES",
    "encode_action",
    "decode_action",
    "encode_trait",
    "encode_record",
    "legal_action_indices",
    "build_legal_mask",
]
