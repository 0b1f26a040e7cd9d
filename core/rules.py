"""
规则引擎 - 回合胜负判定

所有方法都是纯函数，无状态
"""
from dataclasses import dataclass
from typing import Optional
import math

from .traits import TraitCategory, TraitScalar
from .rarity import COMMON_COUNT, RarityClassifier


@dataclass(frozen=True)
class Verdict:
    """
    单回合判定结果

    Attributes:
        attacker_wins: 进攻方是否获胜 (否则防守方获胜，不存在平局)
        message: 可读的结果描述
        attacker_count: 进攻方特征值的出现次数 (仅类别特征比较时有意义)
        defender_count: 防守方特征值的出现次数
    """
    attacker_wins: bool
    message: str
    attacker_count: Optional[int] = None
    defender_count: Optional[int] = None


def _is_number(value: TraitScalar) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_number(value: TraitScalar) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


class BattleRules:
    """
    回合判定规则

    - 数值特征: 大者胜，相等时防守方胜
    - Reward Rate: 按数值比较，大者胜，相等或无法解析时防守方胜
    - 其他类别特征: 出现次数更少 (更稀有) 者胜，相等时防守方胜
    """

    @staticmethod
    def resolve(
        category: TraitCategory,
        attacker_value: TraitScalar,
        defender_value: TraitScalar,
        classifier: RarityClassifier,
    ) -> Verdict:
        """
        判定一个回合

        Args:
            category: 本回合比较的特征类别
            attacker_value: 进攻方的特征值
            defender_value: 防守方的特征值
            classifier: 稀有度分类器

        Returns:
            判定结果
        """
        if _is_number(attacker_value) and _is_number(defender_value):
            return BattleRules.compare_numeric(category, attacker_value, defender_value)
        if category == TraitCategory.REWARD:
            return BattleRules.compare_reward(category, attacker_value, defender_value)
        return BattleRules.compare_rarity(category, attacker_value, defender_value, classifier)

    @staticmethod
    def compare_numeric(category: TraitCategory, a: TraitScalar, d: TraitScalar) -> Verdict:
        label = category.label
        if a > d:
            return Verdict(True, f"{label} {a} Beats {d}")
        if d > a:
            return Verdict(False, f"{label} {d} Beats {a}")
        return Verdict(False, f"{label} {a} vs {d} Tie! Defender wins")

    @staticmethod
    def compare_reward(category: TraitCategory, a: TraitScalar, d: TraitScalar) -> Verdict:
        label = category.label
        a_num = _parse_number(a)
        d_num = _parse_number(d)
        if a_num is None or d_num is None:
            return Verdict(False, f"{label}: {a} vs {d} - Defender wins")
        if a_num > d_num:
            return Verdict(True, f"{label}: {a} Beats {d}")
        if d_num > a_num:
            return Verdict(False, f"{label}: {d} Beats {a}")
        return Verdict(False, f"{label}: {a} vs {d} Tie! Defender wins")

    @staticmethod
    def compare_rarity(
        category: TraitCategory,
        a: TraitScalar,
        d: TraitScalar,
        classifier: RarityClassifier,
    ) -> Verdict:
        label = category.label
        a_count = classifier.count(category, a)
        d_count = classifier.count(category, d)
        show_counts = a_count < COMMON_COUNT and d_count < COMMON_COUNT

        def fmt(value, count):
            return f"{value} ({count})" if show_counts else f"{value}"

        if a_count < d_count:
            message = f"{label}: {fmt(a, a_count)} Beats {fmt(d, d_count)}"
            return Verdict(True, message, a_count, d_count)
        if d_count < a_count:
            message = f"{label}: {fmt(d, d_count)} Beats {fmt(a, a_count)}"
            return Verdict(False, message, a_count, d_count)
        message = f"{label}: {fmt(a, a_count)} vs {fmt(d, d_count)} Tie! Defender wins"
        return Verdict(False, message, a_count, d_count)
