"""
特征定义与编码

每张卡 (citizen) 携带 16 项特征:
- 11 项类别特征 (Class, Race, Eyes, ...)
- 5 项数值特征 (Strength, Intelligence, Attractiveness, Tech Skill, Cool)，取值 [1, 100]
"""
from dataclasses import dataclass, fields
import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union


TraitScalar = Union[int, str]


class TraitCategory(Enum):
    """特征类别 (value 为稀有度数据集中的键)"""
    CLASS = "Class"
    RACE = "Race"
    EYES = "Eyes"
    LOCATION = "Location"
    ITEM = "Additional Item"
    WEAPON = "Weapon"
    VEHICLE = "Vehicle"
    APPAREL = "Apparel"
    HELM = "Helm"
    REWARD = "Reward Rate"
    ABILITY = "Ability"
    STRENGTH = "Strength"
    INTELLIGENCE = "Intelligence"
    COOL = "Cool"
    TECH_SKILL = "Tech Skill"
    ATTRACTIVENESS = "Attractiveness"

    @property
    def label(self) -> str:
        """显示名称"""
        return CATEGORY_LABELS.get(self, self.value)

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_CATEGORIES


# 显示名与数据集键不同的类别
CATEGORY_LABELS: Dict[TraitCategory, str] = {
    TraitCategory.ITEM: "Item",
    TraitCategory.REWARD: "Reward",
}

# 数值特征
NUMERIC_CATEGORIES: Tuple[TraitCategory, ...] = (
    TraitCategory.STRENGTH,
    TraitCategory.INTELLIGENCE,
    TraitCategory.COOL,
    TraitCategory.TECH_SKILL,
    TraitCategory.ATTRACTIVENESS,
)

# 全部类别的固定顺序 (用于动作编码)
ALL_CATEGORIES: Tuple[TraitCategory, ...] = tuple(TraitCategory)

STAT_MIN = 1
STAT_MAX = 100

# 元数据 trait_type (小写) -> TraitRecord 字段
ATTRIBUTE_FIELDS: Dict[str, str] = {
    "class": "class_name",
    "race": "race",
    "strength": "strength",
    "intelligence": "intelligence",
    "attractiveness": "attractiveness",
    "tech skill": "tech_skill",
    "cool": "cool",
    "eyes": "eyes",
    "ability": "ability",
    "location": "location",
    "additional item": "additional_item",
    "weapon": "weapon",
    "vehicle": "vehicle",
    "apparel": "apparel",
    "helm": "helm",
    "reward rate": "reward_rate",
}

CATEGORY_FIELDS: Dict[TraitCategory, str] = {
    TraitCategory.CLASS: "class_name",
    TraitCategory.RACE: "race",
    TraitCategory.EYES: "eyes",
    TraitCategory.LOCATION: "location",
    TraitCategory.ITEM: "additional_item",
    TraitCategory.WEAPON: "weapon",
    TraitCategory.VEHICLE: "vehicle",
    TraitCategory.APPAREL: "apparel",
    TraitCategory.HELM: "helm",
    TraitCategory.REWARD: "reward_rate",
    TraitCategory.ABILITY: "ability",
    TraitCategory.STRENGTH: "strength",
    TraitCategory.INTELLIGENCE: "intelligence",
    TraitCategory.COOL: "cool",
    TraitCategory.TECH_SKILL: "tech_skill",
    TraitCategory.ATTRACTIVENESS: "attractiveness",
}

_NUMERIC_FIELDS = frozenset(CATEGORY_FIELDS[c] for c in NUMERIC_CATEGORIES)


def clamp_stat(value: Any) -> int:
    """将数值特征截断到 [1, 100]，非有限值视为无效 (ValueError)"""
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Non-finite stat value: {value!r}")
    return max(STAT_MIN, min(STAT_MAX, int(round(number))))


@dataclass(frozen=True)
class TraitRecord:
    """
    单张卡的特征记录 (解析后不可变)

    Attributes:
        class_name ~ reward_rate: 类别特征 (字符串)
        strength ~ cool: 数值特征 [1, 100]
    """
    class_name: str
    race: str
    eyes: str
    ability: str
    location: str
    additional_item: str
    weapon: str
    vehicle: str
    apparel: str
    helm: str
    reward_rate: str
    strength: int
    intelligence: int
    attractiveness: int
    tech_skill: int
    cool: int

    def get(self, category: TraitCategory) -> TraitScalar:
        """获取指定类别的特征值"""
        return getattr(self, CATEGORY_FIELDS[category])

    @property
    def total_power(self) -> int:
        """五项数值特征之和"""
        return (
            self.strength + self.intelligence + self.cool
            + self.tech_skill + self.attractiveness
        )

    @classmethod
    def from_attributes(cls, attributes: Iterable[Mapping[str, Any]]) -> Optional['TraitRecord']:
        """
        从元数据 attributes 列表解析

        trait_type 大小写不敏感；缺少 Class 或 Race 时视为无效数据。
        其余缺失的类别特征填 "None"，缺失的数值特征填最小值。

        Args:
            attributes: [{"trait_type": ..., "value": ...}, ...]

        Returns:
            TraitRecord，数据无效时返回 None
        """
        values: Dict[str, Any] = {}
        for attr in attributes:
            if not isinstance(attr, Mapping):
                continue
            trait_type = str(attr.get("trait_type") or "").strip().lower()
            field_name = ATTRIBUTE_FIELDS.get(trait_type)
            if field_name is None or attr.get("value") is None:
                continue
            value = attr["value"]
            if field_name in _NUMERIC_FIELDS:
                try:
                    values[field_name] = clamp_stat(value)
                except (TypeError, ValueError):
                    continue
            else:
                values[field_name] = str(value)

        if not values.get("class_name") or not values.get("race"):
            return None

        kwargs = {}
        for f in fields(cls):
            if f.name in values:
                kwargs[f.name] = values[f.name]
            elif f.name in _NUMERIC_FIELDS:
                kwargs[f.name] = STAT_MIN
            else:
                kwargs[f.name] = "None"
        return cls(**kwargs)


@dataclass(frozen=True)
class TraitValue:
    """
    一次出牌所比较的特征

    revealed=False 时，显示层只能看到类别，看不到值 (盲防模式)
    """
    category: TraitCategory
    value: TraitScalar
    revealed: bool = True

    HIDDEN = "???"

    @property
    def display(self) -> str:
        return str(self.value) if self.revealed else self.HIDDEN

    def reveal(self) -> 'TraitValue':
        if self.revealed:
            return self
        return TraitValue(self.category, self.value, True)

    def __str__(self) -> str:
        return f"{self.category.label}: {self.display}"


class GameMode(Enum):
    """
    游戏模式

    - OMNIPRESENT: 全部 16 项特征可见
    - CHAOTIC: 12 项特征，Strength 为唯一数值特征
    - THREAT_INTELLIGENCE: 与 CHAOTIC 相同的 12 项，防守方的值在其出牌前隐藏
    """
    OMNIPRESENT = "omnipresent"
    CHAOTIC = "chaotic"
    THREAT_INTELLIGENCE = "threat-intelligence"

    @property
    def active_traits(self) -> Tuple[TraitCategory, ...]:
        if self == GameMode.OMNIPRESENT:
            return FULL_TRAITS
        return REDUCED_TRAITS

    @property
    def blind_defense(self) -> bool:
        return self == GameMode.THREAT_INTELLIGENCE

    @property
    def full_visibility(self) -> bool:
        return self == GameMode.OMNIPRESENT


FULL_TRAITS: Tuple[TraitCategory, ...] = (
    TraitCategory.CLASS,
    TraitCategory.RACE,
    TraitCategory.EYES,
    TraitCategory.LOCATION,
    TraitCategory.ITEM,
    TraitCategory.WEAPON,
    TraitCategory.VEHICLE,
    TraitCategory.APPAREL,
    TraitCategory.HELM,
    TraitCategory.REWARD,
    TraitCategory.ABILITY,
    TraitCategory.STRENGTH,
    TraitCategory.INTELLIGENCE,
    TraitCategory.COOL,
    TraitCategory.TECH_SKILL,
    TraitCategory.ATTRACTIVENESS,
)

REDUCED_TRAITS: Tuple[TraitCategory, ...] = (
    TraitCategory.CLASS,
    TraitCategory.RACE,
    TraitCategory.STRENGTH,
    TraitCategory.EYES,
    TraitCategory.ABILITY,
    TraitCategory.LOCATION,
    TraitCategory.ITEM,
    TraitCategory.WEAPON,
    TraitCategory.VEHICLE,
    TraitCategory.APPAREL,
    TraitCategory.HELM,
    TraitCategory.REWARD,
)


def category_from_label(label: str) -> TraitCategory:
    """
    按显示名或数据集键查找类别 (大小写不敏感)

    Raises:
        ValueError: 未知类别
    """
    key = label.strip().lower()
    for category in TraitCategory:
        if key in (category.value.lower(), category.label.lower(), category.name.lower()):
            return category
    raise ValueError(f"Unknown trait category: {label!r}")


def record_to_str(record: TraitRecord, categories: Optional[List[TraitCategory]] = None) -> str:
    """将特征记录转换为可读字符串"""
    categories = categories or list(ALL_CATEGORIES)
    return ", ".join(f"{c.label}={record.get(c)}" for c in categories)
