"""
稀有度分类

基于参考集合的特征出现频率:
- 出现率 < 5%: 稀有 (rare)
- 出现率 < 1%: 超稀有 (ultra-rare)
- 其余: 普通 (common)

数值特征不查频率表，使用固定区间: [80, 94] 稀有，[95, 100] 超稀有。

所有查询都是纯函数，稀有度表在进程启动时构建一次，之后只读。
"""
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union
import json
import logging

from .traits import NUMERIC_CATEGORIES, TraitCategory, TraitScalar

logger = logging.getLogger(__name__)


# 未收录 (普通) 特征的出现次数，大于任何真实计数
COMMON_COUNT = 9999

RARE_PERCENT = 5.0
ULTRA_RARE_PERCENT = 1.0

RARE_STAT_RANGE = (80, 94)
ULTRA_RARE_STAT_RANGE = (95, 100)

DEFAULT_DATASET = Path(__file__).parent / "data" / "rare_traits.json"

_NUMERIC_KEYS = frozenset(c.value for c in NUMERIC_CATEGORIES)


class Rarity(IntEnum):
    """稀有度等级 (三者互斥)"""
    COMMON = 0
    RARE = 1
    ULTRA_RARE = 2


@dataclass(frozen=True)
class RarityEntry:
    """单个特征值的统计"""
    count: int
    percentage: float


CategoryKey = Union[TraitCategory, str]


def _key(category: CategoryKey) -> str:
    if isinstance(category, TraitCategory):
        return category.value
    return category


class RarityTable:
    """
    特征频率表: 类别 -> 值 -> RarityEntry

    只收录出现率低于 5% 的值，未收录的值视为普通。
    """

    def __init__(self, entries: Mapping[str, Mapping[str, RarityEntry]], population: int):
        self.population = population
        self._entries = MappingProxyType({
            category: MappingProxyType(dict(values))
            for category, values in entries.items()
        })

    def get(self, category: CategoryKey, value: TraitScalar) -> Optional[RarityEntry]:
        values = self._entries.get(_key(category))
        if values is None:
            return None
        return values.get(str(value))

    def categories(self):
        return list(self._entries.keys())

    def values(self, category: CategoryKey) -> Mapping[str, RarityEntry]:
        return self._entries.get(_key(category), MappingProxyType({}))

    def __len__(self) -> int:
        return sum(len(values) for values in self._entries.values())

    def to_dict(self) -> Dict:
        """转换为数据集 JSON 格式"""
        traits = {}
        for category, values in self._entries.items():
            rows = [
                {"value": value, "count": entry.count, "percentage": entry.percentage}
                for value, entry in values.items()
            ]
            rows.sort(key=lambda r: r["count"])
            traits[category] = rows
        return {"population": self.population, "traits": traits}

    @classmethod
    def from_dict(cls, data: Mapping) -> 'RarityTable':
        """
        从数据集字典构建

        Args:
            data: {"population": N, "traits": {类别: [{"value", "count", "percentage"}]}}
        """
        entries: Dict[str, Dict[str, RarityEntry]] = {}
        for category, rows in data.get("traits", {}).items():
            values = entries.setdefault(category, {})
            for row in rows:
                values[str(row["value"])] = RarityEntry(
                    count=int(row["count"]),
                    percentage=float(row["percentage"]),
                )
        return cls(entries, population=int(data.get("population", 0)))

    @classmethod
    def from_counts(
        cls,
        counts: Mapping[str, Mapping[str, int]],
        population: int,
    ) -> 'RarityTable':
        """
        从原始计数构建 (只保留出现率 < 5% 的值)

        Args:
            counts: 类别 -> 值 -> 出现次数
            population: 参考集合大小

        Returns:
            RarityTable
        """
        if population <= 0:
            raise ValueError("population must be positive")

        entries: Dict[str, Dict[str, RarityEntry]] = {}
        for category, values in counts.items():
            rare = {}
            for value, count in values.items():
                percentage = round(count / population * 100, 2)
                if percentage < RARE_PERCENT:
                    rare[str(value)] = RarityEntry(count=int(count), percentage=percentage)
            entries[category] = dict(sorted(rare.items(), key=lambda kv: kv[1].count))
        return cls(entries, population=population)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> 'RarityTable':
        """加载 JSON 数据集 (默认使用包内自带数据)"""
        path = Path(path) if path is not None else DEFAULT_DATASET
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        table = cls.from_dict(data)
        logger.debug(f"Loaded {len(table)} rare trait values from {path}")
        return table


def tally_attributes(records: Iterable[Sequence[Mapping]]) -> Tuple[Dict[str, Dict[str, int]], int]:
    """
    统计 attributes 列表中每个 (trait_type, value) 的出现次数

    空列表 (无效卡) 不计入参考集合

    Args:
        records: 每张卡的 [{"trait_type": ..., "value": ...}, ...]

    Returns:
        (类别 -> 值 -> 次数, 参考集合大小)
    """
    counts: Dict[str, Dict[str, int]] = {}
    population = 0
    for attributes in records:
        if not attributes:
            continue
        population += 1
        for attr in attributes:
            trait_type = attr.get("trait_type")
            if trait_type is None:
                continue
            values = counts.setdefault(str(trait_type), {})
            value = str(attr.get("value"))
            values[value] = values.get(value, 0) + 1
    return counts, population


def _in_range(value: TraitScalar, bounds) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return bounds[0] <= number <= bounds[1]


class RarityClassifier:
    """
    稀有度分类器

    所有方法无副作用
    """

    def __init__(self, table: RarityTable):
        self.table = table

    @classmethod
    def default(cls) -> 'RarityClassifier':
        return cls(default_table())

    def count(self, category: CategoryKey, value: TraitScalar) -> int:
        """
        参考集合中的出现次数

        Returns:
            出现次数，未收录时返回 COMMON_COUNT
        """
        entry = self.table.get(category, value)
        if entry is None:
            return COMMON_COUNT
        return entry.count

    def is_rare(self, category: CategoryKey, value: TraitScalar) -> bool:
        if _key(category) in _NUMERIC_KEYS:
            return _in_range(value, RARE_STAT_RANGE)
        entry = self.table.get(category, value)
        if entry is None:
            return False
        return ULTRA_RARE_PERCENT <= entry.percentage < RARE_PERCENT

    def is_ultra_rare(self, category: CategoryKey, value: TraitScalar) -> bool:
        if _key(category) in _NUMERIC_KEYS:
            return _in_range(value, ULTRA_RARE_STAT_RANGE)
        entry = self.table.get(category, value)
        if entry is None:
            return False
        return entry.percentage < ULTRA_RARE_PERCENT

    def classify(self, category: CategoryKey, value: TraitScalar) -> Rarity:
        if self.is_ultra_rare(category, value):
            return Rarity.ULTRA_RARE
        if self.is_rare(category, value):
            return Rarity.RARE
        return Rarity.COMMON


_DEFAULT_TABLE: Optional[RarityTable] = None


def default_table() -> RarityTable:
    """包内数据集 (首次调用时加载，之后复用)"""
    global _DEFAULT_TABLE
    if _DEFAULT_TABLE is None:
        _DEFAULT_TABLE = RarityTable.load()
    return _DEFAULT_TABLE
