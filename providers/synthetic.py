"""
合成特征

远程获取失败时使用: 类别特征从固定的小集合中随机选取，数值特征取 [40, 99]
"""
from typing import Optional, Sequence

import numpy as np

from core.traits import TraitRecord
from .base import AssetProbe, TraitProvider


CLASSES = ("Nerd", "Ronin", "Cyber Monk", "Hacker", "Street Samurai")
RACES = ("Human", "Cyborg", "Android", "Mutant")
EYES = ("Normal", "Laser Eyes", "Tired", "Angry", "Happy")
ABILITIES = ("None", "Revive", "Hard Gut", "Cloak", "Hack")
LOCATIONS = ("Mid Town", "Neo Tokyo Streets", "Underground", "High Rise")
WEAPONS = ("None", "Katana", "Cyber Katana", "Laser Sword", "Tech Staff")
VEHICLES = ("None", "Hover Bike", "Sports Car", "Motorcycle")
APPARELS = ("Work Clothes", "Leather Jacket", "Suit", "Hoodie")
HELMS = ("None", "Gas Mask", "Samurai Mask", "Visor", "Helmet")

SYNTHETIC_ITEM = "Cyber Deck"
SYNTHETIC_REWARD = "High"

STAT_LOW = 40
STAT_HIGH = 99


class SyntheticTraitProvider(TraitProvider):
    """随机特征生成器 (不会失败)"""

    name = "synthetic"

    def __init__(self, rng: Optional[np.random.Generator] = None, seed: Optional[int] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def _pick(self, values: Sequence[str]) -> str:
        return values[int(self.rng.integers(len(values)))]

    def _stat(self) -> int:
        return int(self.rng.integers(STAT_LOW, STAT_HIGH + 1))

    def generate(self) -> TraitRecord:
        return TraitRecord(
            class_name=self._pick(CLASSES),
            race=self._pick(RACES),
            eyes=self._pick(EYES),
            ability=self._pick(ABILITIES),
            location=self._pick(LOCATIONS),
            additional_item=SYNTHETIC_ITEM,
            weapon=self._pick(WEAPONS),
            vehicle=self._pick(VEHICLES),
            apparel=self._pick(APPARELS),
            helm=self._pick(HELMS),
            reward_rate=SYNTHETIC_REWARD,
            strength=self._stat(),
            intelligence=self._stat(),
            attractiveness=self._stat(),
            tech_skill=self._stat(),
            cool=self._stat(),
        )

    async def fetch(self, card_id: int) -> TraitRecord:
        return self.generate()


class OfflineAssetProbe(AssetProbe):
    """离线探测: 区间内的编号全部视为可用"""

    def __init__(self, missing: Sequence[int] = ()):
        self.missing = frozenset(missing)

    async def is_loadable(self, card_id: int) -> bool:
        return card_id not in self.missing
