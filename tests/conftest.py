"""共享测试夹具"""
import numpy as np
import pytest

from core.rarity import RarityClassifier
from core.traits import TraitRecord


BASE_RECORD = dict(
    class_name="Nerd",
    race="Human",
    eyes="Normal",
    ability="None",
    location="Mid Town",
    additional_item="Cyber Deck",
    weapon="None",
    vehicle="None",
    apparel="Work Clothes",
    helm="None",
    reward_rate="1",
    strength=50,
    intelligence=50,
    attractiveness=50,
    tech_skill=50,
    cool=50,
)


@pytest.fixture
def make_record():
    """特征记录工厂 (默认全部为普通特征)"""
    def _make(**overrides) -> TraitRecord:
        values = dict(BASE_RECORD)
        values.update(overrides)
        return TraitRecord(**values)
    return _make


@pytest.fixture
def classifier():
    return RarityClassifier.default()


@pytest.fixture
def rng():
    return np.random.default_rng(0)
