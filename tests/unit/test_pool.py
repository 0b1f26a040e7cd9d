"""卡池选择测试"""
import asyncio

import numpy as np
import pytest

from core.pool import CardPool, draw_card_ids


class FakeProbe:
    """内存中的探测: 只有 valid 中的编号可用"""

    def __init__(self, valid=None, delays=None, broken=()):
        self.valid = valid
        self.delays = delays or {}
        self.broken = set(broken)
        self.calls = []

    async def __call__(self, card_id: int) -> bool:
        self.calls.append(card_id)
        await asyncio.sleep(self.delays.get(card_id, 0))
        if card_id in self.broken:
            raise ConnectionError("probe failed")
        return self.valid is None or card_id in self.valid


class TestDrawCardIds:
    """draw_card_ids 测试"""

    def test_distinct_in_range(self, rng):
        ids = draw_card_ids(48, 1, 3968, rng)
        assert len(ids) == 48
        assert len(set(ids)) == 48
        assert all(1 <= i <= 3968 for i in ids)

    def test_exclude(self, rng):
        ids = draw_card_ids(5, 1, 10, rng, exclude=[1, 2, 3, 4, 5])
        assert sorted(ids) == [6, 7, 8, 9, 10]

    def test_truncates_to_available(self, rng):
        assert len(draw_card_ids(10, 1, 4, rng)) == 4
        assert draw_card_ids(3, 1, 2, rng, exclude=[1, 2]) == []

    def test_empty_range(self, rng):
        with pytest.raises(ValueError):
            draw_card_ids(1, 5, 4, rng)

    def test_deterministic(self):
        a = draw_card_ids(10, 1, 3968, np.random.default_rng(7))
        b = draw_card_ids(10, 1, 3968, np.random.default_rng(7))
        assert a == b


class TestCardPool:
    """CardPool 测试"""

    def test_all_valid(self, rng):
        probe = FakeProbe()
        pool = CardPool(probe, 1, 3968, draw_size=48)
        valid = asyncio.run(pool.gather(24, rng))

        assert len(valid) == 24
        assert len(set(valid)) == 24
        assert len(pool.drawn) == 48

    def test_only_valid_returned(self, rng):
        probe = FakeProbe(valid=set(range(2, 101, 2)))
        pool = CardPool(probe, 1, 100, draw_size=48)
        valid = asyncio.run(pool.gather(10, rng))

        assert len(valid) >= 10
        assert all(card % 2 == 0 for card in valid)

    def test_redraws_on_shortfall(self, rng):
        probe = FakeProbe(valid=set(range(2, 101, 2)))
        pool = CardPool(probe, 1, 100, draw_size=10)
        valid = asyncio.run(pool.gather(24, rng))

        assert len(valid) == 24
        assert len(set(valid)) == 24
        assert len(pool.drawn) > 10
        assert len(probe.calls) == len(set(probe.calls))

    def test_shortfall_logs_warning(self, rng, caplog):
        probe = FakeProbe(valid=set(range(1, 41)))
        pool = CardPool(probe, 1, 100, draw_size=20)
        with caplog.at_level("WARNING"):
            asyncio.run(pool.gather(30, rng))
        assert any("Still gathering" in r.message for r in caplog.records)

    def test_range_exhausted(self, rng):
        probe = FakeProbe(valid={1, 2, 3})
        pool = CardPool(probe, 1, 30, draw_size=48)
        with pytest.raises(ValueError, match="exhausted"):
            asyncio.run(pool.gather(10, rng))

    def test_confirmation_order(self, rng):
        probe = FakeProbe(delays={1: 0.06, 2: 0.04, 3: 0.02})
        pool = CardPool(probe, 1, 3, draw_size=3)
        valid = asyncio.run(pool.gather(3, rng))
        assert valid == [3, 2, 1]

    def test_probe_errors_are_invalid(self, rng):
        probe = FakeProbe(broken={1, 2})
        pool = CardPool(probe, 1, 6, draw_size=6)
        valid = asyncio.run(pool.gather(4, rng))
        assert sorted(valid) == [3, 4, 5, 6]
