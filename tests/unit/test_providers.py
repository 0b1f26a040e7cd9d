"""特征提供方与解析器测试"""
import asyncio

import aiohttp
import pytest

from core.traits import TraitRecord
from providers import (
    HttpAssetProbe,
    OfflineAssetProbe,
    RemoteTraitProvider,
    SyntheticTraitProvider,
    TraitProvider,
    TraitProviderError,
    TraitResolver,
    extract_attributes,
)
from providers.synthetic import CLASSES, STAT_HIGH, STAT_LOW


ATTRIBUTES = [
    {"trait_type": "Class", "value": "Assassin"},
    {"trait_type": "Race", "value": "Demon"},
    {"trait_type": "Strength", "value": 91},
]


class FakeResponse:
    def __init__(self, status=200, payload=None, content_type="application/json"):
        self.status = status
        self.payload = payload
        self.headers = {"Content-Type": content_type}

    async def json(self, content_type=None):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """按顺序返回预设响应的会话"""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, params=None):
        self.requests.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


class CountingProvider(TraitProvider):
    """记录调用次数的提供方"""

    name = "counting"

    def __init__(self, record=None, fail=False, delay=0.0):
        self.record = record
        self.fail = fail
        self.delay = delay
        self.calls = []

    async def fetch(self, card_id):
        self.calls.append(card_id)
        await asyncio.sleep(self.delay)
        if self.fail:
            raise TraitProviderError(card_id, "HTTP 500")
        return self.record


class BrokenProvider(TraitProvider):
    """抛出非提供方异常的提供方"""

    name = "broken"

    async def fetch(self, card_id):
        raise OverflowError("cannot convert float infinity to integer")


class TestExtractAttributes:
    """extract_attributes 测试"""

    def test_raw_metadata_first(self):
        data = {
            "raw": {"metadata": {"attributes": ATTRIBUTES}},
            "metadata": {"attributes": [{"trait_type": "Class", "value": "Other"}]},
        }
        assert extract_attributes(data) == ATTRIBUTES

    def test_metadata_fallback(self):
        data = {"raw": {"metadata": {}}, "metadata": {"attributes": ATTRIBUTES}}
        assert extract_attributes(data) == ATTRIBUTES

    def test_missing(self):
        assert extract_attributes({}) == []
        assert extract_attributes(None) == []
        assert extract_attributes({"raw": None}) == []


class TestRemoteTraitProvider:
    """RemoteTraitProvider 测试"""

    def test_fetch(self):
        session = FakeSession([FakeResponse(payload={"raw": {"metadata": {"attributes": ATTRIBUTES}}})])
        provider = RemoteTraitProvider("KEY", base_url="https://api.test/nft/v3/", session=session)
        record = asyncio.run(provider.fetch(42))

        assert record.class_name == "Assassin"
        assert record.strength == 91
        url, params = session.requests[0]
        assert url == "https://api.test/nft/v3/KEY/getNFTMetadata"
        assert params["tokenId"] == "42"
        assert params["refreshCache"] == "false"

    def test_non_finite_stat_ignored(self):
        attributes = ATTRIBUTES[:2] + [{"trait_type": "Strength", "value": "Infinity"}]
        session = FakeSession([FakeResponse(payload={"metadata": {"attributes": attributes}})])
        provider = RemoteTraitProvider("KEY", session=session)
        record = asyncio.run(provider.fetch(7))

        assert record.class_name == "Assassin"
        assert record.strength == 1

    def test_http_error(self):
        session = FakeSession([FakeResponse(status=500)])
        provider = RemoteTraitProvider("KEY", session=session)
        with pytest.raises(TraitProviderError, match="HTTP 500"):
            asyncio.run(provider.fetch(1))

    def test_retries_rate_limit(self):
        session = FakeSession([
            FakeResponse(status=429),
            FakeResponse(payload={"metadata": {"attributes": ATTRIBUTES}}),
        ])
        provider = RemoteTraitProvider("KEY", retry_delay_s=0.0, session=session)
        record = asyncio.run(provider.fetch(1))
        assert record.race == "Demon"
        assert len(session.requests) == 2

    def test_rate_limit_exhausted(self):
        session = FakeSession([FakeResponse(status=429)] * 3)
        provider = RemoteTraitProvider("KEY", max_retries=2, retry_delay_s=0.0, session=session)
        with pytest.raises(TraitProviderError):
            asyncio.run(provider.fetch(1))

    def test_incomplete_record(self):
        payload = {"metadata": {"attributes": [{"trait_type": "Class", "value": "Assassin"}]}}
        provider = RemoteTraitProvider("KEY", session=FakeSession([FakeResponse(payload=payload)]))
        with pytest.raises(TraitProviderError, match="missing class or race"):
            asyncio.run(provider.fetch(1))

    def test_no_attributes(self):
        provider = RemoteTraitProvider("KEY", session=FakeSession([FakeResponse(payload={})]))
        with pytest.raises(TraitProviderError, match="no attributes"):
            asyncio.run(provider.fetch(1))

    def test_client_error(self):
        session = FakeSession([aiohttp.ClientConnectionError("down")])
        provider = RemoteTraitProvider("KEY", session=session)
        with pytest.raises(TraitProviderError, match="request failed"):
            asyncio.run(provider.fetch(1))

    def test_bad_json(self):
        session = FakeSession([FakeResponse(payload=ValueError("not json"))])
        provider = RemoteTraitProvider("KEY", session=session)
        with pytest.raises(TraitProviderError):
            asyncio.run(provider.fetch(1))

    def test_does_not_close_external_session(self):
        session = FakeSession([])
        provider = RemoteTraitProvider("KEY", session=session)
        asyncio.run(provider.close())
        assert not session.closed


class TestHttpAssetProbe:
    """HttpAssetProbe 测试"""

    def _probe(self, response):
        return HttpAssetProbe("https://img.test/{id}.png", session=FakeSession([response]))

    def test_image_ok(self):
        probe = self._probe(FakeResponse(content_type="image/png"))
        assert asyncio.run(probe(7))
        assert probe._session.requests[0][0] == "https://img.test/7.png"

    def test_missing(self):
        assert not asyncio.run(self._probe(FakeResponse(status=404, content_type="image/png"))(7))

    def test_not_an_image(self):
        assert not asyncio.run(self._probe(FakeResponse(content_type="text/html"))(7))

    def test_network_error(self):
        assert not asyncio.run(self._probe(aiohttp.ClientConnectionError("down"))(7))


class TestSyntheticTraitProvider:
    """SyntheticTraitProvider 测试"""

    def test_ranges(self):
        provider = SyntheticTraitProvider(seed=1)
        for _ in range(50):
            record = provider.generate()
            for stat in (record.strength, record.intelligence, record.cool,
                         record.tech_skill, record.attractiveness):
                assert STAT_LOW <= stat <= STAT_HIGH
            assert record.class_name in CLASSES
            assert record.additional_item == "Cyber Deck"
            assert record.reward_rate == "High"

    def test_seeded(self):
        a = SyntheticTraitProvider(seed=5).generate()
        b = SyntheticTraitProvider(seed=5).generate()
        assert a == b

    def test_fetch_never_fails(self):
        record = asyncio.run(SyntheticTraitProvider(seed=0).fetch(123))
        assert isinstance(record, TraitRecord)

    def test_offline_probe(self):
        probe = OfflineAssetProbe(missing=[3])
        assert asyncio.run(probe(1))
        assert not asyncio.run(probe(3))


class TestTraitResolver:
    """TraitResolver 测试"""

    def test_primary_and_cache(self, make_record):
        primary = CountingProvider(make_record(class_name="Ronin"))
        resolver = TraitResolver(primary)

        async def _run():
            first = await resolver.resolve(1)
            second = await resolver.resolve(1)
            return first, second

        first, second = asyncio.run(_run())
        assert first.class_name == "Ronin"
        assert first is second
        assert primary.calls == [1]
        assert resolver.peek(1) is first
        assert resolver.fallback_count == 0

    def test_fallback(self, caplog):
        resolver = TraitResolver(CountingProvider(fail=True), SyntheticTraitProvider(seed=0))
        with caplog.at_level("WARNING"):
            record = asyncio.run(resolver.resolve(9))

        assert isinstance(record, TraitRecord)
        assert record.reward_rate == "High"
        assert resolver.fallback_count == 1
        assert resolver.cached[9] is record
        assert any("synthetic" in r.message for r in caplog.records)

    def test_concurrent_requests_share_lookup(self, make_record):
        primary = CountingProvider(make_record(), delay=0.01)
        resolver = TraitResolver(primary)
        records = asyncio.run(resolver.resolve_many([5, 5, 5, 6]))

        assert len(records) == 4
        assert records[0] is records[1] is records[2]
        assert sorted(primary.calls) == [5, 6]

    def test_cached_is_read_only(self, make_record):
        resolver = TraitResolver(CountingProvider(make_record()))
        asyncio.run(resolver.resolve(1))
        with pytest.raises(TypeError):
            resolver.cached[2] = make_record()

    def test_clear(self, make_record):
        primary = CountingProvider(make_record())
        resolver = TraitResolver(primary)
        asyncio.run(resolver.resolve(1))
        resolver.clear()
        assert resolver.peek(1) is None
        asyncio.run(resolver.resolve(1))
        assert primary.calls == [1, 1]

    def test_unexpected_error_falls_back(self, caplog):
        resolver = TraitResolver(BrokenProvider(), SyntheticTraitProvider(seed=0))
        with caplog.at_level("WARNING"):
            record = asyncio.run(resolver.resolve(7))

        assert isinstance(record, TraitRecord)
        assert resolver.fallback_count == 1
        assert resolver.cached[7] is record
        assert any("OverflowError" in r.message for r in caplog.records)

    def test_clear_cancels_pending_lookups(self, make_record):
        primary = CountingProvider(make_record(), delay=0.05)
        resolver = TraitResolver(primary)

        async def _run():
            pending = asyncio.ensure_future(resolver.resolve(3))
            await asyncio.sleep(0.01)
            resolver.clear()
            with pytest.raises(asyncio.CancelledError):
                await pending
            await asyncio.sleep(0.1)
            return resolver.peek(3)

        assert asyncio.run(_run()) is None
        assert primary.calls == [3]
        assert len(resolver.cached) == 0
