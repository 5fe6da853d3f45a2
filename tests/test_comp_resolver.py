# tests/test_comp_resolver.py
import asyncio

import pytest

from dealengine.adapters.comp_providers import (
    BridgeResponse,
    ProviderConfigError,
    ProviderError,
    UnknownProviderError,
)
from dealengine.adapters.comps_cache import CompCache, InMemoryCacheStore, key_for
from dealengine.adapters.config import AppConfig
from dealengine.adapters.http_retry import RetryPolicy
from dealengine.domain.comps import CompQuery, CompRecord
from dealengine.services.comp_resolver import CompResolver, normalize_comps

QUERY = CompQuery(address="414 1st Ave", city="Chula Vista", state="CA", zipcode="91910")

BODY = {
    "properties": [
        {"address": "410 1st Ave", "price": 300000, "sqft": 1500},
        {"address": "98 Hill St", "price": 320000, "sqft": 1600},
        {"address": "no price"},
    ]
}


class FakeProvider:
    name = "bridge"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def fetch(self, query, timeout_s):
        self.calls.append((query, timeout_s))
        out = self.outcomes.pop(0) if self.outcomes else BridgeResponse(BODY)
        if isinstance(out, BaseException):
            raise out
        return out


@pytest.fixture
def cache(clock):
    return CompCache(InMemoryCacheStore(clock=clock), freshness_ttl_s=3600, storage_ttl_s=7200, clock=clock)


def _resolver(cache, provider, sleeps):
    return CompResolver(
        cache=cache,
        providers={"bridge": provider},
        policy=RetryPolicy(max_attempts=3, initial_delay_s=1.0, timeout_s=5.0),
        sleep=sleeps.append,
    )


def test_normalize_drops_unpriced():
    comps = [CompRecord(address="a", price=1), CompRecord(address="b", price=0)]
    assert [c.address for c in normalize_comps(comps)] == ["a"]


def test_provider_result_is_cached(cache, sleeps):
    provider = FakeProvider()
    resolver = _resolver(cache, provider, sleeps)

    first = resolver.resolve(QUERY, "bridge")
    assert first.source == "provider"
    assert first.provider == "bridge"
    assert [c.address for c in first.comps] == ["410 1st Ave", "98 Hill St"]
    assert provider.calls == [(QUERY, 5.0)]

    second = resolver.resolve(QUERY, "bridge")
    assert second.source == "cache"
    assert len(second.comps) == 2
    assert len(provider.calls) == 1


def test_force_refresh_skips_cache(cache, sleeps):
    provider = FakeProvider()
    resolver = _resolver(cache, provider, sleeps)
    resolver.resolve(QUERY, "bridge")
    again = resolver.resolve(QUERY, "bridge", force_refresh=True)
    assert again.source == "provider"
    assert len(provider.calls) == 2


def test_transient_failures_are_retried(cache, sleeps):
    provider = FakeProvider(ProviderError("HTTP 502"), ProviderError("HTTP 502"))
    result = _resolver(cache, provider, sleeps).resolve(QUERY, "bridge")
    assert len(result.comps) == 2
    assert sleeps == [1.0, 2.0]
    assert result.notice is None


def test_exhausted_retries_degrade_with_notice(cache, sleeps):
    provider = FakeProvider(*(ProviderError("HTTP 503") for _ in range(3)))
    result = _resolver(cache, provider, sleeps).resolve(QUERY, "bridge")

    assert result.comps == []
    assert result.source == "none"
    assert result.notice == "Comp data unavailable from bridge: HTTP 503. Proceeding with estimated values."
    assert sleeps == [1.0, 2.0]
    assert cache.get(key_for(QUERY)) is None


def test_empty_result_is_not_cached(cache, sleeps):
    provider = FakeProvider(BridgeResponse({"properties": []}), BridgeResponse(BODY))
    resolver = _resolver(cache, provider, sleeps)
    assert resolver.resolve(QUERY, "bridge").comps == []
    assert resolver.resolve(QUERY, "bridge").source == "provider"


def test_config_errors_are_not_retried(cache, sleeps):
    provider = FakeProvider(ProviderConfigError("Missing API key"))
    with pytest.raises(ProviderConfigError):
        _resolver(cache, provider, sleeps).resolve(QUERY, "bridge")
    assert sleeps == []


def test_unknown_provider_raises_before_cache(cache, sleeps):
    cache.put(key_for(QUERY), [CompRecord(address="a", price=1)])
    with pytest.raises(UnknownProviderError):
        _resolver(cache, FakeProvider(), sleeps).resolve(QUERY, "zillow")


def test_providers_are_built_from_config(cache):
    resolver = CompResolver(cache=cache, cfg=AppConfig(GEMINI_API_KEY="g"))
    gemini = resolver.provider("Gemini")
    assert gemini.name == "gemini"
    assert resolver.provider("gemini") is gemini


def test_missing_credentials_surface(cache):
    resolver = CompResolver(cache=cache, cfg=AppConfig(BRIDGE_API_KEY=None))
    with pytest.raises(ProviderConfigError):
        resolver.resolve(QUERY, "bridge")


def test_async_resolve(cache):
    delays = []

    async def fake_sleep(d):
        delays.append(d)

    provider = FakeProvider(ProviderError("timeout"))
    resolver = CompResolver(
        cache=cache,
        providers={"bridge": provider},
        policy=RetryPolicy(max_attempts=2, initial_delay_s=0.5, timeout_s=5.0),
        async_sleep=fake_sleep,
    )
    result = asyncio.run(resolver.aresolve(QUERY, "bridge"))
    assert len(result.comps) == 2
    assert delays == [0.5]

    cached = asyncio.run(resolver.aresolve(QUERY, "bridge"))
    assert cached.source == "cache"


def test_async_exhaustion_degrades(cache):
    async def fake_sleep(d):
        return None

    provider = FakeProvider(ProviderError("x"), ProviderError("y"))
    resolver = CompResolver(
        cache=cache,
        providers={"bridge": provider},
        policy=RetryPolicy(max_attempts=2, initial_delay_s=0.0, timeout_s=5.0),
        async_sleep=fake_sleep,
    )
    result = asyncio.run(resolver.aresolve(QUERY, "bridge"))
    assert result.comps == []
    assert "Comp data unavailable from bridge: y." in result.notice
