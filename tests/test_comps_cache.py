# tests/test_comps_cache.py
import pytest

from dealengine.adapters.comps_cache import (
    CompCache,
    InMemoryCacheStore,
    key_for,
    make_comps_key,
)
from dealengine.domain.comps import CompQuery, CompRecord

from .fixtures.deals import sample_comps

HOUR = 3600


class BrokenStore:
    def get(self, key):
        raise ConnectionError("store down")

    def put(self, key, value, ttl_s):
        raise ConnectionError("store down")

    def remove(self, key):
        raise ConnectionError("store down")

    def remove_prefix(self, prefix):
        raise ConnectionError("store down")


@pytest.fixture
def cache(clock):
    store = InMemoryCacheStore(clock=clock)
    return CompCache(store, freshness_ttl_s=HOUR, storage_ttl_s=2 * HOUR, clock=clock)


def test_key_normalization():
    key = make_comps_key("  414 1st Ave ", "Chula VISTA", "ca", " 91910 ")
    assert key == "comps_414 1st ave_chula vista_ca_91910"
    query = CompQuery(address="414 1st Ave", city="Chula Vista", state="CA", zipcode="91910")
    assert key_for(query) == key


def test_put_then_get(cache):
    key = make_comps_key("1 Main", "Town", "CA", "90000")
    assert cache.put(key, sample_comps())
    got = cache.get(key)
    assert [c.price for c in got] == [300_000, 320_000, 340_000]


def test_miss_on_unknown_key(cache):
    assert cache.get("comps_nothing") is None


def test_stale_entry_is_evicted(cache, clock):
    cache.put("comps_k", sample_comps())
    clock.advance(HOUR - 1)
    assert cache.get("comps_k") is not None
    clock.advance(2)
    assert cache.get("comps_k") is None
    # evicted, not just hidden
    assert cache.store.get("comps_k") is None


def test_store_ttl_expires_independently(clock):
    store = InMemoryCacheStore(clock=clock)
    cache = CompCache(store, freshness_ttl_s=24 * HOUR, storage_ttl_s=6 * HOUR, clock=clock)
    cache.put("comps_k", sample_comps())
    clock.advance(7 * HOUR)
    assert cache.get("comps_k") is None


def test_oversized_entries_are_truncated(clock):
    cache = CompCache(InMemoryCacheStore(clock=clock), freshness_ttl_s=HOUR, storage_ttl_s=HOUR,
                      max_bytes=500, truncate_to=2, clock=clock)
    comps = [CompRecord(address=f"{i} Long Street Name", price=100_000 + i) for i in range(20)]
    assert cache.put("comps_big", comps)
    assert len(cache.get("comps_big")) == 2


def test_failures_degrade_to_miss():
    cache = CompCache(BrokenStore())
    assert cache.get("comps_k") is None
    assert cache.put("comps_k", sample_comps()) is False
    assert cache.invalidate("comps_k") is False
    assert cache.clear() == 0
    assert cache.stats("comps_k") == {"exists": False, "key": "comps_k"}


def test_corrupt_entry_is_a_miss(cache):
    cache.store.put("comps_bad", "{not json", 60)
    assert cache.get("comps_bad") is None


def test_invalidate_and_clear(cache):
    cache.put("comps_a", sample_comps())
    cache.put("comps_b", sample_comps())
    cache.store.put("other", "x", 60)

    assert cache.invalidate("comps_a")
    assert cache.get("comps_a") is None
    assert cache.clear() == 1
    assert cache.store.get("other") == "x"


def test_stats(cache, clock):
    assert cache.stats("comps_k") == {"exists": False, "key": "comps_k"}
    cache.put("comps_k", sample_comps())
    clock.advance(30 * 60)
    stats = cache.stats("comps_k")
    assert stats["exists"]
    assert stats["comps_count"] == 3
    assert stats["age_minutes"] == 30
    assert stats["age_hours"] == 0.5
    assert stats["fresh"] is True
    assert stats["size"] > 0
