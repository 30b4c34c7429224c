from __future__ import annotations

import pytest

from app.core.cache import clear_all_caches, get_cache, new_cache
from app.core.keying import alerts_key, content_key, geocode_key
from app.services.ingestion import IngestionGate


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    c = new_cache(ttl_s=120, timer=clock)
    c["k"] = [1, 2]

    clock.now += 119
    assert c.get("k") == [1, 2]
    clock.now += 2
    assert c.get("k") is None
    assert "k" not in c


def test_max_entries_evicts_oldest():
    c = new_cache(ttl_s=60, max_entries=2, timer=FakeClock())
    c["a"] = 1
    c["b"] = 2
    c["c"] = 3
    assert c.get("a") is None
    assert (c.get("b"), c.get("c")) == (2, 3)


@pytest.mark.parametrize("kwargs", [{"ttl_s": 0}, {"ttl_s": -1}, {"ttl_s": 1, "max_entries": 0}])
def test_invalid_bounds(kwargs):
    with pytest.raises(ValueError):
        new_cache(**kwargs)


def test_named_caches_are_shared_per_ttl_and_clearable():
    a = get_cache("test-shared", ttl_s=30)
    assert get_cache("test-shared", ttl_s=30) is a
    longer = get_cache("test-shared", ttl_s=999)
    assert longer is not a
    assert (a.ttl, longer.ttl) == (30, 999)

    a["x"] = 1
    clear_all_caches()
    assert a.get("x") is None


def test_gates_with_different_ttls_do_not_share_a_cache():
    long_lived = IngestionGate(url="https://ipma.test/a", cache_seconds=120)
    short_lived = IngestionGate(url="https://ipma.test/a", cache_seconds=5)
    assert long_lived._cache.ttl == 120
    assert short_lived._cache.ttl == 5
    assert IngestionGate(url="https://ipma.test/a", cache_seconds=0)._cache is None


def test_keys_are_stable_and_distinct():
    assert content_key("p", {"b": 1, "a": 2}) == content_key("p", {"a": 2, "b": 1})
    assert alerts_key("https://a") != alerts_key("https://b")
    assert geocode_key("Leiria", "pt", 5) == geocode_key("  leiria ", "pt", 5)
