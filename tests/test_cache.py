import pytest

from loganalyzer.services.geo import LRUCache, Location


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError, match="at least 1"):
        LRUCache(0)


def test_get_miss_returns_default() -> None:
    cache: LRUCache[str, int] = LRUCache(2)
    assert cache.get("missing") is None
    assert cache.get("missing", -1) == -1
    assert cache.misses == 2


def test_put_and_get() -> None:
    cache: LRUCache[str, Location] = LRUCache(2)
    location = Location(country="Japan", city="Tokyo")

    cache.put("133.0.0.1", location)

    assert cache.get("133.0.0.1") is location
    assert len(cache) == 1
    assert cache.hits == 1


def test_overflow_evicts_least_recently_used() -> None:
    """Inserting N+1 keys evicts exactly the oldest one."""
    cache: LRUCache[str, int] = LRUCache(3)
    for i, key in enumerate(["a", "b", "c", "d"]):
        cache.put(key, i)

    assert len(cache) == 3
    assert cache.get("a") is None
    assert [cache.get(k) for k in ("b", "c", "d")] == [1, 2, 3]


def test_get_refreshes_recency() -> None:
    cache: LRUCache[str, int] = LRUCache(3)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("c", 3)

    assert cache.get("a") == 1
    cache.put("d", 4)

    assert "a" in cache
    assert "b" not in cache
    assert cache.get("b") is None


def test_put_existing_key_replaces_and_refreshes() -> None:
    cache: LRUCache[str, int] = LRUCache(2)
    cache.put("a", 1)
    cache.put("b", 2)

    cache.put("a", 10)
    cache.put("c", 3)

    assert len(cache) == 2
    assert cache.get("a") == 10
    assert cache.get("b") is None
    assert cache.get("c") == 3


def test_contains_does_not_refresh() -> None:
    cache: LRUCache[str, int] = LRUCache(2)
    cache.put("a", 1)
    cache.put("b", 2)

    assert "a" in cache
    cache.put("c", 3)

    assert "a" not in cache


def test_capacity_one() -> None:
    cache: LRUCache[str, int] = LRUCache(1)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") is None
    assert cache.get("b") == 2
