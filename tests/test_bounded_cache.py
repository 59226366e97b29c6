import threading

import pytest

from bounded_cache import BoundedCache


def test_evicts_oldest_inserted_key():
    cache = BoundedCache(capacity=2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1
    cache.put("c", 3)
    assert "a" not in cache
    assert cache.keys() == ["b", "c"]
    assert len(cache) == 2


def test_update_keeps_position():
    cache = BoundedCache(capacity=2)
    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("a", 10)
    cache.put("c", 3)
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


def test_missing_and_clear():
    cache = BoundedCache()
    assert cache.get("nope") is None
    cache.put("x", "text")
    cache.clear()
    assert len(cache) == 0


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        BoundedCache(capacity=0)


def test_concurrent_puts_respect_capacity():
    cache = BoundedCache(capacity=50)

    def worker(offset):
        for n in range(200):
            cache.put(f"{offset}-{n}", n)

    threads = [threading.Thread(target=worker, args=(t,)) for t in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(cache) == 50
