from localys.caching import MetricsCache, make_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_make_key():
    assert make_key("business-metrics", 42) == "business-metrics:42"
    assert make_key("business-metrics", 42, "rating") == "business-metrics:42:rating"


def test_get_and_set():
    cache = MetricsCache()
    assert cache.get("missing") is None

    cache.set("a", {"rating": 4.5})
    assert cache.get("a") == {"rating": 4.5}
    assert "a" in cache
    assert len(cache) == 1


def test_entries_expire():
    clock = FakeClock()
    cache = MetricsCache(default_ttl=60, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl=600)

    clock.now += 61
    assert cache.get("a") is None
    assert cache.get("b") == 2


def test_least_recently_used_is_evicted():
    cache = MetricsCache(max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert cache.get_stats()["evictions"] == 1


def test_invalidate_prefix_only_touches_that_business():
    cache = MetricsCache()
    cache.set(make_key("business-metrics", 1), "m1")
    cache.set(make_key("business-metrics", 1, "rating"), "r1")
    cache.set(make_key("business-metrics", 10), "m10")

    removed = cache.invalidate_prefix(make_key("business-metrics", 1))

    assert removed == 2
    assert cache.get(make_key("business-metrics", 1)) is None
    assert cache.get(make_key("business-metrics", 1, "rating")) is None
    assert cache.get(make_key("business-metrics", 10)) == "m10"


def test_invalidate_and_clear():
    cache = MetricsCache()
    cache.set("a", 1)
    assert cache.invalidate("a")
    assert not cache.invalidate("a")

    cache.set("b", 2)
    cache.clear()
    assert len(cache) == 0
    assert cache.invalidate_prefix("b") == 0


def test_stats():
    cache = MetricsCache()
    cache.set("a", 1)
    cache.get("a")
    cache.get("nope")

    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == "50.00%"
