from hidden_gems.services.cache_service import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl=30, clock=clock)
    cache.set(("stats", 24), {"data": 1})

    clock.now += 29.9
    assert cache.get(("stats", 24)) == {"data": 1}

    clock.now += 0.1
    assert cache.get(("stats", 24)) is None
    assert len(cache) == 0


def test_set_refreshes_expiry():
    clock = FakeClock()
    cache = TTLCache(ttl=10, clock=clock)
    cache.set("k", 1)
    clock.now += 8
    cache.set("k", 2)
    clock.now += 8
    assert cache.get("k") == 2


def test_clear_and_missing():
    cache = TTLCache(ttl=10)
    assert cache.get("nothing") is None
    cache.set("a", 1)
    cache.set("b", 2)
    assert len(cache) == 2
    cache.clear()
    assert len(cache) == 0
