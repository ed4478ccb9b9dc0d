"""
Tests for the client query cache.
"""

from client.cache import QueryCache, make_key


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_make_key_normalizes_filters():
    first = make_key("books", {"page": 1, "shelf": "read", "search": ""})
    second = make_key("books", {"shelf": "read", "page": 1, "search": None})
    assert first == second == ("books", (("page", 1), ("shelf", "read")))


def test_make_key_plain_parts():
    assert make_key("book", 12) == ("book", 12)
    assert make_key("bookStats") == ("bookStats",)


def test_get_and_set():
    cache = QueryCache()
    cache.set(("book", 1), {"bookId": 1})
    assert cache.get(("book", 1)) == {"bookId": 1}
    assert cache.get(("book", 2), "missing") == "missing"
    assert ("book", 1) in cache


def test_entries_expire():
    clock = FakeClock()
    cache = QueryCache(ttl_seconds=30, clock=clock)
    cache.set(("bookStats",), {"totalBooks": 3})

    clock.now = 29.9
    assert cache.get(("bookStats",)) == {"totalBooks": 3}

    clock.now = 30
    assert cache.get(("bookStats",)) is None
    assert len(cache) == 0


def test_get_or_fetch_calls_fetch_once():
    cache = QueryCache()
    calls = []

    def fetch():
        calls.append(1)
        return ["sci-fi"]

    assert cache.get_or_fetch(("bookshelves",), fetch) == ["sci-fi"]
    assert cache.get_or_fetch(("bookshelves",), fetch) == ["sci-fi"]
    assert len(calls) == 1


def test_get_or_fetch_refetches_after_expiry():
    clock = FakeClock()
    cache = QueryCache(ttl_seconds=10, clock=clock)
    values = iter([1, 2])

    assert cache.get_or_fetch(("bookStats",), lambda: next(values)) == 1
    clock.now = 11
    assert cache.get_or_fetch(("bookStats",), lambda: next(values)) == 2


def test_failed_fetch_is_not_cached():
    cache = QueryCache()

    def fail():
        raise RuntimeError("offline")

    try:
        cache.get_or_fetch(("books",), fail)
    except RuntimeError:
        pass
    assert len(cache) == 0


def test_invalidate_by_prefix():
    cache = QueryCache()
    cache.set(make_key("books", {"page": 1}), "page 1")
    cache.set(make_key("books", {"page": 2}), "page 2")
    cache.set(make_key("book", 7), "book 7")
    cache.set(make_key("book", 8), "book 8")
    cache.set(make_key("bookStats"), "stats")

    assert cache.invalidate("books") == 2
    assert cache.invalidate("book", 7) == 1
    assert cache.invalidate("nothing") == 0

    assert make_key("book", 8) in cache
    assert make_key("bookStats") in cache
    assert len(cache) == 2


def test_clear():
    cache = QueryCache()
    cache.set(("book", 1), 1)
    cache.clear()
    assert len(cache) == 0
