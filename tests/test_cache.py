import threading
import time

import pytest

from tvrenamer.cache import Cache
from tvrenamer.errors import LookupFailure, MetadataLookupError


def test_loads_once_then_hits():
    cache = Cache()
    calls = []

    def loader():
        calls.append(1)
        return ("a", "b")

    assert cache.get_or_load("k", loader) == ("a", "b")
    assert cache.get_or_load("k", loader) == ("a", "b")
    assert len(calls) == 1
    assert (cache.hits, cache.misses) == (1, 1)
    assert "k" in cache


def test_not_found_is_cached():
    cache = Cache()
    calls = []

    def loader():
        calls.append(1)
        raise MetadataLookupError(LookupFailure.NOT_FOUND, "nothing here")

    for _ in range(3):
        with pytest.raises(MetadataLookupError) as excinfo:
            cache.get_or_load("k", loader)
        assert excinfo.value.is_not_found
        assert "nothing here" in str(excinfo.value)

    assert len(calls) == 1
    assert cache.get("k").not_found == "nothing here"


@pytest.mark.parametrize("kind", [LookupFailure.TRANSIENT, LookupFailure.MALFORMED])
def test_other_failures_are_not_cached(kind):
    cache = Cache()
    calls = []

    def loader():
        calls.append(1)
        if len(calls) == 1:
            raise MetadataLookupError(kind, "boom")
        return "ok"

    with pytest.raises(MetadataLookupError):
        cache.get_or_load("k", loader)
    assert "k" not in cache

    assert cache.get_or_load("k", loader) == "ok"
    assert len(calls) == 2


def test_invalidate_one_and_all():
    cache = Cache()
    cache.get_or_load("a", lambda: 1)
    cache.get_or_load("b", lambda: 2)

    cache.invalidate("a")
    assert "a" not in cache and "b" in cache

    cache.invalidate()
    assert len(cache) == 0


def test_load_started_before_invalidate_is_not_stored():
    cache = Cache()

    def loader():
        cache.invalidate()
        return "stale"

    assert cache.get_or_load("k", loader) == "stale"
    assert "k" not in cache


def test_concurrent_lookups_share_one_load():
    cache = Cache()
    calls = []
    release = threading.Event()
    results = []
    lock = threading.Lock()

    def loader():
        calls.append(1)
        release.wait(5)
        return object()

    def worker():
        value = cache.get_or_load("k", loader)
        with lock:
            results.append(value)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    time.sleep(0.05)
    release.set()
    for t in threads:
        t.join(5)

    assert len(calls) == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_concurrent_waiters_share_the_failure():
    cache = Cache()
    release = threading.Event()
    errors = []
    lock = threading.Lock()

    def loader():
        release.wait(5)
        raise MetadataLookupError(LookupFailure.TRANSIENT, "timeout")

    def worker():
        try:
            cache.get_or_load("k", loader)
        except MetadataLookupError as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    time.sleep(0.05)
    release.set()
    for t in threads:
        t.join(5)

    assert len(errors) == 4
    assert all(e.kind is LookupFailure.TRANSIENT for e in errors)
    assert "k" not in cache


def test_lookup_after_invalidate_does_not_join_older_load():
    cache = Cache()
    started = threading.Event()
    release = threading.Event()
    results = []

    def slow_loader():
        started.set()
        release.wait(5)
        return "old"

    thread = threading.Thread(target=lambda: results.append(cache.get_or_load("k", slow_loader)))
    thread.start()
    assert started.wait(5)

    cache.invalidate("k")
    assert cache.get_or_load("k", lambda: "new") == "new"

    release.set()
    thread.join(5)

    assert results == ["old"]
    assert cache.get("k").value == "new"
    assert cache.get_or_load("k", lambda: "newer") == "new"
