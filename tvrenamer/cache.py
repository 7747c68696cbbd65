"""In-memory cache for TVDB lookups with single-flight loading."""
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Hashable

from .errors import LookupFailure, MetadataLookupError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached lookup result.

    ``value`` is None for an authoritative "not found" entry, in which
    case ``not_found`` holds the provider's message.
    """
    value: Any
    fetched_at: float
    not_found: str | None = None


class Cache:
    """Process-scoped cache of metadata lookups.

    Positive results and authoritative "not found" results are stored;
    transient and malformed failures are not.  Concurrent ``get_or_load``
    calls for the same key share one in-flight load.  There is no TTL:
    entries live until ``invalidate()`` is called.

    Usage::

        cache = Cache()
        series = cache.get_or_load(("series", "show name"), fetch)
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._inflight: dict[Hashable, Future] = {}
        self._lock = threading.Lock()
        # Bumped by invalidate() so loads started earlier are not stored
        self._generation = 0
        self.hits = 0
        self.misses = 0

    # -- public API -------------------------------------------------------

    def get(self, key: Hashable) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value for *key*, loading it at most once.

        Raises:
            MetadataLookupError: NOT_FOUND from the cache or the loader,
                or any other failure raised by the loader
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self.hits += 1
                return self._unwrap(entry)

            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future
                generation = self._generation
                self.misses += 1

        if not owner:
            log.debug("Waiting on in-flight lookup for %r", key)
            return future.result()

        try:
            value = loader()
        except MetadataLookupError as e:
            if e.is_not_found:
                self._store(key, generation, CacheEntry(
                    value=None, fetched_at=self._clock(), not_found=str(e)
                ))
            self._finish(key, future, error=e)
            raise
        except BaseException as e:
            self._finish(key, future, error=e)
            raise

        self._store(key, generation, CacheEntry(value=value, fetched_at=self._clock()))
        self._finish(key, future, value=value)
        return value

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one entry, or every entry when *key* is None."""
        with self._lock:
            self._generation += 1
            # Later callers start a fresh load instead of joining a stale one
            if key is None:
                self._entries.clear()
                self._inflight.clear()
            else:
                self._entries.pop(key, None)
                self._inflight.pop(key, None)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -- private ----------------------------------------------------------

    @staticmethod
    def _unwrap(entry: CacheEntry) -> Any:
        if entry.not_found is not None:
            raise MetadataLookupError(LookupFailure.NOT_FOUND, entry.not_found)
        return entry.value

    def _store(self, key: Hashable, generation: int, entry: CacheEntry) -> None:
        with self._lock:
            if generation == self._generation:
                self._entries[key] = entry

    def _finish(
        self,
        key: Hashable,
        future: Future,
        value: Any = None,
        error: BaseException | None = None,
    ) -> None:
        with self._lock:
            if self._inflight.get(key) is future:
                del self._inflight[key]
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)
