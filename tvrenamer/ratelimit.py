"""Thread-safe token bucket shared by every request to the metadata provider."""
import threading
import time
from typing import Callable

DEFAULT_RATE = 10.0   # requests per second
DEFAULT_BURST = 10


class TokenBucket:
    """Token bucket rate limiter.

    Tokens refill continuously at *rate* per second up to *capacity*.
    ``acquire()`` blocks the calling thread until a token is available,
    so any number of worker threads can share one bucket without the
    combined request rate exceeding *rate*.
    """

    def __init__(
        self,
        rate: float = DEFAULT_RATE,
        capacity: int = DEFAULT_BURST,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = float(rate)
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    def try_acquire(self) -> bool:
        """Take a token if one is available right now."""
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def acquire(self) -> float:
        """Block until a token is available.

        Returns:
            Total seconds spent waiting
        """
        with self._lock:
            self._refill()
            # Reserve the token now; a negative balance queues later callers
            self._tokens -= 1
            delay = max(0.0, -self._tokens) / self.rate
        if delay:
            self._sleep(delay)
        return delay
