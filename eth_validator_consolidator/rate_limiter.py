"""Client-side throttling of the validator data API."""

import collections
import logging
import threading
import time

from typing import Callable


WINDOW_SEC = 60.0


class RateLimiter:
    """Per-second spacing and per-minute sliding window limiter.

    A single instance is meant to be shared by every client talking to
    the same upstream, it is owned by whoever builds the clients.
    Callers are never rejected: acquire() sleeps until one more request
    fits in both budgets, then records it.
    """

    def __init__(
        self,
        per_second: int,
        per_minute: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize a RateLimiter.

        Args:
            per_second: int
                Maximum number of requests per second.
            per_minute: int
                Maximum number of requests in any 60 seconds window.
            clock: Callable[[], float]
                Monotonic time source, in seconds.
            sleep: Callable[[float], None]
                Function used to wait.

        Returns:
            None
        """
        if per_second <= 0 or per_minute <= 0:
            raise ValueError('rate limits must be positive')

        self._min_interval = 1.0 / per_second
        self._per_minute = per_minute
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._timestamps: collections.deque[float] = collections.deque()
        self._last_request: float | None = None

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= WINDOW_SEC:
            self._timestamps.popleft()

    def acquire(self) -> None:
        """Block until a request can be issued and record it.

        Args:
            None

        Returns:
            None
        """
        with self._lock:
            now = self._clock()
            self._prune(now)

            if len(self._timestamps) >= self._per_minute:
                oldest = self._timestamps[len(self._timestamps) - self._per_minute]
                wait = WINDOW_SEC - (now - oldest)
                if wait > 0:
                    logging.info(f'⏳ Per-minute rate limit reached, waiting {wait:.2f}s before next request')
                    self._sleep(wait)
                now = self._clock()
                self._prune(now)

            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self._min_interval:
                    wait = self._min_interval - elapsed
                    logging.debug(f'Per-second rate limit enforced, waiting {wait:.3f}s')
                    self._sleep(wait)

            self._last_request = self._clock()
            self._timestamps.append(self._last_request)

    @property
    def pending(self) -> int:
        """Number of requests recorded in the current window."""
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps)
