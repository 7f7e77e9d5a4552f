import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple


class SlidingWindowRateLimiter:
    """In-memory sliding window limiter.

    Each key may make ``max_requests`` requests in any ``window_seconds``
    period. State lives in the process, which matches the single-instance
    deployment. Keys with no hits inside the window are dropped, at most
    once per window, so idle clients do not accumulate.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        """Number of keys currently tracked."""
        with self._lock:
            return len(self._hits)

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0 and self.window_seconds > 0

    def _prune(self, key: str, cutoff: float) -> Deque[float]:
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        if now - self._last_sweep < self.window_seconds:
            return
        cutoff = now - self.window_seconds
        for key in list(self._hits):
            self._prune(key, cutoff)
        self._last_sweep = now

    def check(self, key: str) -> Tuple[bool, int]:
        """Record a request for ``key`` if allowed.

        Returns:
            (allowed, retry_after_seconds)
        """
        if not self.enabled:
            return True, 0

        now = self.clock()
        cutoff = now - self.window_seconds
        with self._lock:
            self._sweep(now)
            hits = self._prune(key, cutoff)

            if len(hits) >= self.max_requests:
                retry_after = int(hits[0] + self.window_seconds - now) + 1
                return False, max(retry_after, 1)

            hits.append(now)
            self._hits[key] = hits
            return True, 0

    def remaining(self, key: str) -> int:
        now = self.clock()
        with self._lock:
            hits = self._hits.get(key, ())
            active = sum(1 for ts in hits if ts > now - self.window_seconds)
        return max(0, self.max_requests - active)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
