"""In-memory throttling for the public authentication endpoints."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from typing import Callable

from ..errors import RateLimited


class InMemoryRateLimiter:
    """Sliding-window limiter per key (client address + path).

    Limits are read through callables on every hit so a changed
    environment takes effect without rebuilding the limiter.
    """

    def __init__(self, max_requests: Callable[[], int], window_seconds: Callable[[], int]):
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str) -> None:
        """Record one request for `key`; raise `RateLimited` when over the limit."""
        limit = self._max_requests()
        window = self._window_seconds()
        now = time.monotonic()
        with self._lock:
            q = self._hits[key]
            cutoff = now - window
            while q and q[0] < cutoff:
                q.popleft()
            if len(q) >= limit:
                oldest = q[0] if q else now
                raise RateLimited(retry_after=max(1, int(window - (now - oldest))))
            q.append(now)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
