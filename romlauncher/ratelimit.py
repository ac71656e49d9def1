"""In-memory sliding-window rate limiter keyed by client address."""
from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        out = {
            'RateLimit-Limit': str(self.limit),
            'RateLimit-Remaining': str(self.remaining),
            'RateLimit-Reset': str(int(math.ceil(self.reset_after))),
        }
        if not self.allowed:
            out['Retry-After'] = out['RateLimit-Reset']
        return out


class SlidingWindowLimiter:
    """
    Allow at most ``max_requests`` hits per key within any ``window_seconds``
    span. State is per-process and lost on restart.
    """

    # idle keys are pruned once this many are tracked
    max_keys = 10000

    def __init__(self, max_requests: int, window_seconds: float,
                 clock: Callable[[], float] = time.monotonic):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._next_prune = float('-inf')

    def hit(self, key: str) -> RateDecision:
        """Count one request for key and say whether it may proceed."""
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            # full scans at most once per window
            if len(self._hits) >= self.max_keys and now >= self._next_prune:
                self._prune_locked(cutoff)
                self._next_prune = now + self.window_seconds
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                reset_after = hits[0] + self.window_seconds - now
                return RateDecision(False, self.max_requests, 0, max(0.0, reset_after))

            hits.append(now)
            reset_after = hits[0] + self.window_seconds - now
            return RateDecision(
                True, self.max_requests, self.max_requests - len(hits), max(0.0, reset_after))

    def prune(self) -> int:
        """Drop keys with no hits left in the window. Returns how many were dropped."""
        cutoff = self._clock() - self.window_seconds
        with self._lock:
            return self._prune_locked(cutoff)

    def _prune_locked(self, cutoff: float) -> int:
        stale = [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for k in stale:
            del self._hits[k]
        return len(stale)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
