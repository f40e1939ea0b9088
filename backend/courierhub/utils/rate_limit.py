import threading
import time
from typing import Dict, Tuple


class FixedWindowLimiter:
    """
    In-process fixed-window counter: at most `limit` hits per key every
    `window_seconds`. Good for a single worker; a multi-worker deployment
    needs a shared store instead.
    """

    def __init__(self, limit: int, window_seconds: float, clock=time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # key -> (count, window resets at)
        self._hits: Dict[str, Tuple[int, float]] = {}

    def hit(self, key: str) -> Tuple[bool, int]:
        """Count one attempt. Returns (allowed, seconds until the window resets)."""
        now = self._clock()
        with self._lock:
            count, resets_at = self._hits.get(key, (0, 0.0))
            if now >= resets_at:
                count, resets_at = 0, now + self.window_seconds
            retry_after = max(1, int(resets_at - now + 0.999))
            if count >= self.limit:
                return False, retry_after
            self._hits[key] = (count + 1, resets_at)
            if len(self._hits) > 10_000:
                self._prune(now)
            return True, retry_after

    def _prune(self, now: float) -> None:
        for key in [k for k, (_, resets_at) in self._hits.items() if now >= resets_at]:
            del self._hits[key]

    def reset(self, key: str = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
