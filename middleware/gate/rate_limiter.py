import asyncio
import time
from collections import deque


class RollingWindowLimiter:
    """Allows at most ``max_requests`` per key within the trailing ``window_s`` seconds."""

    def __init__(self, max_requests: int, window_s: float, clock=time.monotonic):
        self.max_requests = int(max(max_requests, 1))
        self.window_s = float(max(window_s, 0.001))
        self.clock = clock
        self.hits: dict[str, deque] = {}
        self.last_sweep = clock()
        self.lock = asyncio.Lock()

    def _sweep(self, now: float):
        """Forgets keys whose newest request has left the window."""
        stale = [key for key, window in self.hits.items() if now - window[-1] >= self.window_s]
        for key in stale:
            del self.hits[key]
        self.last_sweep = now

    async def hit(self, key: str) -> float:
        """
        Records a request for ``key``.

        :return: 0 if the request is allowed, otherwise seconds until the
            oldest counted request leaves the window.
        """
        async with self.lock:
            now = self.clock()
            if now - self.last_sweep >= self.window_s:
                self._sweep(now)
            window = self.hits.setdefault(key, deque())
            while window and now - window[0] >= self.window_s:
                window.popleft()
            if len(window) >= self.max_requests:
                return self.window_s - (now - window[0])
            window.append(now)
            return 0.0

    def reset(self):
        self.hits.clear()
