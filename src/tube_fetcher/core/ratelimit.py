"""Per-client sliding-window rate limiting."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from typing import Callable, Mapping

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def client_id_from_headers(headers: Mapping[str, str]) -> str:
    """
    Derive a client identifier from proxy headers.

    Checks the first hop of X-Forwarded-For, then X-Real-IP, then
    CF-Connecting-IP. Clients without any of these share the "unknown" bucket,
    and therefore one quota.
    """
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    for name in ("x-real-ip", "cf-connecting-ip"):
        value = (headers.get(name) or "").strip()
        if value:
            return value
    return UNKNOWN_CLIENT


class RateLimiter:
    """
    Sliding-window admission control keyed by client id.

    Each client owns an ordered deque of admission timestamps. Entries older
    than the window are pruned on every read for that client; with a small
    probability per admitted call the whole map is swept and clients with no
    in-window history are dropped.

    All reads and writes happen under one lock, so the count-then-append in
    ``admit`` cannot interleave with another admission for the same client.
    """

    def __init__(
        self,
        window_seconds: float = 60,
        max_requests: int = 10,
        sweep_probability: float = 0.01,
        clock: Callable[[], float] = time.time,
        rng: Callable[[], float] = random.random,
    ):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.sweep_probability = sweep_probability
        self._clock = clock
        self._rng = rng
        self._windows: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: dict) -> "RateLimiter":
        return cls(
            window_seconds=config["window_seconds"],
            max_requests=config["max_requests"],
            sweep_probability=config["sweep_probability"],
        )

    def _prune(self, window: deque[float], now: float) -> None:
        window_start = now - self.window_seconds
        while window and window[0] <= window_start:
            window.popleft()

    def admit(self, client_id: str) -> bool:
        """Record a request for the client if it is under the limit."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(client_id)
            if window is None:
                window = self._windows[client_id] = deque()
            self._prune(window, now)

            if len(window) >= self.max_requests:
                logger.info(f"Rate limit hit for client {client_id}")
                return False

            window.append(now)

            if self._rng() < self.sweep_probability:
                self._sweep(now)
            return True

    def remaining(self, client_id: str) -> int:
        """Admissions left for the client in the current window."""
        with self._lock:
            window = self._windows.get(client_id)
            if not window:
                return self.max_requests
            self._prune(window, self._clock())
            return max(0, self.max_requests - len(window))

    def reset_at(self, client_id: str) -> float:
        """When the oldest recorded admission leaves the window, or 0 without history."""
        with self._lock:
            window = self._windows.get(client_id)
            if window:
                self._prune(window, self._clock())
            if not window:
                return 0
            return window[0] + self.window_seconds

    def _sweep(self, now: float) -> None:
        for client_id in list(self._windows):
            window = self._windows[client_id]
            self._prune(window, now)
            if not window:
                del self._windows[client_id]
        logger.debug(f"Rate limiter sweep kept {len(self._windows)} clients")

    def __len__(self) -> int:
        return len(self._windows)
