"""Sliding-window rate limiting keyed by API key.

Each key owns a deque of admission timestamps. On every check the timestamps
older than ``now - window`` are discarded; the request is admitted only when
fewer than ``limit`` timestamps remain, and only admitted requests are
recorded. Rejected attempts do not count against the quota.

Concurrency Model:
    - One ``threading.Lock`` per key serializes checks for that key, so N
      racing callers can never admit more than ``limit`` requests
    - A registry lock guards creation and removal of per-key state
    - There is no ordering guarantee across different keys

Deployment Note:
    State lives in process memory. Multiple service instances each enforce the
    limit independently; a horizontally consistent deployment needs a shared
    counter store behind the same ``allow``/``headers`` interface.

Complexity:
    - allow(): amortized O(1), O(p) when p expired entries are pruned
    - headers(): same as allow(), without recording
    - purge_idle(): O(k) where k = number of tracked keys
"""

import threading
import time
from collections import deque
from typing import Optional

import structlog

from .models import RateLimitStatus

logger = structlog.get_logger()

DEFAULT_WINDOW_SECONDS = 3600


class _KeyWindow:
    __slots__ = ("lock", "timestamps", "retired")

    def __init__(self):
        self.lock = threading.Lock()
        self.timestamps: deque[float] = deque()
        # Set once the window is dropped from the registry by a sweep
        self.retired = False

    def prune(self, window_start: float) -> None:
        # Timestamps are appended in call order, so expired entries sit at the left
        while self.timestamps and self.timestamps[0] < window_start:
            self.timestamps.popleft()


class RateLimiter:
    """In-process sliding-window rate limiter.

    Instances are owned by the service container and injected where needed;
    tests construct a fresh limiter per case.

    Args:
        sweep_interval: Number of ``allow`` calls between idle-key sweeps
        clock: Time source returning epoch seconds (defaults to time.time)
    """

    def __init__(self, sweep_interval: int = 1000, clock=time.time):
        self._windows: dict[str, _KeyWindow] = {}
        self._registry_lock = threading.Lock()
        self._sweep_interval = max(1, sweep_interval)
        self._calls = 0
        self._clock = clock

    def _window_for(self, key: str) -> _KeyWindow:
        with self._registry_lock:
            window = self._windows.get(key)
            if window is None:
                window = _KeyWindow()
                self._windows[key] = window
            return window

    def allow(
        self,
        key: str,
        limit: int,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        now: Optional[float] = None,
    ) -> bool:
        """Record and admit a request if the key is under its limit.

        Args:
            key: API key (or any identifier) the quota belongs to
            limit: Requests allowed within the window
            window_seconds: Length of the sliding window
            now: Current time in epoch seconds; defaults to the limiter clock

        Returns:
            True if admitted (and recorded), False if the limit is reached
        """
        if now is None:
            now = self._clock()

        while True:
            window = self._window_for(key)
            with window.lock:
                if window.retired:
                    continue
                window.prune(now - window_seconds)
                if len(window.timestamps) >= limit:
                    admitted = False
                else:
                    window.timestamps.append(now)
                    admitted = True
            break

        self._maybe_sweep(now, window_seconds)

        if not admitted:
            logger.info("Rate limit exceeded", limit=limit, window_seconds=window_seconds)
        return admitted

    def headers(
        self,
        key: str,
        limit: int,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        now: Optional[float] = None,
    ) -> RateLimitStatus:
        """Report the quota state for a key without recording a request.

        ``reset_at`` is ``now + window_seconds``: an approximation, not the
        moment the oldest recorded request leaves the window.
        """
        if now is None:
            now = self._clock()

        with self._registry_lock:
            window = self._windows.get(key)

        used = 0
        if window is not None:
            with window.lock:
                window.prune(now - window_seconds)
                used = len(window.timestamps)

        return RateLimitStatus(
            limit=limit,
            remaining=max(0, limit - used),
            reset_at=int(now + window_seconds),
        )

    def count(self, key: str) -> int:
        """Number of timestamps currently stored for a key (unpruned)."""
        with self._registry_lock:
            window = self._windows.get(key)
        if window is None:
            return 0
        with window.lock:
            return len(window.timestamps)

    def tracked_keys(self) -> int:
        with self._registry_lock:
            return len(self._windows)

    def reset(self, key: Optional[str] = None) -> None:
        """Forget recorded requests for one key, or for every key."""
        with self._registry_lock:
            keys = list(self._windows) if key is None else [key]
            for name in keys:
                window = self._windows.pop(name, None)
                if window is not None:
                    window.retired = True

    def purge_idle(self, now: Optional[float] = None, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> int:
        """Drop per-key state whose timestamps have all expired.

        Returns:
            Number of keys removed
        """
        if now is None:
            now = self._clock()

        removed = 0
        with self._registry_lock:
            for key in list(self._windows):
                window = self._windows[key]
                # Skip windows another thread is currently checking
                if not window.lock.acquire(blocking=False):
                    continue
                try:
                    window.prune(now - window_seconds)
                    if not window.timestamps:
                        window.retired = True
                        del self._windows[key]
                        removed += 1
                finally:
                    window.lock.release()

        if removed:
            logger.debug("Purged idle rate limit windows", removed=removed)
        return removed

    def _maybe_sweep(self, now: float, window_seconds: int) -> None:
        with self._registry_lock:
            self._calls += 1
            due = self._calls % self._sweep_interval == 0
        if due:
            self.purge_idle(now, window_seconds)
