from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass
class _Window:
    started_at: datetime
    count: int


class FixedWindowRateLimiter:
    """Per-key request counter over fixed windows.

    A key's window opens on its first request and lasts ``window_seconds``.
    ``sweep`` drops keys whose window has closed.
    """

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self.max_requests = max_requests
        self.window = timedelta(seconds=window_seconds)
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}
        self._last_sweep: datetime | None = None

    def allow(self, key: str, now: datetime) -> bool:
        with self._lock:
            current = self._windows.get(key)
            if current is None or now - current.started_at >= self.window:
                self._windows[key] = _Window(started_at=now, count=1)
                return True
            if current.count >= self.max_requests:
                return False
            current.count += 1
            return True

    def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)

    def sweep(self, now: datetime) -> int:
        with self._lock:
            self._last_sweep = now
            stale = [k for k, w in self._windows.items() if now - w.started_at >= self.window]
            for key in stale:
                del self._windows[key]
        return len(stale)

    def sweep_if_due(self, now: datetime) -> int:
        if self._last_sweep is not None and now - self._last_sweep < self.window:
            return 0
        return self.sweep(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)
