"""Utilities for applying delay and rate limiting to store calls."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .models import StoredClient


@dataclass
class DelayPolicy:
    """Pause inserted after every store call."""

    delay_seconds: float = 0.0


class RateLimiter:
    """Enforces a minimum interval between calls shared by all threads."""

    def __init__(self, calls_per_minute: Optional[float]) -> None:
        self._interval = 60.0 / float(calls_per_minute) if calls_per_minute else 0.0
        self._lock = threading.Lock()
        self._next_available = 0.0

    @property
    def interval(self) -> float:
        return self._interval

    def acquire(self) -> None:
        if self._interval <= 0:
            return
        with self._lock:
            now = time.monotonic()
            if now < self._next_available:
                time.sleep(self._next_available - now)
                now = time.monotonic()
            self._next_available = now + self._interval


class RateLimitedStore:
    """Wrapper that throttles every call made to a client store."""

    def __init__(
        self,
        store,
        *,
        delay_policy: Optional[DelayPolicy] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._store = store
        self._delay_policy = delay_policy or DelayPolicy()
        self._rate_limiter = rate_limiter or RateLimiter(None)

    @property
    def wrapped(self):
        return self._store

    def find_by_phone(self, phone: str) -> Optional[StoredClient]:
        return self._call(self._store.find_by_phone, phone)

    def create(self, fields: Mapping[str, Any]) -> StoredClient:
        return self._call(self._store.create, fields)

    def update(self, phone: str, fields: Mapping[str, Any]) -> StoredClient:
        return self._call(self._store.update, phone, fields)

    def _call(self, method, *args):
        self._rate_limiter.acquire()
        try:
            return method(*args)
        finally:
            if self._delay_policy.delay_seconds > 0:
                time.sleep(self._delay_policy.delay_seconds)

    def __getattr__(self, item):  # pragma: no cover - simple delegation
        return getattr(self._store, item)
