# rate_limit.py
from __future__ import annotations

import math
import os
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from fastapi import HTTPException

from settings import settings


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after_seconds: int = 0


class InMemoryRateLimiter:
    """Sliding-window limiter; one deque of hit timestamps per key."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = Lock()

    def admit(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = self.clock()
        with self._lock:
            q = self._hits[key]
            while q and (now - q[0]) >= window_seconds:
                q.popleft()
            if len(q) >= limit:
                retry_after = max(1, math.ceil(window_seconds - (now - q[0])))
                return RateDecision(allowed=False, retry_after_seconds=retry_after)
            q.append(now)
            return RateDecision(allowed=True)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


_limiter = InMemoryRateLimiter()


def rate_limit_enabled() -> bool:
    raw = os.getenv("RATE_LIMIT_ENABLED")
    if raw is None:
        return bool(settings.RATE_LIMIT_ENABLED)
    return raw.strip().lower() in ("1", "true", "yes", "on")


def admit(identifier: str, *, limit: int, window_seconds: int = 60) -> RateDecision:
    if not rate_limit_enabled():
        return RateDecision(allowed=True)
    return _limiter.admit(identifier, limit, window_seconds)


def rate_limit_or_429(*, key: str, limit: int, window_seconds: int = 60) -> None:
    decision = admit(key, limit=limit, window_seconds=window_seconds)
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail="RATE_LIMITED",
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )
