from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff with full jitter.

    delay(n) = uniform(0, min(max_delay, base_delay * 2**(n-1))) for n = 1..max_attempts-1
    """

    max_attempts: int = 3
    base_delay_s: float = 0.05
    max_delay_s: float = 0.8
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)
    rand: Callable[[], float] = field(default=random.random, compare=False)

    def delays(self) -> Iterator[float]:
        for attempt in range(1, self.max_attempts):
            cap = min(self.max_delay_s, self.base_delay_s * (2 ** (attempt - 1)))
            yield cap * self.rand()

    def pause(self, delay_s: float) -> None:
        if delay_s > 0:
            self.sleep(delay_s)


def policy_from_settings(s) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=int(s.TRANSITION_MAX_ATTEMPTS),
        base_delay_s=s.TRANSITION_BACKOFF_BASE_MS / 1000.0,
        max_delay_s=s.TRANSITION_BACKOFF_MAX_MS / 1000.0,
    )
