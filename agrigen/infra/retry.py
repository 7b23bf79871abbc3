from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from ..domain.errors import PipelineError
from ..observability.logging_utils import log_event


T = TypeVar("T")


class Deadline:
    """Wall-clock budget shared by every stage of one request."""

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


def call_with_retry(
    func: Callable[[], T],
    *,
    stage: str,
    max_attempts: int = 1,
    base_delay: float = 0.5,
    deadline: Optional[Deadline] = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
) -> T:
    """Run ``func``; retry only on retryable PipelineErrors.

    Backoff is exponential with full jitter and never sleeps past the
    deadline. With ``max_attempts=1`` the call is made exactly once.
    """
    rng = rng or random.Random()
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except PipelineError as exc:
            if not exc.retryable or attempt >= attempts:
                raise
            delay = rng.uniform(0, base_delay * (2 ** (attempt - 1)))
            if deadline is not None and deadline.remaining() <= delay:
                log_event(
                    "retry_budget_exhausted",
                    level=logging.WARNING,
                    stage=stage,
                    attempt=attempt,
                    error_kind=exc.kind.value,
                )
                raise
            log_event(
                "retry_scheduled",
                level=logging.WARNING,
                stage=stage,
                attempt=attempt,
                delay=round(delay, 3),
                error_kind=exc.kind.value,
            )
            sleep(delay)
    raise AssertionError("unreachable")
