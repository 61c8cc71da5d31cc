# ref_watcher/retry.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Bounded retry with a fixed (or geometric) delay and an injectable sleep."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, TypeVar

from .errors import RetryableError, RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently to retry.

    Attributes:
        max_attempts: Total attempts including the first one.
        delay: Seconds to wait after the first failed attempt.
        backoff: Multiplier applied to the delay after each failure
            (1.0 keeps the delay fixed).
        sleep: Called with the delay between attempts. Tests pass a stub.
    """

    max_attempts: int = 3
    delay: float = 0.05
    backoff: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    def delays(self) -> Iterator[float]:
        """Yield the wait before each retry (max_attempts - 1 values)."""
        wait = self.delay
        for _ in range(max(self.max_attempts - 1, 0)):
            yield wait
            wait *= self.backoff

    def run(self, attempt: Callable[[], T]) -> T:
        """Call attempt until it returns or attempts run out.

        Only RetryableError triggers a retry; other exceptions propagate.

        Raises:
            RetryExhausted: Every attempt raised RetryableError.
        """
        waits = self.delays()
        attempts = 0
        while True:
            attempts += 1
            try:
                return attempt()
            except RetryableError as e:
                wait = next(waits, None)
                if wait is None:
                    raise RetryExhausted(e, attempts) from e
                logger.debug(f"Attempt {attempts} failed ({e}), retrying in {wait:.3f}s")
                self.sleep(wait)
