"""Retry helper with exponential backoff."""
from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable, Tuple, Type, TypeVar

from ..logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = True
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based), capped at ``max_delay``."""

        delay = min(self.base_delay * (self.backoff_factor ** attempt), self.max_delay)
        if self.jitter:
            jitter_range = delay * 0.25
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0.0)

    def call(
        self,
        operation: Callable[[], T],
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        operation_name: str = "operation",
    ) -> T:
        """Run ``operation``, retrying on ``retry_on`` until attempts run out.

        The last exception is re-raised unchanged.
        """

        attempts = max(1, self.max_attempts)
        for attempt in range(attempts):
            try:
                return operation()
            except retry_on as exc:
                if attempt == attempts - 1:
                    logger.error("%s failed after %d attempt(s): %s", operation_name, attempts, exc)
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s attempt %d/%d failed: %s. Retrying in %.2fs",
                    operation_name,
                    attempt + 1,
                    attempts,
                    exc,
                    delay,
                )
                self.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover
