"""Bounded retry policy for async operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKOFF_MODES = ("none", "fixed", "exponential")


class RetryError(RuntimeError):
    """All attempts of a retried operation failed."""

    def __init__(self, label: str, attempts: int):
        super().__init__(f"[{label}] all {attempts} attempt(s) failed")
        self.label = label
        self.attempts = attempts


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an operation and how long to wait in between.

    ``max_attempts`` counts the first try, so ``RetryPolicy(max_attempts=2)``
    allows one retry.
    """

    max_attempts: int = 1
    backoff: str = "none"
    delay: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff not in BACKOFF_MODES:
            raise ValueError(f"Unknown backoff '{self.backoff}'. Choose from: {list(BACKOFF_MODES)}")
        if self.delay < 0:
            raise ValueError("delay must not be negative")

    @classmethod
    def with_retries(cls, retries: int, backoff: str = "none", delay: float = 0.0) -> RetryPolicy:
        return cls(max_attempts=retries + 1, backoff=backoff, delay=delay)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        if self.backoff == "none":
            return 0.0
        if self.backoff == "fixed":
            return self.delay
        return self.delay * (2 ** attempt)

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        label: str = "operation",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        """Await ``operation()`` until it succeeds or attempts run out.

        Raises:
            RetryError: every attempt raised one of ``retry_on``; the last
                failure is chained as ``__cause__``.
        """
        last_exc: BaseException | None = None
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except retry_on as exc:
                last_exc = exc
                if attempt < self.max_attempts - 1:
                    wait = self.delay_for(attempt)
                    logger.warning(
                        "[%s] attempt %d/%d failed: %s - retrying in %.1fs",
                        label, attempt + 1, self.max_attempts, exc, wait,
                    )
                    if wait > 0:
                        await sleep(wait)

        raise RetryError(label, self.max_attempts) from last_exc
