"""Retry-with-backoff policy, independent of any transport."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, TypeVar

from jobdesk.errors import is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class RetryResult(Generic[T]):
    """Outcome of running an operation under a :class:`RetryPolicy`."""

    value: T | None
    error: Exception | None
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Run an async operation up to ``max_attempts`` times.

    A failed attempt is retried only when ``is_retryable(error)`` is true, after
    waiting ``backoff_ms``. The final error is captured in the result instead of
    being raised so callers can aggregate failures.
    """

    max_attempts: int = 3
    backoff_ms: int = 500
    is_retryable: Callable[[BaseException], bool] = is_transient
    sleep: Sleep = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_ms < 0:
            raise ValueError("backoff_ms cannot be negative")

    async def run(self, operation: Callable[[], Awaitable[T]]) -> RetryResult[T]:
        attempts = 0
        while True:
            attempts += 1
            try:
                value = await operation()
            except Exception as exc:
                if attempts >= self.max_attempts or not self.is_retryable(exc):
                    return RetryResult(value=None, error=exc, attempts=attempts)
                logger.warning(
                    "retrying after transient failure",
                    extra={
                        "attempt": attempts,
                        "max_attempts": self.max_attempts,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                    },
                )
                await self.sleep(self.backoff_ms / 1000)
                continue
            return RetryResult(value=value, error=None, attempts=attempts)
