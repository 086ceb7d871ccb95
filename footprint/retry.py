from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_CLIENT_STATUSES = {408, 429}


def _iter_exception_chain(exc: BaseException):
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def is_retryable_error(exc: BaseException) -> bool:
    """Everything is worth another attempt except a definitive client-side rejection."""
    for current in _iter_exception_chain(exc):
        status = getattr(current, "status_code", None)
        if isinstance(status, int) and 400 <= status < 500:
            return status in RETRYABLE_CLIENT_STATUSES
    return True


def exponential_backoff(base_delay_seconds: float, attempt: int) -> float:
    return base_delay_seconds * (2 ** (attempt - 1))


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    backoff: Callable[[float, int], float] = field(default=exponential_backoff)
    should_retry: Callable[[BaseException], bool] = field(default=is_retryable_error)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number `attempt` (1-based)."""
        return self.backoff(self.base_delay_seconds, attempt)

    async def run(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        operation: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> T:
        attempt = 1
        while True:
            try:
                return await func()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.should_retry(exc):
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed, retrying in %ss (%d/%d): %s",
                    operation,
                    f"{delay:g}",
                    attempt,
                    self.max_attempts,
                    exc,
                )
                await sleep(delay)
                attempt += 1
