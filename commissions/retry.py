"""Bounded retry for ledger writes that lose an optimistic-concurrency race."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import settings
from commissions.errors import ConcurrencyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    base_delay_seconds: float
    max_delay_seconds: float

    def backoff_seconds(self, attempt: int) -> float:
        multiplier = 2 ** max(attempt - 1, 0)
        return min(self.base_delay_seconds * multiplier, self.max_delay_seconds)

    async def run(self, operation: Callable[[], Awaitable[T]], *, label: str = "operation") -> T:
        """Await operation(), retrying on ConcurrencyError up to max_attempts times.

        Each attempt must be a complete unit of work; the last
        ConcurrencyError is re-raised once attempts are exhausted. Any other
        exception propagates immediately.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except ConcurrencyError:
                if attempt >= self.max_attempts:
                    logger.warning("%s gave up after %d attempts", label, attempt)
                    raise
                delay = self.backoff_seconds(attempt)
                logger.info(
                    "%s hit a concurrent write (attempt %d/%d); retrying in %.3fs",
                    label, attempt, self.max_attempts, delay,
                )
                await asyncio.sleep(delay)
                attempt += 1


def default_ledger_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max(settings.LEDGER_RETRY_ATTEMPTS, 1),
        base_delay_seconds=settings.LEDGER_RETRY_BASE_DELAY_SECONDS,
        max_delay_seconds=settings.LEDGER_RETRY_MAX_DELAY_SECONDS,
    )
