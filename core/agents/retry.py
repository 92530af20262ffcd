"""Bounded fixed-delay retry policy for LLM calls."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from core.errors import LLMServiceError


T = TypeVar("T")

logger = logging.getLogger("aqd.retry")


def is_transient(error: Exception) -> bool:
    """Only classified-transient LLM failures are retried."""
    return isinstance(error, LLMServiceError) and error.retryable


@dataclass
class RetryPolicy:
    """Retry up to ``max_attempts`` times with a fixed delay between attempts."""
    max_attempts: int = 3
    delay_seconds: float = 2.0
    is_retryable: Callable[[Exception], bool] = field(default=is_transient)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        on_failure: Callable[[int, Exception], None] | None = None,
    ) -> tuple[T, int]:
        """Run ``operation`` until it succeeds or the budget is spent.

        Returns:
            Tuple of (result, attempts used).

        Raises:
            The last error, immediately when it is not retryable or once the
            attempts are exhausted. The attempt count is stored on the error
            as ``attempts``.
        """
        attempt = 1
        while True:
            try:
                return await operation(), attempt
            except Exception as e:
                if on_failure is not None:
                    on_failure(attempt, e)
                if not self.is_retryable(e) or attempt >= self.max_attempts:
                    e.attempts = attempt
                    raise
                logger.info(
                    f"Retrying in {self.delay_seconds}s "
                    f"({self.max_attempts - attempt} attempts remaining)"
                )
                await asyncio.sleep(self.delay_seconds)
                attempt += 1
