"""Retry with exponential backoff for unreliable remote calls.

Delay before retry ``i`` (0-based) is ``min(base_delay * 2**i, max_delay)``.
``max_retries`` counts retries after the first attempt, so
``max_retries=0`` means exactly one attempt and no delay.

Errors that can never succeed on retry (ValidationError,
BusinessLogicError, or any AppError marked non-retryable) fail fast, as
does anything ``should_retry`` rejects.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from ndc_calculator.errors import AppError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _always(_: BaseException) -> bool:
    return True


@dataclass(frozen=True)
class RetryOptions:
    """Retry budget for one invocation."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    should_retry: Callable[[BaseException], bool] = field(default=_always, compare=False)

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after failed attempt ``attempt`` (0-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    def backoff_delays(self) -> list[float]:
        """Every delay a fully-failing invocation would wait."""
        return [self.delay_for(i) for i in range(self.max_retries)]


class ResilientInvoker:
    """Run an async operation under a retry budget."""

    def __init__(
        self,
        defaults: RetryOptions | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.defaults = defaults or RetryOptions()
        self._sleep = sleep

    async def invoke(
        self,
        op: Callable[[], Awaitable[T]],
        options: RetryOptions | None = None,
    ) -> T:
        """Call ``op`` until it succeeds or the budget runs out.

        Raises:
            The last error raised by ``op``.
        """
        opts = options or self.defaults
        if opts.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {opts.max_retries}")

        attempt = 0
        while True:
            try:
                return await op()
            except Exception as exc:
                if attempt >= opts.max_retries or not self._retryable(exc, opts):
                    raise
                delay = opts.delay_for(attempt)
                logger.warning(
                    "Attempt %d/%d failed (%s); retrying in %.2fs",
                    attempt + 1, opts.max_retries + 1, exc, delay,
                )
                await self._sleep(delay)
                attempt += 1

    @staticmethod
    def _retryable(exc: Exception, opts: RetryOptions) -> bool:
        if isinstance(exc, AppError) and not exc.retryable:
            return False
        return opts.should_retry(exc)
