"""
Bounded retry with exponential backoff.

One RetryPolicy is built from settings and handed to every orchestrator
that talks to the recognition service, so attempt limits and delays live
in one place instead of inline loops at each call site.

Usage:
    policy = RetryPolicy.from_settings()

    async def attempt(n: int):
        return await backend_call()

    result = await policy.run(attempt, on_failure=record_failure, label="detect photo 7")
"""

import asyncio
import inspect
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from core.config import settings as default_settings
from core.exceptions import (
    ConflictError,
    NotFoundError,
    TerminalExternalError,
    ValidationError,
)
from core.logging import get_logger

logger = get_logger(__name__)


NON_RETRYABLE: Tuple[Type[BaseException], ...] = (
    TerminalExternalError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class RetryPolicy:
    """
    Attempt an async operation up to max_attempts times.

    Delay before attempt n+1 is base_delay * 2**(n-1) plus uniform jitter in
    [0, jitter]. Exceptions listed in non_retryable end the loop at once;
    anything else is assumed transient.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        jitter: float = 0.0,
        non_retryable: Tuple[Type[BaseException], ...] = NON_RETRYABLE,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.jitter = jitter
        self.non_retryable = non_retryable
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings=None, **overrides) -> "RetryPolicy":
        s = settings or default_settings
        kwargs = dict(
            max_attempts=s.retry_max_attempts,
            base_delay=s.retry_base_delay,
            jitter=s.retry_jitter,
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (1-based)."""
        delay = self.base_delay * (2 ** (attempt - 1))
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay

    def is_retryable(self, exc: BaseException) -> bool:
        return not isinstance(exc, self.non_retryable)

    async def run(
        self,
        operation: Callable[[int], Awaitable[Any]],
        on_failure: Optional[Callable[[int, BaseException], Any]] = None,
        label: str = "operation",
    ) -> Any:
        """
        Run operation(attempt) until it succeeds or the policy gives up.

        on_failure(attempt, exc) is called (and awaited if it returns a
        coroutine) after every failed attempt, including the last one.
        The final exception is re-raised.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation(attempt)
            except Exception as exc:
                if on_failure is not None:
                    outcome = on_failure(attempt, exc)
                    if inspect.isawaitable(outcome):
                        await outcome

                if not self.is_retryable(exc):
                    logger.warning(f"{label}: attempt {attempt} failed, not retryable: {exc}")
                    raise
                if attempt >= self.max_attempts:
                    logger.warning(f"{label}: attempt {attempt}/{self.max_attempts} failed, giving up: {exc}")
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    f"{label}: attempt {attempt}/{self.max_attempts} failed: {exc}; "
                    f"retrying in {delay:.1f}s"
                )
                await self.sleep(delay)
