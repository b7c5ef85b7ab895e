"""Retry utilities for async operations."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retry_on: tuple[type[Exception], ...] = (Exception,)


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: Exception, attempts: int) -> None:
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(f"Failed after {attempts} attempts. Last error: {last_exception}")


class RetryAborted(Exception):
    """Raised when the abort hook stops a retry loop between attempts."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Aborted after {attempts} attempts")


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Backoff delay before retrying after the zero-based ``attempt``."""
    delay = min(
        config.base_delay * (config.exponential_base ** attempt),
        config.max_delay,
    )
    if config.jitter:
        delay *= (0.5 + random.random() * 0.5)
    return delay


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    should_abort: Optional[Callable[[], bool]] = None,
    on_attempt: Optional[Callable[[int], None]] = None,
    **kwargs: Any,
) -> T:
    """Retry an async function with exponential backoff.

    ``should_abort`` is consulted before every attempt, never during one.
    Exceptions outside ``config.retry_on`` propagate immediately.
    """
    if config is None:
        config = RetryConfig()

    name = getattr(func, "__name__", repr(func))

    for attempt in range(config.max_attempts):
        if should_abort is not None and should_abort():
            logger.info("Retry loop aborted", function=name, attempts=attempt)
            raise RetryAborted(attempt)

        if on_attempt is not None:
            on_attempt(attempt + 1)

        try:
            return await func(*args, **kwargs)
        except config.retry_on as e:
            if attempt == config.max_attempts - 1:
                logger.error(
                    "All retry attempts exhausted",
                    function=name,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise RetryError(e, attempt + 1) from e

            delay = compute_delay(config, attempt)

            logger.warning(
                "Attempt failed, retrying",
                function=name,
                attempt=attempt + 1,
                max_attempts=config.max_attempts,
                delay=delay,
                error=str(e),
            )

            await asyncio.sleep(delay)

    raise ValueError("max_attempts must be at least 1")
