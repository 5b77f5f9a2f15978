"""
Retry and circuit breaking for upstream calls.

The registry is the only upstream the request path talks to before a build,
so failures there are retried with backoff and, when they keep happening,
short-circuited until the registry has had time to recover.
"""

import asyncio
import functools
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


@dataclass
class RetryConfig:
    """Backoff policy for a retried call."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    exponential_base: float = 2.0
    jitter: bool = True

    def __post_init__(self):
        self.max_attempts = max(1, self.max_attempts)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        delay = min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += random.uniform(-delay * 0.1, delay * 0.1)
        return max(0.0, delay)


class RetryError(Exception):
    """Raised when every attempt of a retried call has failed."""

    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def retry_on_exception(
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
) -> Callable:
    """Retry an async callable on `exceptions`; other errors propagate at once."""
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        logger = get_logger(f"retry.{func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    if attempt >= config.max_attempts:
                        logger.error("Retries exhausted", attempts=attempt, error=str(exc))
                        raise RetryError(
                            f"{func.__name__} failed after {attempt} attempts",
                            last_exception=exc,
                            attempts=attempt,
                        ) from exc

                    delay = config.delay_for(attempt)
                    logger.warning("Attempt failed, retrying", attempt=attempt, delay=round(delay, 3), error=str(exc))
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(Exception):
    """Raised instead of calling an upstream whose circuit is open."""


class CircuitBreaker:
    """Counts consecutive failures of an upstream and blocks calls past a threshold."""

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: float = 30.0):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.logger = get_logger(f"circuit_breaker.{name}")

        self.state = CircuitState.CLOSED
        self.failures = 0
        self.opened_at = 0.0

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        if self.state == CircuitState.OPEN:
            if time.monotonic() - self.opened_at < self.recovery_timeout:
                raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")
            self.state = CircuitState.HALF_OPEN
            self.logger.info("Circuit half-open, letting a trial call through")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise

        if self.state == CircuitState.HALF_OPEN:
            self.logger.info("Circuit closed after successful trial call")
        self.state = CircuitState.CLOSED
        self.failures = 0
        return result

    def _on_failure(self) -> None:
        self.failures += 1
        # A failed trial call reopens immediately
        if self.state == CircuitState.HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                self.logger.warning("Circuit opened", failures=self.failures, threshold=self.failure_threshold)
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()
