"""Retry logic and policies."""

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from npiscraper.core.config import BackoffStrategy, Settings
from npiscraper.monitoring.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior.

    One policy object covers every backoff flavour: fixed, linear or
    exponential delays, each optionally jittered.
    """

    max_attempts: int = 3
    backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    jitter: bool = True
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter_range: tuple[float, float] = (0.5, 1.5)

    # Exceptions to retry
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,)
    # Exceptions to NOT retry
    non_retryable_exceptions: tuple[type[Exception], ...] = ()

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "RetryPolicy":
        """Build a policy from application settings.

        Args:
            settings: Application settings
            **overrides: Fields that take precedence over settings

        Returns:
            RetryPolicy instance
        """
        values: dict[str, Any] = {
            "max_attempts": settings.retry_max_attempts,
            "backoff": settings.retry_backoff,
            "jitter": settings.retry_jitter,
            "initial_delay": settings.retry_initial_delay,
            "max_delay": settings.retry_max_delay,
        }
        values.update(overrides)
        return cls(**values)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for given attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        if self.backoff == BackoffStrategy.FIXED:
            delay = self.initial_delay

        elif self.backoff == BackoffStrategy.LINEAR:
            delay = self.initial_delay * (attempt + 1)

        elif self.backoff == BackoffStrategy.EXPONENTIAL:
            delay = self.initial_delay * (self.multiplier ** attempt)

        else:
            delay = self.initial_delay

        if self.jitter:
            delay *= random.uniform(*self.jitter_range)

        return min(delay, self.max_delay)

    def should_retry(self, exception: Exception) -> bool:
        """Check if exception should trigger retry.

        Args:
            exception: Exception to check

        Returns:
            True if should retry
        """
        # Check non-retryable first
        if isinstance(exception, self.non_retryable_exceptions):
            return False

        return isinstance(exception, self.retryable_exceptions)


@dataclass
class RetryState:
    """State of retry operation."""

    attempt: int = 0
    total_delay: float = 0.0
    errors: list[str] = field(default_factory=list)
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_time(self) -> float:
        """Get total elapsed time in seconds."""
        return time.monotonic() - self.start_time

    def record_error(self, error: Exception) -> None:
        """Record an error.

        Args:
            error: Exception that occurred
        """
        self.errors.append(f"Attempt {self.attempt + 1}: {type(error).__name__}: {error}")


class RetryHandler:
    """Handles retry logic for operations."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize retry handler.

        Args:
            policy: Retry policy to use
            sleep: Awaitable sleep used between attempts
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute_async(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        on_retry: Callable[[int, Exception, float], None] | None = None,
        **kwargs,
    ) -> T:
        """Execute async function with retry.

        Args:
            func: Async function to execute
            *args: Function arguments
            on_retry: Callback on retry (attempt, error, delay)
            **kwargs: Function keyword arguments

        Returns:
            Function result

        Raises:
            Last exception if all attempts fail
        """
        state = RetryState()

        while True:
            try:
                return await func(*args, **kwargs)

            except Exception as e:
                state.record_error(e)

                if not self.policy.should_retry(e):
                    logger.debug(f"Non-retryable exception: {type(e).__name__}: {e}")
                    raise

                if state.attempt + 1 >= self.policy.max_attempts:
                    logger.warning(
                        f"Max attempts ({self.policy.max_attempts}) exceeded | "
                        f"error={type(e).__name__}"
                    )
                    raise

                delay = self.policy.calculate_delay(state.attempt)
                state.total_delay += delay

                logger.warning(
                    f"Retry {state.attempt + 1}/{self.policy.max_attempts - 1} | "
                    f"error={type(e).__name__} | delay={delay:.2f}s"
                )

                if on_retry:
                    on_retry(state.attempt, e, delay)

                await self._sleep(delay)
                state.attempt += 1
