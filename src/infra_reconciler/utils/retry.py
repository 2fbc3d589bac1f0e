"""Retry strategy with exponential backoff for cloud probe calls."""

import time
import random
from typing import Callable, TypeVar

from infra_reconciler.utils.errors import ErrorHandler, error_handler
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class RetryStrategy:
    """Implements exponential backoff retry strategy for transient errors."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 20.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        handler: ErrorHandler = error_handler,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize retry strategy.

        Args:
            max_attempts: Total number of attempts, including the first one
            base_delay: Base delay in seconds before the first retry
            max_delay: Maximum delay in seconds between retries
            exponential_base: Base for exponential backoff calculation
            jitter: Whether to add random jitter to delay
            handler: Error handler used to classify transient errors
            sleep: Sleep function (replaced in tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.handler = handler
        self.sleep = sleep

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if an error should trigger a retry.

        Args:
            error: The exception that occurred
            attempt: Attempt number that just failed (1-indexed)

        Returns:
            True if the error is transient and attempts remain
        """
        if attempt >= self.max_attempts:
            return False
        return self.handler.is_transient(error)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Attempt number that just failed (1-indexed)

        Returns:
            Delay in seconds before next retry
        """
        delay = min(
            self.base_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay
        )

        # Up to 10% jitter
        if self.jitter:
            delay += random.uniform(0, delay * 0.1)

        return delay

    def execute_with_retry(
        self,
        func: Callable[..., T],
        *args,
        **kwargs
    ) -> T:
        """Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Result of the function call

        Raises:
            The last exception once it is not retryable or attempts are exhausted
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                result = func(*args, **kwargs)
                if attempt > 1:
                    logger.info(f"Operation succeeded on attempt {attempt}")
                return result

            except Exception as e:
                if not self.should_retry(e, attempt):
                    if attempt > 1:
                        logger.error(f"Giving up after {attempt} attempts: {e}")
                    raise

                delay = self.get_delay(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                )
                self.sleep(delay)
