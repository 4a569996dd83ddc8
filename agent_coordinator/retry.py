"""
Bounded retry for network-bound calls.

Wraps completion, classification and tool network I/O. Every failure is
treated as transient until the attempt budget runs out, then the last
error is raised. Waits grow exponentially up to a cap.
"""

import logging
from typing import Callable, Optional, TypeVar

from .cancellation import CancellationToken
from .errors import TurnCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NetworkRetry:
    """Fixed-attempt retry with capped exponential backoff."""

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("retry delays must be non-negative")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))

    def call(
        self,
        operation: Callable[[], T],
        cancel: Optional[CancellationToken] = None,
        fatal: tuple[type[BaseException], ...] = (),
        description: str = "network call",
    ) -> T:
        """
        Run ``operation`` until it succeeds or the attempt budget is spent.

        Args:
            operation: Zero-argument callable performing one attempt.
            cancel: Token checked before each attempt and during waits.
            fatal: Exception types that propagate without retrying.
            description: Label used in log messages.

        Returns:
            Whatever the first successful attempt returned.

        Raises:
            TurnCancelled: If the token fires.
            Exception: The last error once every attempt failed.
        """
        cancel = cancel or CancellationToken.none()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            cancel.raise_if_cancelled()
            try:
                return operation()
            except TurnCancelled:
                raise
            except fatal:
                raise
            except Exception as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                    description,
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                cancel.wait(delay)

        logger.error(
            "%s failed after %d attempts: %s",
            description,
            self.max_attempts,
            last_error,
        )
        assert last_error is not None
        raise last_error
