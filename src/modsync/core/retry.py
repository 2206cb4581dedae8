"""Retry with exponential backoff, jitter and cooperative cancellation.

This module provides:
- RetryPolicy: Re-runs an action when it fails with a retryable exception
- DEFAULT_RETRYABLE: Exception types treated as transient by default

The delay after failed attempt ``n`` (1-indexed) is
``initial_delay * 2 ** (n - 1) + uniform(0, jitter)``. Delays are waited on a
``threading.Event`` so that setting the event aborts the wait promptly.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from typing import TypeVar

from modsync.core.errors import OperationCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 1.0  # seconds
DEFAULT_JITTER = 1.0  # seconds

# Locked files surface as PermissionError on Windows, OSError elsewhere
DEFAULT_RETRYABLE: tuple[type[BaseException], ...] = (
    OSError,
    PermissionError,
    TimeoutError,
)


class RetryPolicy:
    """Retries a unit of work on transient failures."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        retryable: tuple[type[BaseException], ...] = DEFAULT_RETRYABLE,
        jitter: float = DEFAULT_JITTER,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the policy.

        Args:
            max_attempts: Total attempts including the first one.
            initial_delay: Delay after the first failure, in seconds.
            retryable: Exception types that trigger a retry.
            jitter: Upper bound of the random delay added to each backoff.
            cancel_event: Event that aborts a pending delay when set.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._initial_delay = initial_delay
        self._retryable: list[type[BaseException]] = list(retryable)
        self._jitter = jitter
        self._cancel_event = cancel_event or threading.Event()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def retryable(self) -> tuple[type[BaseException], ...]:
        return tuple(self._retryable)

    def add_retryable(self, exc_type: type[BaseException]) -> None:
        """Treat another exception type as transient."""
        if exc_type not in self._retryable:
            self._retryable.append(exc_type)

    def is_retryable(self, exc: BaseException) -> bool:
        """Check whether an exception is in the retryable set."""
        return isinstance(exc, tuple(self._retryable))

    def base_delay(self, attempt: int) -> float:
        """Backoff after failed attempt ``attempt`` (1-indexed), without jitter."""
        return self._initial_delay * (2 ** (attempt - 1))

    def _wait(self, delay: float) -> None:
        if self._cancel_event.wait(delay):
            raise OperationCancelled("Retry delay cancelled")

    def execute(self, action: Callable[[], T], description: str = "operation") -> T:
        """Run an action, retrying transient failures.

        Args:
            action: Zero-argument callable to run.
            description: Text used in log messages.

        Returns:
            Result of the action.

        Raises:
            OperationCancelled: If the cancel event is set before or during a delay.
            Exception: The action's exception if it is not retryable, or the
                last one once attempts are exhausted.
        """
        attempt = 1
        while True:
            if self._cancel_event.is_set():
                raise OperationCancelled(f"Cancelled before {description}")
            try:
                return action()
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                if attempt >= self._max_attempts:
                    logger.error(f"{description}: all {self._max_attempts} attempts failed: {e}")
                    raise

                delay = self.base_delay(attempt) + random.uniform(0, self._jitter)
                logger.warning(
                    f"{description}: attempt {attempt}/{self._max_attempts} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                self._wait(delay)
                attempt += 1
