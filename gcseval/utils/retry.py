"""Retry utilities with a fixed delay for transient gcloud failures.

gcloud failures come back as values (a CommandResult with a non-zero exit),
so retrying is driven by a condition on the return value rather than by
exceptions.
"""

import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 1.0,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Maximum number of attempts, including the first (default: 3)
            delay: Fixed delay in seconds between attempts (default: 1.0)
            cancel_event: Optional event; setting it interrupts the wait between
                attempts and stops further retries
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if delay < 0:
            raise ValueError(f"delay must not be negative, got {delay}")
        self.max_attempts = max_attempts
        self.delay = delay
        self.cancel_event = cancel_event

    def wait(self) -> bool:
        """Sleep for the fixed delay.

        Returns:
            False if the wait was interrupted via cancel_event, True otherwise
        """
        if self.cancel_event is None:
            time.sleep(self.delay)
            return True
        return not self.cancel_event.wait(self.delay)

    def __repr__(self) -> str:
        return f"RetryPolicy(max_attempts={self.max_attempts}, delay={self.delay})"


def retry_until(
    func: Callable[[], Any],
    is_done: Callable[[Any], bool],
    policy: Optional[RetryPolicy] = None,
    logger_instance: Optional[logging.Logger] = None,
) -> Any:
    """Call func until is_done(result) holds or the attempts run out.

    Args:
        func: Zero-argument callable to execute
        is_done: Predicate on the return value; True stops retrying
        policy: RetryPolicy instance (uses defaults if None)
        logger_instance: Optional logger instance for logging retry attempts

    Returns:
        The first result satisfying is_done, otherwise the last result obtained

    Example:
        policy = RetryPolicy(max_attempts=5, delay=2.0)
        result = retry_until(
            lambda: runner.execute("gcloud storage ls gs://bucket"),
            lambda r: r.success,
            policy,
        )
    """
    if policy is None:
        policy = RetryPolicy()

    log = logger_instance or logger
    name = getattr(func, "__name__", repr(func))
    result = None

    for attempt in range(1, policy.max_attempts + 1):
        result = func()

        if is_done(result):
            return result

        if attempt >= policy.max_attempts:
            log.warning(f"{name} did not succeed after {policy.max_attempts} attempts")
            break

        log.warning(
            f"{name} failed on attempt {attempt}/{policy.max_attempts}, "
            f"retrying in {policy.delay:.1f}s..."
        )
        if not policy.wait():
            log.warning(f"{name} retry interrupted after attempt {attempt}")
            break

    return result
