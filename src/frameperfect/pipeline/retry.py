"""
Retryable Task
==============

Exponential backoff around a single capability call.

Policy:
    attempt 0 fails transiently -> wait base_delay
    attempt 1 fails transiently -> wait base_delay * multiplier
    ...
    after max_retries retries   -> RetryExhaustedError

Only TransientCapabilityError is retried. Every other exception
propagates immediately, untouched, from the failing attempt.

Example:
    task = RetryableTask(RetryPolicy(max_retries=3, base_delay=2.0))
    verdict = await task.run(lambda: engine.analyze(image_b64, instruction))
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from frameperfect.errors import RetryExhaustedError, TransientCapabilityError


logger = logging.getLogger(__name__)


T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff schedule for transient failures.

    Attributes:
        max_retries: Additional attempts after the first one
        base_delay: Delay before the first retry, seconds
        multiplier: Growth factor between consecutive delays
    """

    max_retries: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_for(self, retry_index: int) -> float:
        """Delay before retry number `retry_index` (0-based)."""
        return self.base_delay * (self.multiplier ** retry_index)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class RetryableTask:
    """
    Runs an async operation under a RetryPolicy.

    Attributes:
        policy: Backoff schedule
        name: Label used in log lines
        attempts: Attempts made by the last run()
    """

    def __init__(
        self,
        policy: RetryPolicy,
        name: str = "task",
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self.policy = policy
        self.name = name
        self.attempts: int = 0
        self._sleep = sleep or asyncio.sleep

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Call `operation` until it succeeds or fails terminally.

        Args:
            operation: Zero-argument factory returning a fresh awaitable
                per attempt

        Returns:
            The operation's result

        Raises:
            RetryExhaustedError: If every attempt failed transiently
            Exception: Any non-transient error, on the attempt it occurred
        """
        self.attempts = 0
        while True:
            self.attempts += 1
            try:
                return await operation()
            except TransientCapabilityError as e:
                retry_index = self.attempts - 1
                if retry_index >= self.policy.max_retries:
                    logger.warning(
                        f"{self.name}: {e.reason.value} after {self.attempts} attempts, giving up"
                    )
                    raise RetryExhaustedError(self.attempts, e) from e

                delay = self.policy.delay_for(retry_index)
                logger.info(
                    f"{self.name}: {e.reason.value} on attempt {self.attempts}, "
                    f"retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
