"""
Bounded polling for resources the provider finishes asynchronously.
"""

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class PollTimeout(Exception):
    """The condition was still false after the last attempt."""

    def __init__(self, description: str, attempts: int):
        self.description = description
        self.attempts = attempts
        super().__init__(f"Timed out waiting for {description} after {attempts} attempts")


class Poller:
    """
    Re-check a condition at a fixed interval, at most ``max_attempts`` times.

    ``sleep`` is injectable so tests can run without real delays.
    """

    def __init__(self, interval: float = 15.0, max_attempts: int = 40,
                 sleep: Callable[[float], None] = time.sleep):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    def until(self, check: Callable[[], bool], description: str = "condition") -> int:
        """
        Block until check() returns True.

        Args:
            check: Callable returning True once the condition holds; exceptions propagate
            description: Used in log messages and the timeout error

        Returns:
            Number of attempts it took

        Raises:
            PollTimeout: If check() never returned True
        """
        for attempt in range(1, self.max_attempts + 1):
            if check():
                logger.debug(f"{description}: satisfied on attempt {attempt}")
                return attempt

            if attempt < self.max_attempts:
                logger.info(f"Waiting for {description} (attempt {attempt}/{self.max_attempts})")
                self.sleep(self.interval)

        raise PollTimeout(description, self.max_attempts)
