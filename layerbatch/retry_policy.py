"""
RetryPolicy - Exponential backoff with jitter and a hard attempt ceiling.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from .errors import TerminalTransferError, TransientTransferError

T = TypeVar('T')


@dataclass
class RetryPolicy:
    """
    Backoff schedule shared by every remote call.

    delay(attempt) = base ** attempt * unit + uniform(0, jitter)

    Attributes:
        max_retries: Retries allowed after the first failure
        base: Exponential base
        unit: Seconds multiplied by base ** attempt
        jitter: Upper bound of the random seconds added to each delay
        sleep: Sleep function (injectable for tests)
    """
    max_retries: int = 5
    base: float = 2.0
    unit: float = 1.0
    jitter: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def base_delay(self, attempt: int) -> float:
        """Delay for an attempt without jitter."""
        return (self.base ** attempt) * self.unit

    def delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        return self.base_delay(attempt) + random.uniform(0, self.jitter)

    def call(
        self,
        fn: Callable[[], T],
        description: str = 'remote call',
        logger: Optional[logging.Logger] = None
    ) -> T:
        """
        Run fn, retrying on TransientTransferError.

        Args:
            fn: Zero-argument callable performing one attempt
            description: Used in log and error messages
            logger: Optional logger instance

        Returns:
            Whatever fn returns

        Raises:
            TerminalTransferError: When the retry budget is exhausted
        """
        log = logger or logging.getLogger(__name__)
        attempt = 0
        while True:
            try:
                return fn()
            except TransientTransferError as e:
                attempt += 1
                if attempt > self.max_retries:
                    raise TerminalTransferError(
                        f"{description} failed after {self.max_retries} retries: {e}",
                        status=e.status
                    ) from e
                wait = self.delay(attempt)
                log.warning(
                    f"{description} failed ({e}), retrying in {wait:.1f}s "
                    f"({attempt}/{self.max_retries})"
                )
                self.sleep(wait)
