"""Fixed-delay retry policy for storefront requests."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_none

from storeparser.errors import NonSuccessStatusError, TransportError

LOGGER = logging.getLogger(__name__)

RETRYABLE_ERRORS = (TransportError, NonSuccessStatusError)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget with a flat pause before every attempt.

    The pause is a courtesy to the origin server and also precedes the very
    first attempt; it never grows between attempts.
    """

    max_attempts: int = 5
    delay: float = 10.0  # seconds slept before each attempt
    success_status: int = 200
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must not be negative")

    def is_success(self, status_code: int) -> bool:
        return status_code == self.success_status

    def retrying(self, max_attempts: Optional[int] = None) -> Retrying:
        """Build the tenacity controller for one fetch call.

        Only ``TransportError`` and ``NonSuccessStatusError`` are retried;
        exhaustion surfaces as ``tenacity.RetryError``.
        """
        return Retrying(
            stop=stop_after_attempt(max_attempts or self.max_attempts),
            wait=wait_none(),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before=self._pause,
            # waits are done in the before hook, tenacity itself never sleeps
            sleep=lambda seconds: None,
        )

    def _pause(self, retry_state: RetryCallState) -> None:
        if self.delay <= 0:
            return
        LOGGER.debug(
            "Waiting %.1fs before attempt %d",
            self.delay,
            retry_state.attempt_number,
        )
        self.sleep(self.delay)
