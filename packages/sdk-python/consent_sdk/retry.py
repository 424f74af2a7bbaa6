"""Retry with exponential backoff for transport failures."""

import logging
import time
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from consent_sdk.errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, float, TransportError], None]


class RetryPolicy:
    """Retry only TransportError, sleeping backoff_factor * 2**(n-1) capped at max_backoff."""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_factor: float = 0.5,
        max_backoff: float = 8.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self.max_backoff = max_backoff
        self.sleep = sleep

    def _retrying(self, on_retry: Optional[RetryCallback]) -> Retrying:
        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            delay = retry_state.next_action.sleep
            logger.warning(
                f"Transport failure, retrying in {delay:.2f}s "
                f"(attempt {retry_state.attempt_number}/{self.max_attempts}): {error}"
            )
            if on_retry:
                on_retry(retry_state.attempt_number, delay, error)

        return Retrying(
            retry=retry_if_exception_type(TransportError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_factor, max=self.max_backoff),
            sleep=self.sleep,
            before_sleep=before_sleep,
            reraise=True,
        )

    def call(self, fn: Callable[[], T], on_retry: Optional[RetryCallback] = None) -> T:
        return self._retrying(on_retry)(fn)
