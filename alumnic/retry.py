"""Bounded retry with exponential backoff for transient directory failures."""

import logging
import time
from typing import Any, Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from .ldap.errors import is_transient
from .models import RetryPolicy

logger = logging.getLogger(__name__)


class RetryController:
    """
    Runs a callable, retrying only on transient failures.

    ``DirectoryConnectionError`` and transient ``DirectoryError`` are retried
    up to ``policy.max_attempts`` attempts (and ``policy.max_elapsed``
    seconds); every other error is raised on the first attempt. When the
    budget runs out the last error is raised unchanged.

    Attributes:
        policy: The RetryPolicy in force
        attempts: Number of attempts made by the most recent call
    """

    def __init__(self, policy: RetryPolicy = None, sleep: Callable[[float], None] = time.sleep):
        self.policy = policy or RetryPolicy()
        self.attempts = 0
        self._sleep = sleep

    def _retrying(self) -> Retrying:
        stop = stop_after_attempt(self.policy.max_attempts)
        if self.policy.max_elapsed is not None:
            stop = stop | stop_after_delay(self.policy.max_elapsed)
        return Retrying(
            stop=stop,
            wait=wait_exponential(
                multiplier=self.policy.base_delay,
                exp_base=self.policy.multiplier,
                max=self.policy.max_delay,
            ),
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "Attempt %d failed (%s); retrying in %.2fs",
            retry_state.attempt_number,
            error,
            delay,
        )

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Call ``fn(*args, **kwargs)`` under the retry policy and return its result."""
        self.attempts = 0
        result: Optional[Any] = None
        for attempt in self._retrying():
            with attempt:
                self.attempts = attempt.retry_state.attempt_number
                result = fn(*args, **kwargs)
        return result
