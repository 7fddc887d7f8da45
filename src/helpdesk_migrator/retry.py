"""
Retry policy wrapping every call to the helpdesk API.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Final, TypeVar

import requests

from .exceptions import RemoteAPIError, RetriesExhaustedError

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS: Final[int] = 3
DEFAULT_RATE_LIMIT_WAIT: Final[float] = 60.0

# Failures worth another attempt. Anything else is a bug and propagates at once.
RETRYABLE_ERRORS: Final[tuple[type[Exception], ...]] = (RemoteAPIError, requests.RequestException)


def _checked_attempts(max_attempts: int) -> int:
    if max_attempts < 1:
        msg = f"max_attempts must be at least 1, got {max_attempts}"
        raise ValueError(msg)
    return max_attempts


class RetryPolicy:
    """Bounded retry with exponential backoff and rate-limit waits.

    A rate-limited call (HTTP 429) waits for the server's retry-after and is
    tried again without spending an attempt, for as long as the server keeps
    rate limiting. Any other remote failure waits ``2 ** attempt`` seconds
    before the next attempt, and the last attempt's failure is raised as
    RetriesExhaustedError.
    """

    max_attempts: int
    rate_limit_wait: float

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        *,
        rate_limit_wait: float = DEFAULT_RATE_LIMIT_WAIT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_attempts = _checked_attempts(max_attempts)
        self.rate_limit_wait = rate_limit_wait
        self._sleep = sleep

    def execute(self, operation: Callable[[], T], *, max_attempts: int | None = None, description: str = "") -> T:
        """Run ``operation`` until it succeeds or the attempt budget is spent.

        Args:
            operation: Zero-argument callable issuing one remote call
            max_attempts: Override of the policy's attempt budget for this call
            description: Short label of the call used in log messages

        Returns:
            Whatever ``operation`` returns

        Raises:
            RetriesExhaustedError: If the final allowed attempt failed
            ValueError: If max_attempts is below 1
        """
        budget = self.max_attempts if max_attempts is None else _checked_attempts(max_attempts)
        label = description or getattr(operation, "__name__", "remote call")
        attempt = 1

        while True:
            try:
                return operation()
            except RETRYABLE_ERRORS as e:
                if isinstance(e, RemoteAPIError) and e.is_rate_limited:
                    wait = e.retry_after if e.retry_after is not None else self.rate_limit_wait
                    logger.warning(f"Rate limited during {label}, waiting {wait:g}s before retrying")
                    self._sleep(wait)
                    continue

                if attempt >= budget:
                    logger.error(f"Giving up on {label} after {attempt} attempt(s): {e}")
                    msg = f"{label} failed after {attempt} attempt(s): {e}"
                    raise RetriesExhaustedError(msg, last_error=e, attempts=attempt) from e

                backoff = 2**attempt
                logger.info(f"{label} failed (attempt {attempt}/{budget}): {e}; retrying in {backoff}s")
                self._sleep(backoff)
                attempt += 1
