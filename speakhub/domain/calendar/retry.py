"""Retry policy shared by Google OAuth token refresh and Calendar API calls"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from ...config import RETRY_BASE_DELAY_SECONDS, RETRY_MAX_ATTEMPTS

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Provider responses worth another attempt (rate limiting and server-side failures)
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class RetryExhaustedError(RuntimeError):
    """Raised when every attempt failed with a transient error"""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def is_transient_error(error: BaseException) -> bool:
    """
    Classify a failure as transient (retry) or terminal (fail now).

    Transient: timeouts, connection resets, DNS / connect failures and
    provider responses with a retryable status code. Everything else,
    including invalid or revoked tokens, is terminal.
    """
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    status_code = getattr(error, "status_code", None)
    return isinstance(status_code, int) and status_code in TRANSIENT_STATUS_CODES


@dataclass
class RetryPolicy:
    max_attempts: int = RETRY_MAX_ATTEMPTS
    base_delay: float = RETRY_BASE_DELAY_SECONDS
    jitter: float = 0.1  # fraction of the delay added at random
    classifier: Callable[[BaseException], bool] = is_transient_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based): base, 2*base, 4*base..."""
        delay = self.base_delay * (2 ** (attempt - 1))
        if self.jitter:
            delay += delay * random.uniform(0, self.jitter)
        return delay

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "request") -> T:
        """Run ``operation`` until it succeeds, fails terminally or attempts run out"""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if not self.classifier(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(f"{description} failed after {attempt} attempts: {e}")
                    raise RetryExhaustedError(attempt, e) from e

                wait = self.delay_for(attempt)
                logger.warning(
                    f"{description} attempt {attempt} failed ({type(e).__name__}), retrying in {wait:.2f}s"
                )
                await self.sleep(wait)
