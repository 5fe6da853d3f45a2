# src/dealengine/adapters/http_retry.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from dealengine.adapters.config import config
from dealengine.adapters.logging_utils import get_logger, log_event

logger = get_logger(__name__)

T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    """All attempts failed; ``last_error`` is the final underlying failure."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"failed after {attempts} attempt(s): {last_error!r}")
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_s: float = 1.0
    timeout_s: Optional[float] = None

    def delay_for(self, attempt: int) -> float:
        """Wait after failed attempt ``attempt`` (0-based): initial * 2**attempt."""
        return self.initial_delay_s * (2 ** attempt)

    @classmethod
    def from_config(cls) -> "RetryPolicy":
        return cls(
            max_attempts=config.RETRY_MAX_ATTEMPTS,
            initial_delay_s=config.RETRY_INITIAL_DELAY_S,
            timeout_s=config.PROVIDER_TIMEOUT_S,
        )


def retry_with_backoff(
    fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    label: str = "call",
) -> T:
    """
    Call ``fn`` up to ``policy.max_attempts`` times. Errors outside
    ``retry_on`` propagate immediately. There is no sleep after the last
    attempt.
    """
    p = policy or RetryPolicy.from_config()
    attempts = max(1, p.max_attempts)
    attempt = 0

    while True:
        try:
            return fn()
        except retry_on as e:
            attempt += 1
            log_event(
                logger, "retry_attempt_failed", logging.WARNING,
                label=label, attempt=attempt, max_attempts=attempts, error=repr(e),
            )
            if attempt >= attempts:
                raise RetryExhaustedError(attempts, e) from e
            sleep(p.delay_for(attempt - 1))


async def aretry_with_backoff(
    fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "call",
) -> T:
    """
    Async variant: each attempt runs ``fn`` in a worker thread under
    ``asyncio.wait_for``, so a hung call costs at most ``policy.timeout_s``
    and counts as a failed attempt. Cancelling the awaiting task stops the
    retry loop.
    """
    p = policy or RetryPolicy.from_config()
    attempts = max(1, p.max_attempts)
    attempt = 0

    while True:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=p.timeout_s)
        except (asyncio.TimeoutError, *retry_on) as e:
            attempt += 1
            log_event(
                logger, "retry_attempt_failed", logging.WARNING,
                label=label, attempt=attempt, max_attempts=attempts, error=repr(e),
            )
            if attempt >= attempts:
                raise RetryExhaustedError(attempts, e) from e
            await sleep(p.delay_for(attempt - 1))
