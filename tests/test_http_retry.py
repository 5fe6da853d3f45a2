# tests/test_http_retry.py
import asyncio
import time

import pytest

from dealengine.adapters.http_retry import (
    RetryExhaustedError,
    RetryPolicy,
    aretry_with_backoff,
    retry_with_backoff,
)


class Flaky:
    """Fails ``failures`` times with ``exc``, then returns ``value``."""

    def __init__(self, failures: int, exc: type = RuntimeError, value: str = "ok") -> None:
        self.failures = failures
        self.exc = exc
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"boom {self.calls}")
        return self.value


def test_delays_double():
    policy = RetryPolicy(max_attempts=4, initial_delay_s=1.0)
    assert [policy.delay_for(i) for i in range(3)] == [1.0, 2.0, 4.0]


def test_succeeds_after_retries(sleeps):
    fn = Flaky(2)
    result = retry_with_backoff(fn, RetryPolicy(3, 1.0), sleep=sleeps.append)
    assert result == "ok"
    assert fn.calls == 3
    assert sleeps == [1.0, 2.0]


def test_no_sleep_after_last_attempt(sleeps):
    fn = Flaky(5)
    with pytest.raises(RetryExhaustedError) as info:
        retry_with_backoff(fn, RetryPolicy(3, 0.5), sleep=sleeps.append)
    assert fn.calls == 3
    assert sleeps == [0.5, 1.0]
    assert info.value.attempts == 3
    assert str(info.value.last_error) == "boom 3"


def test_non_retryable_errors_propagate(sleeps):
    fn = Flaky(1, exc=KeyError)
    with pytest.raises(KeyError):
        retry_with_backoff(fn, RetryPolicy(3, 1.0), retry_on=(RuntimeError,), sleep=sleeps.append)
    assert fn.calls == 1
    assert sleeps == []


def test_zero_attempts_still_tries_once(sleeps):
    fn = Flaky(0)
    assert retry_with_backoff(fn, RetryPolicy(0, 1.0), sleep=sleeps.append) == "ok"


def test_single_attempt_failure_is_chained(sleeps):
    fn = Flaky(1)
    with pytest.raises(RetryExhaustedError) as info:
        retry_with_backoff(fn, RetryPolicy(0, 1.0), sleep=sleeps.append)
    assert info.value.attempts == 1
    assert info.value.__cause__ is info.value.last_error
    assert str(info.value.last_error) == "boom 1"
    assert sleeps == []


def test_policy_from_config():
    policy = RetryPolicy.from_config()
    assert policy.max_attempts >= 1
    assert policy.timeout_s is not None


def _async_sleeps():
    seen = []

    async def sleep(delay):
        seen.append(delay)

    return seen, sleep


def test_async_retry_succeeds():
    seen, sleep = _async_sleeps()
    fn = Flaky(1)
    result = asyncio.run(aretry_with_backoff(fn, RetryPolicy(3, 2.0), sleep=sleep))
    assert result == "ok"
    assert seen == [2.0]


def test_async_timeout_counts_as_failed_attempt():
    seen, sleep = _async_sleeps()

    def hang():
        time.sleep(0.2)
        return "late"

    with pytest.raises(RetryExhaustedError) as info:
        asyncio.run(aretry_with_backoff(hang, RetryPolicy(2, 0.0, timeout_s=0.01), sleep=sleep))
    assert isinstance(info.value.last_error, asyncio.TimeoutError)
    assert seen == [0.0]
