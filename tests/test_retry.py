"""Tests for the download retry policy."""

from __future__ import annotations

import pytest

from footprint.retry import RetryPolicy, exponential_backoff, is_retryable_error
from footprint.store import StoreError


class _Recorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _flaky(failures: int, result: str = "done"):
    calls = {"count": 0}

    async def func() -> str:
        calls["count"] += 1
        if calls["count"] <= failures:
            raise StoreError("connection reset")
        return result

    return func, calls


def test_exponential_backoff_doubles():
    assert [exponential_backoff(1.0, attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 4.0]
    policy = RetryPolicy(base_delay_seconds=0.5)
    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == [0.5, 1.0, 2.0]


def test_policy_validates_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay_seconds=-1)


def test_client_errors_are_not_retryable():
    assert not is_retryable_error(StoreError("gone", status_code=404))
    assert is_retryable_error(StoreError("slow down", status_code=429))
    assert is_retryable_error(StoreError("boom", status_code=502))
    assert is_retryable_error(TimeoutError("timed out"))


@pytest.mark.asyncio
async def test_run_recovers_after_transient_failures():
    func, calls = _flaky(failures=2)
    sleep = _Recorder()

    result = await RetryPolicy().run(func, operation="download", sleep=sleep)

    assert result == "done"
    assert calls["count"] == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_run_raises_after_attempts_exhausted():
    func, calls = _flaky(failures=5)
    sleep = _Recorder()

    with pytest.raises(StoreError):
        await RetryPolicy(max_attempts=3).run(func, operation="download", sleep=sleep)

    assert calls["count"] == 3
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_run_does_not_retry_rejected_errors():
    calls = {"count": 0}

    async def func() -> None:
        calls["count"] += 1
        raise StoreError("forbidden", status_code=403)

    sleep = _Recorder()
    with pytest.raises(StoreError):
        await RetryPolicy().run(func, operation="download", sleep=sleep)

    assert calls["count"] == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_custom_backoff_function():
    func, _ = _flaky(failures=2)
    sleep = _Recorder()
    policy = RetryPolicy(base_delay_seconds=3, backoff=lambda base, attempt: base * attempt)

    await policy.run(func, operation="download", sleep=sleep)

    assert sleep.delays == [3, 6]
