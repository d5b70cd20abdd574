"""Tests for the shared retry policy."""

import asyncio
import dataclasses

import pytest

from repowiki.generation.retry import (
    PLANNER_RETRY,
    TOPIC_RETRY,
    RetryExhaustedError,
    RetryPolicy,
    linear_backoff,
)


def _recording_sleep():
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    return delays, sleep


class TestRetryPolicy:

    def test_returns_first_success(self):
        delays, sleep = _recording_sleep()
        policy = RetryPolicy(max_attempts=3, backoff=linear_backoff(1.0), sleep=sleep)

        async def ok():
            return "done"

        assert asyncio.run(policy.run(ok)) == "done"
        assert delays == []

    def test_retries_until_success(self):
        delays, sleep = _recording_sleep()
        policy = RetryPolicy(max_attempts=5, backoff=linear_backoff(2.0), sleep=sleep)
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("boom")
            return len(attempts)

        assert asyncio.run(policy.run(flaky)) == 3
        assert delays == [2.0, 4.0]

    def test_exhaustion_wraps_last_error(self):
        delays, sleep = _recording_sleep()
        policy = dataclasses.replace(TOPIC_RETRY, sleep=sleep)
        calls = []

        async def always_fails():
            calls.append(1)
            raise ValueError(f"failure {len(calls)}")

        with pytest.raises(RetryExhaustedError) as exc_info:
            asyncio.run(policy.run(always_fails, label="Topic"))

        assert len(calls) == 5
        # No sleep after the final attempt.
        assert delays == [10.0, 20.0, 30.0, 40.0]
        assert str(exc_info.value.last_error) == "failure 5"
        assert "failed after 5 attempts" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_planner_policy_backoff(self):
        delays, sleep = _recording_sleep()
        policy = dataclasses.replace(PLANNER_RETRY, sleep=sleep)

        async def fails():
            raise RuntimeError("nope")

        with pytest.raises(RetryExhaustedError):
            asyncio.run(policy.run(fails))
        assert delays == [5.0, 10.0, 15.0, 20.0]

    def test_non_retryable_error_is_raised_immediately(self):
        delays, sleep = _recording_sleep()
        policy = RetryPolicy(
            max_attempts=5,
            backoff=linear_backoff(1.0),
            is_retryable=lambda e: not isinstance(e, KeyError),
            sleep=sleep,
        )
        calls = []

        async def fails():
            calls.append(1)
            raise KeyError("fatal")

        with pytest.raises(KeyError):
            asyncio.run(policy.run(fails))
        assert calls == [1]
        assert delays == []

    def test_cancellation_is_not_retried(self):
        delays, sleep = _recording_sleep()
        policy = RetryPolicy(max_attempts=5, backoff=linear_backoff(1.0), sleep=sleep)
        calls = []

        async def cancelled():
            calls.append(1)
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(policy.run(cancelled))
        assert calls == [1]
