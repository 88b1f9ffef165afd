"""
tests/test_retry.py — Bounded Retry & Polling
==============================================
"""

from __future__ import annotations

import asyncio

import pytest

from togu.engine.retry import retry_with_backoff
from togu.errors import StoreHTTPError, TransientNetworkError


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)


def _scripted(*outcomes):
    """Async callable returning (or raising) each outcome in turn."""
    calls = []

    async def func():
        outcome = outcomes[len(calls)]
        calls.append(outcome)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    func.calls = calls
    return func


class TestRetry:
    def test_first_success_needs_no_sleep(self, no_sleep):
        func = _scripted("page")
        result = run_async(retry_with_backoff(func, delays=(0, 1, 2, 4), sleep=no_sleep))
        assert result == "page"
        assert len(func.calls) == 1
        assert no_sleep.delays == []

    def test_two_failures_then_success(self, no_sleep):
        err = TransientNetworkError("down")
        func = _scripted(err, err, "page")
        result = run_async(retry_with_backoff(func, delays=(0, 1, 2, 4), sleep=no_sleep))
        assert result == "page"
        assert no_sleep.delays == [1, 2]

    def test_exhaustion_reraises_without_extra_attempt(self, no_sleep):
        errors = [TransientNetworkError(f"down {i}") for i in range(5)]
        func = _scripted(*errors)
        with pytest.raises(TransientNetworkError, match="down 3"):
            run_async(retry_with_backoff(func, delays=(0, 1, 2, 4), sleep=no_sleep))
        assert len(func.calls) == 4
        assert no_sleep.delays == [1, 2, 4]

    def test_non_retryable_error_propagates_immediately(self, no_sleep):
        func = _scripted(StoreHTTPError(422, "bad formula"), "never")
        with pytest.raises(StoreHTTPError):
            run_async(retry_with_backoff(func, delays=(0, 1, 2, 4), sleep=no_sleep))
        assert len(func.calls) == 1

    def test_empty_delays_rejected(self):
        with pytest.raises(ValueError):
            run_async(retry_with_backoff(_scripted("x"), delays=()))


class TestPolling:
    def test_stops_when_predicate_satisfied(self, no_sleep):
        func = _scripted(0, 0, 1, 1)
        result = run_async(retry_with_backoff(
            func, delays=(0, 1, 2, 4), stop_when=lambda n: n >= 1, sleep=no_sleep,
        ))
        assert result == 1
        assert len(func.calls) == 3

    def test_returns_last_value_when_never_satisfied(self, no_sleep):
        func = _scripted(0, 0, 0, 0)
        result = run_async(retry_with_backoff(
            func, delays=(0, 1, 2, 4), stop_when=lambda n: n >= 1, sleep=no_sleep,
        ))
        assert result == 0
        assert len(func.calls) == 4
        assert no_sleep.delays == [1, 2, 4]
