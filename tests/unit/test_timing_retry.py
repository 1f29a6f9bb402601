import asyncio
import itertools

import pytest

from ui_resilience.utils import timing
from ui_resilience.utils.timing import (
    async_retry_with_backoff,
    backoff_delays_ms,
    retry_with_backoff,
    retry_with_fixed_delay,
    wait_for,
)


def always_fails(calls, exc):
    def op():
        calls.append(1)
        raise exc
    return op


def test_backoff_delays_double_then_raise_original_error(no_sleep):
    calls, seen = [], []
    boom = ValueError("boom")

    with pytest.raises(ValueError) as ei:
        retry_with_backoff(
            always_fails(calls, boom),
            max_attempts=3,
            initial_delay_ms=100,
            backoff_factor=2,
            max_delay_ms=1000,
            on_retry=lambda attempt, err: seen.append((attempt, err)),
        )

    assert ei.value is boom
    assert len(calls) == 3
    assert no_sleep == [100, 200]
    assert seen == [(1, boom), (2, boom)]


def test_single_attempt_means_no_retry(no_sleep):
    calls = []
    with pytest.raises(RuntimeError):
        retry_with_backoff(always_fails(calls, RuntimeError("x")), max_attempts=1)
    assert len(calls) == 1
    assert no_sleep == []


def test_returns_value_after_transient_failures(no_sleep):
    state = {"n": 0}

    def flaky(prefix, suffix="!"):
        state["n"] += 1
        if state["n"] < 3:
            raise ConnectionError("not yet")
        return f"{prefix}{suffix}"

    assert retry_with_backoff(flaky, "ok", suffix="?", initial_delay_ms=10) == "ok?"
    assert no_sleep == [10, 20]


def test_delay_is_capped(no_sleep):
    with pytest.raises(KeyError):
        retry_with_backoff(
            always_fails([], KeyError("k")),
            max_attempts=4,
            initial_delay_ms=400,
            backoff_factor=3,
            max_delay_ms=1000,
        )
    assert no_sleep == [400, 1000, 1000]


def test_broken_hook_does_not_change_outcome(no_sleep):
    def hook(attempt, err):
        raise RuntimeError("observer bug")

    with pytest.raises(ValueError):
        retry_with_backoff(always_fails([], ValueError("v")), max_attempts=2, on_retry=hook)
    assert len(no_sleep) == 1


def test_exception_filter_propagates_other_errors_immediately(no_sleep):
    calls = []
    with pytest.raises(TypeError):
        retry_with_backoff(always_fails(calls, TypeError("t")), exceptions=(ValueError,))
    assert len(calls) == 1


def test_fixed_delay_variant(no_sleep):
    calls = []
    with pytest.raises(OSError):
        retry_with_fixed_delay(always_fails(calls, OSError("io")), max_attempts=3, delay_ms=50)
    assert len(calls) == 3
    assert no_sleep == [50, 50]


def test_backoff_delay_sequence():
    assert list(itertools.islice(backoff_delays_ms(), 5)) == [500, 1000, 2000, 4000, 5000]


def test_async_retry(monkeypatch):
    slept = []

    async def fake_sleep(ms):
        slept.append(ms)

    monkeypatch.setattr(timing, "async_sleep_ms", fake_sleep)
    state = {"n": 0}

    async def flaky():
        state["n"] += 1
        if state["n"] < 3:
            raise TimeoutError("slow")
        return state["n"]

    assert asyncio.run(async_retry_with_backoff(flaky, initial_delay_ms=100)) == 3
    assert slept == [100, 200]


def test_wait_for_returns_truthy_value_or_times_out():
    assert wait_for(lambda: "ready", timeout_ms=0) == "ready"
    with pytest.raises(TimeoutError, match="spinner gone"):
        wait_for(lambda: False, timeout_ms=0, description="spinner gone")
