# ui_resilience/utils/timing.py
from __future__ import annotations

import asyncio
import functools
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional, Type, TypeVar, ParamSpec

from ui_resilience.utils.logger import get_logger

P = ParamSpec("P")
T = TypeVar("T")

RetryHook = Callable[[int, BaseException], None]


# ---------------- Monotonic time helpers ----------------

def now_ms() -> int:
    """Monotonic time in milliseconds."""
    return time.monotonic_ns() // 1_000_000


def sleep_ms(ms: int) -> None:
    """Sleep for `ms` milliseconds (blocking)."""
    if ms <= 0:
        return
    time.sleep(ms / 1000.0)


def driver_timeout(ms: int) -> int:
    """Timeout to hand to Playwright; it reads 0 as "no timeout"."""
    return max(1, int(ms))


async def async_sleep_ms(ms: int) -> None:
    """Async sleep for `ms` milliseconds."""
    if ms <= 0:
        return
    await asyncio.sleep(ms / 1000.0)


# ---------------- Stopwatch ----------------

@dataclass
class Stopwatch:
    """Simple stopwatch usable as a context manager."""
    start_ms: Optional[int] = None

    def start(self) -> "Stopwatch":
        self.start_ms = now_ms()
        return self

    def elapsed_ms(self) -> int:
        if self.start_ms is None:
            return 0
        return max(0, now_ms() - self.start_ms)

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        return None


# ---------------- Backoff ----------------

def backoff_delays_ms(
    initial_ms: int = 500,
    factor: float = 2.0,
    max_ms: int = 5000,
    jitter: float = 0.0,
) -> Iterator[int]:
    """
    Yield an endless sequence of backoff delays in ms.
    Each delay is `min(previous * factor, max_ms)`; jitter is a fraction of the delay.
    """
    delay = float(max(0, initial_ms))
    while True:
        jitter_amt = delay * jitter
        delay_j = delay + random.uniform(-jitter_amt, jitter_amt) if jitter_amt > 0 else delay
        yield int(min(max_ms, max(0.0, delay_j)))
        delay = min(float(max_ms), delay * factor)


def _notify(on_retry: Optional[RetryHook], attempt: int, exc: BaseException) -> None:
    if on_retry is None:
        return
    try:
        on_retry(attempt, exc)
    except Exception as hook_exc:
        # hook errors never change the retry outcome
        get_logger(__name__).debug(f"on_retry hook raised {hook_exc!r}; ignoring")


# ---------------- Retry (sync) ----------------

def retry_with_backoff(
    fn: Callable[P, T],
    /,
    *args: P.args,
    max_attempts: int = 3,
    initial_delay_ms: int = 500,
    max_delay_ms: int = 5000,
    backoff_factor: float = 2.0,
    on_retry: Optional[RetryHook] = None,
    exceptions: tuple[Type[BaseException], ...] = (Exception,),
    jitter: float = 0.0,
    **kwargs: P.kwargs,
) -> T:
    """
    Retry a function with exponential backoff.

    Args:
        fn: callable to execute
        max_attempts: total attempts (>=1); 1 means no retry at all
        initial_delay_ms, max_delay_ms, backoff_factor, jitter: backoff parameters
        on_retry: hook called as on_retry(attempt_number, exception) before each sleep
        exceptions: exception types that trigger a retry (everything by default)

    Returns:
        fn(*args, **kwargs) result on success

    Raises:
        The last caught exception, unchanged, after the final attempt.
    """
    log = get_logger(__name__)
    attempts = max(1, max_attempts)
    delays = backoff_delays_ms(initial_delay_ms, backoff_factor, max_delay_ms, jitter)

    attempt = 0
    while True:
        attempt += 1
        try:
            return fn(*args, **kwargs)
        except exceptions as exc:  # type: ignore[misc]
            if attempt >= attempts:
                log.debug(f"Exhausted {attempts} attempt(s); last error: {exc!r}")
                raise
            delay = next(delays)
            _notify(on_retry, attempt, exc)
            log.debug(f"Retry attempt {attempt}/{attempts - 1} after error: {exc!r} (sleep {delay} ms)")
            sleep_ms(delay)


def retry_with_fixed_delay(
    fn: Callable[P, T],
    /,
    *args: P.args,
    max_attempts: int = 3,
    delay_ms: int = 1000,
    **kwargs: P.kwargs,
) -> T:
    """
    Retry with a constant pause between attempts and no observer hook.
    Raises the last error unchanged once `max_attempts` are spent.
    """
    attempts = max(1, max_attempts)
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn(*args, **kwargs)
        except Exception:
            if attempt >= attempts:
                raise
            sleep_ms(delay_ms)


# ---------------- Retry (async) ----------------

async def async_retry_with_backoff(
    fn: Callable[P, Awaitable[T] | T],
    /,
    *args: P.args,
    max_attempts: int = 3,
    initial_delay_ms: int = 500,
    max_delay_ms: int = 5000,
    backoff_factor: float = 2.0,
    on_retry: Optional[RetryHook] = None,
    exceptions: tuple[Type[BaseException], ...] = (Exception,),
    jitter: float = 0.0,
    **kwargs: P.kwargs,
) -> Any:
    """
    Async retry with exponential backoff.
    `fn` can be an async callable; delays are cooperative `asyncio.sleep` calls.
    """
    log = get_logger(__name__)
    attempts = max(1, max_attempts)
    delays = backoff_delays_ms(initial_delay_ms, backoff_factor, max_delay_ms, jitter)

    attempt = 0
    while True:
        attempt += 1
        try:
            result = fn(*args, **kwargs)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        except exceptions as exc:  # type: ignore[misc]
            if attempt >= attempts:
                log.debug(f"[async] Exhausted {attempts} attempt(s); last error: {exc!r}")
                raise
            delay = next(delays)
            _notify(on_retry, attempt, exc)
            log.debug(f"[async] Retry attempt {attempt}/{attempts - 1} after error: {exc!r} (sleep {delay} ms)")
            await async_sleep_ms(delay)


# ---------------- wait_for (polling) ----------------

def wait_for(
    predicate: Callable[[], T],
    timeout_ms: int,
    interval_ms: int = 100,
    description: Optional[str] = None,
) -> T:
    """
    Poll `predicate()` until it returns a truthy value,
    or until `timeout_ms` elapses. Returns the predicate's return value.

    Raises:
        TimeoutError on timeout.
    """
    deadline = now_ms() + max(0, timeout_ms)

    while True:
        val = predicate()
        if val:
            return val
        if now_ms() >= deadline:
            desc = f" ({description})" if description else ""
            raise TimeoutError(f"wait_for timed out after {timeout_ms} ms{desc}")
        sleep_ms(max(1, interval_ms))


# ---------------- Timing decorator ----------------

def measure(label: str = "", level: str = "DEBUG") -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator to log the execution time of a function.
    Example:
        @measure("select option")
        def select_option(...): ...
    """
    level = level.upper()

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            log = get_logger(__name__)
            log_fn = getattr(log, level.lower(), log.debug)
            with Stopwatch() as sw:
                try:
                    return func(*args, **kwargs)
                finally:
                    ms = sw.elapsed_ms()
                    human = f"{ms} ms" if ms < 1000 else f"{ms/1000:.3f} s"
                    log_fn(f"{label or func.__name__} took {human}")
        return wrapper
    return decorator
