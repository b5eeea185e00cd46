# pagewright/utils/timing.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Type, TypeVar, ParamSpec

from pagewright.utils.logger import get_logger

P = ParamSpec("P")
T = TypeVar("T")


# ---------------- Monotonic time helpers ----------------

def now_ms() -> int:
    """Monotonic time in milliseconds."""
    return time.monotonic_ns() // 1_000_000


def sleep_ms(ms: int) -> None:
    """Sleep for `ms` milliseconds (blocking)."""
    if ms <= 0:
        return
    time.sleep(ms / 1000.0)


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


# ---------------- Bounded polling ----------------

def attempts(count: int, interval_ms: int) -> Iterator[int]:
    """
    Yield attempt numbers 1..count, sleeping `interval_ms` between them
    (never before the first, never after the last).

        for attempt in attempts(30, 1000):
            if done():
                break
    """
    total = max(1, count)
    for attempt in range(1, total + 1):
        if attempt > 1:
            sleep_ms(interval_ms)
        yield attempt


# ---------------- Retry ----------------

def retry(
    fn: Callable[P, T],
    /,
    *args: P.args,
    exceptions: tuple[Type[BaseException], ...] = (Exception,),
    tries: int = 3,
    delay_ms: int = 200,
    before_retry: Optional[Callable[[int, BaseException], None]] = None,
    **kwargs: P.kwargs,
) -> T:
    """
    Call `fn` up to `tries` times, sleeping `delay_ms` between attempts when it
    raises one of `exceptions`.

    Args:
        fn: callable to execute
        exceptions: tuple of exception types to catch
        tries: total attempts (>=1)
        delay_ms: fixed pause between attempts
        before_retry: hook called as before_retry(attempt_index, exception)

    Raises:
        The last caught exception after exhausting retries; anything not in
        `exceptions` propagates immediately.
    """
    log = get_logger(__name__)
    total = max(1, tries)

    for attempt in range(1, total + 1):
        try:
            return fn(*args, **kwargs)
        except exceptions as exc:  # type: ignore[misc]
            if attempt >= total:
                log.debug(f"Exhausted {total} attempt(s); last error: {exc!r}")
                raise
            if before_retry:
                before_retry(attempt, exc)
            log.debug(f"Retry attempt {attempt}/{total - 1} after error: {exc!r} (sleep {delay_ms} ms)")
            sleep_ms(delay_ms)

    raise AssertionError("unreachable")  # pragma: no cover


# ---------------- wait_for (polling) ----------------

def wait_for(
    predicate: Callable[[], T],
    timeout_ms: int,
    interval_ms: int = 100,
    description: Optional[str] = None,
) -> T:
    """
    Poll `predicate()` until it returns a truthy value, or until `timeout_ms`
    elapses. The predicate is always evaluated at least once.

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
        sleep_ms(max(1, min(interval_ms, deadline - now_ms())))


# ---------------- measure decorator ----------------

def measure(label: str = "", level: str = "DEBUG") -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator to log the execution time of a function.
    Example:
        @measure("enter page")
        def enter(...): ...
    """
    level = level.upper()

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
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
        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper
    return decorator
