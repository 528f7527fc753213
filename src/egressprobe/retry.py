"""Bounded retry and polling combinators built on tenacity."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

T = TypeVar("T")

Sleeper = Callable[[float], None]


def retry_while(
    predicate: Callable[[BaseException], bool],
    *,
    max_attempts: int,
    delay: float,
    sleep: Sleeper = time.sleep,
    before_retry: Callable[[int, BaseException], None] | None = None,
) -> Retrying:
    """Retry a call only while its latest error satisfies ``predicate``.

    ``max_attempts`` counts every call, including the first. An error that
    does not satisfy ``predicate`` is raised immediately, even after earlier
    matching errors were retried. When the attempts run out the last error
    is re-raised unchanged.

    Usage:
        retrying = retry_while(is_transient, max_attempts=6, delay=10)
        results = retrying(invoke, function_name, targets)
    """

    def _before_sleep(retry_state: RetryCallState) -> None:
        if before_retry is None or retry_state.outcome is None:
            return
        error = retry_state.outcome.exception()
        if error is not None:
            before_retry(retry_state.attempt_number, error)

    return Retrying(
        retry=retry_if_exception(predicate),
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay),
        sleep=sleep,
        before_sleep=_before_sleep,
        reraise=True,
    )


def poll_until(
    fetch: Callable[[], T],
    done: Callable[[T], bool],
    *,
    max_attempts: int,
    delay: float,
    on_timeout: Callable[[T | None], T],
    sleep: Sleeper = time.sleep,
) -> T:
    """Call ``fetch`` every ``delay`` seconds until ``done`` accepts its value.

    Exceptions raised by ``fetch`` propagate immediately. If ``max_attempts``
    calls never satisfy ``done``, ``on_timeout`` receives the last value and
    is expected to raise.
    """

    def _give_up(retry_state: RetryCallState) -> T:
        last = retry_state.outcome.result() if retry_state.outcome is not None else None
        return on_timeout(last)

    retrying = Retrying(
        retry=retry_if_result(lambda value: not done(value)),
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay),
        sleep=sleep,
        retry_error_callback=_give_up,
    )
    return retrying(fetch)
