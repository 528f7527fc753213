"""Tests for retry.py combinators."""

import pytest
from egressprobe.retry import poll_until, retry_while


class Transient(Exception):
    pass


class Fatal(Exception):
    pass


def scripted(*outcomes):
    """Return a callable that replays outcomes, raising exceptions."""
    remaining = list(outcomes)
    calls = []

    def call():
        calls.append(len(calls) + 1)
        outcome = remaining.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    call.calls = calls
    return call


def is_transient(exc):
    return isinstance(exc, Transient)


class TestRetryWhile:
    """Tests for retry_while()."""

    def test_returns_first_success(self, sleeper):
        fn = scripted("ok")

        result = retry_while(is_transient, max_attempts=3, delay=10, sleep=sleeper)(fn)

        assert result == "ok"
        assert fn.calls == [1]
        assert sleeper.calls == []

    def test_retries_matching_errors(self, sleeper):
        fn = scripted(Transient("a"), Transient("b"), "ok")
        retried = []

        result = retry_while(
            is_transient,
            max_attempts=6,
            delay=10,
            sleep=sleeper,
            before_retry=lambda attempt, exc: retried.append((attempt, str(exc))),
        )(fn)

        assert result == "ok"
        assert len(fn.calls) == 3
        assert sleeper.calls == [10, 10]
        assert retried == [(1, "a"), (2, "b")]

    def test_non_matching_error_is_not_retried(self, sleeper):
        fn = scripted(Fatal("boom"), "ok")

        with pytest.raises(Fatal):
            retry_while(is_transient, max_attempts=6, delay=1, sleep=sleeper)(fn)

        assert fn.calls == [1]
        assert sleeper.calls == []

    def test_stops_when_later_error_does_not_match(self, sleeper):
        """Only the latest error decides whether to keep going."""
        fn = scripted(Transient("a"), Fatal("b"), "ok")

        with pytest.raises(Fatal, match="b"):
            retry_while(is_transient, max_attempts=6, delay=1, sleep=sleeper)(fn)

        assert len(fn.calls) == 2

    def test_exhaustion_reraises_last_error(self, sleeper):
        fn = scripted(Transient("1"), Transient("2"), Transient("3"))

        with pytest.raises(Transient, match="3"):
            retry_while(is_transient, max_attempts=3, delay=1, sleep=sleeper)(fn)

        assert len(fn.calls) == 3
        assert len(sleeper.calls) == 2

    def test_passes_arguments_through(self, sleeper):
        retrying = retry_while(is_transient, max_attempts=2, delay=0, sleep=sleeper)

        assert retrying(lambda a, b=0: a + b, 2, b=3) == 5


class TestPollUntil:
    """Tests for poll_until()."""

    def test_stops_on_first_accepted_value(self, sleeper):
        fetch = scripted("pending", "pending", "done", "never-read")

        result = poll_until(
            fetch,
            lambda value: value == "done",
            max_attempts=90,
            delay=10,
            on_timeout=lambda last: pytest.fail("timed out"),
            sleep=sleeper,
        )

        assert result == "done"
        assert len(fetch.calls) == 3
        assert sleeper.calls == [10, 10]

    def test_timeout_receives_last_value(self, sleeper):
        fetch = scripted("a", "b", "c")
        seen = []

        def on_timeout(last):
            seen.append(last)
            raise TimeoutError("gave up")

        with pytest.raises(TimeoutError):
            poll_until(
                fetch,
                lambda value: False,
                max_attempts=3,
                delay=1,
                on_timeout=on_timeout,
                sleep=sleeper,
            )

        assert seen == ["c"]
        assert len(fetch.calls) == 3

    def test_fetch_errors_propagate(self, sleeper):
        fetch = scripted(Fatal("describe failed"))

        with pytest.raises(Fatal):
            poll_until(
                fetch,
                lambda value: True,
                max_attempts=5,
                delay=1,
                on_timeout=lambda last: None,
                sleep=sleeper,
            )

        assert sleeper.calls == []
