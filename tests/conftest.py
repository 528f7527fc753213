"""Root test configuration."""

import logging

import pytest
import structlog
from egressprobe.config import Settings
from egressprobe.models import ProbeResult


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class SleepRecorder:
    """Stand-in for time.sleep that only remembers the requested delays."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def fast_settings():
    """Settings with every delay set to zero."""
    return Settings(
        _env_file=None,
        initial_sleep_seconds=0,
        post_event_sleep_seconds=0,
        invoke_retry_delay_seconds=0,
        stack_exists_delay_seconds=0,
        stack_create_delay_seconds=0,
    )


def make_result(name="gopkg.in", url="https://gopkg.in", elapsed=0.5, success=True, code=200):
    """Build a probe result with sensible defaults."""
    return ProbeResult(
        name=name,
        url=url,
        elapsed_seconds=elapsed,
        success=success,
        message="ok" if success else "problem getting URL",
        response_code=code,
    )


@pytest.fixture
def result_factory():
    return make_result
