"""
Error taxonomy for egressprobe.

Every failure the lifecycle can produce is an EgressProbeError subclass.
The CLI maps each one onto a process exit code.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Provider error (CloudFormation or Lambda failure)
- 12: Validation error (an egress check failed)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class EgressProbeError(Exception):
    """Base exception for egressprobe errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(EgressProbeError):
    """Raised when the tester is built with missing or invalid inputs."""

    exit_code = ExitCode.CONFIG_ERROR


class ProvisioningError(EgressProbeError):
    """Raised when the probe stack cannot be created or inspected."""

    exit_code = ExitCode.PROVIDER_ERROR


class TemplateError(ProvisioningError):
    """Raised when the stack template cannot be loaded."""


class StackExistenceTimeout(ProvisioningError):
    """The stack never became queryable after creation was submitted."""


class StackCreateTimeout(ProvisioningError):
    """The stack existed but did not finish creating in time."""


class StackFailedError(ProvisioningError):
    """The stack reached a terminal status other than CREATE_COMPLETE."""

    def __init__(self, message: str, status: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.status = status


class StackNotFoundError(ProvisioningError):
    """Raised when describing a stack that does not exist."""


class DescriptorError(ProvisioningError):
    """Raised when a stack lacks the FunctionName output."""


class InvocationError(EgressProbeError):
    """Raised when the probe function cannot be invoked."""

    exit_code = ExitCode.PROVIDER_ERROR


class ResponseDecodeError(InvocationError):
    """Raised when the probe function returns a body we cannot decode."""


class ValidationError(EgressProbeError):
    """Raised when probe results fail the pass/fail policy."""

    exit_code = ExitCode.VALIDATION_ERROR


class DeletionError(EgressProbeError):
    """Raised when the stack delete request is rejected."""

    exit_code = ExitCode.PROVIDER_ERROR


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
    echo_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator that turns a CLI command's exceptions into an exit code.

    Args:
        show_traceback: Print the full traceback for unexpected errors
        log_errors: Log the failure through structlog
        echo_errors: Print a one-line error to the console as well

    Exit codes:
        - EgressProbeError subclasses: the error's exit_code
        - KeyboardInterrupt: 130
        - Anything else: 127
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except EgressProbeError as e:
                if log_errors:
                    logger.error(
                        "command_failed",
                        command=func.__name__,
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if echo_errors:
                    _echo(format_error_message(e))
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted", command=func.__name__)
                return 130
            except Exception as e:
                if log_errors:
                    logger.exception(
                        "command_crashed",
                        command=func.__name__,
                        error_type=type(e).__name__,
                    )
                if echo_errors:
                    _echo(f"unexpected {type(e).__name__}: {e}")
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def _echo(message: str) -> None:
    from egressprobe.cli.ux import error as print_error

    print_error(message)


def format_error_message(error: EgressProbeError) -> str:
    """Render an error and its details on one line."""
    if not error.details:
        return error.message
    detail_str = ", ".join(f"{key}={value}" for key, value in error.details.items())
    return f"{error.message} ({detail_str})"
