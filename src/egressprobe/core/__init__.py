"""Core modules for egressprobe - centralized error definitions."""

from egressprobe.core.errors import (
    ConfigurationError,
    DeletionError,
    DescriptorError,
    EgressProbeError,
    ExitCode,
    InvocationError,
    ProvisioningError,
    ResponseDecodeError,
    StackCreateTimeout,
    StackExistenceTimeout,
    StackFailedError,
    StackNotFoundError,
    TemplateError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "EgressProbeError",
    "ConfigurationError",
    "ProvisioningError",
    "TemplateError",
    "StackExistenceTimeout",
    "StackCreateTimeout",
    "StackFailedError",
    "StackNotFoundError",
    "DescriptorError",
    "InvocationError",
    "ResponseDecodeError",
    "ValidationError",
    "DeletionError",
    "main_with_error_handling",
    "format_error_message",
]
