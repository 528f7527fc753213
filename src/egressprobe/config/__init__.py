"""
egressprobe configuration.

Pydantic-based settings loaded from EGRESSPROBE_* environment variables
or a local .env file.
"""

from egressprobe.config.settings import DEFAULT_STACK_PREFIX, Settings, get_settings

__all__ = [
    "DEFAULT_STACK_PREFIX",
    "Settings",
    "get_settings",
]
