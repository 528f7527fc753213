import logging
import sys
from typing import Any

import structlog

# boto3 and botocore are chatty at INFO
_QUIET_LOGGERS = ("boto3", "botocore", "urllib3")


def configure_logging(level: int | str = logging.INFO, *, json_logs: bool = True) -> None:
    """Configure the structlog/stdlib bridge.

    Log records go to stderr so that ``--output json`` keeps stdout clean.
    """

    renderer: Any = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Bind contextual fields (context label, stack name) for downstream logs."""

    return structlog.get_logger().bind(**kwargs)
