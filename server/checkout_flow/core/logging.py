import logging
import sys
from typing import Any, Optional, TextIO

import structlog


def configure_logging(level: str = "INFO", stream: Optional[TextIO] = None, json: bool = True) -> None:
    """
    Route structlog through the standard library.

    The API logs JSON to stdout. The CLI passes ``stream=sys.stderr`` so
    its own output stays machine-readable, and may ask for console lines.
    """
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


def get_logger(*args: Any, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(*args, **kwargs)
