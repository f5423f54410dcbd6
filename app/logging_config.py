from __future__ import annotations
import logging
import sys
from typing import TextIO
import structlog

def configure_logging(debug: bool = False, json: bool = True, stream: TextIO = sys.stdout) -> None:
    level = logging.DEBUG if debug else logging.INFO
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            # JSON for machine-readable logs, console renderer for a terminal
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    # also route stdlib logging -> stream
    logging.basicConfig(format="%(message)s", stream=stream, level=level)
