"""Logging setup shared by the CLI and the engine."""

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(debug: bool = False, stream: TextIO | None = None) -> None:
    """Route stdlib logging and structlog to ``stream`` (stderr by default).

    Only warnings and errors are shown unless ``debug`` is set, so regular
    runs print nothing but the report.
    """
    stream = stream or sys.stderr
    level = logging.DEBUG if debug else logging.WARNING

    logging.basicConfig(
        level=level,
        stream=stream,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
