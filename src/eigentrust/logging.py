"""Structured logging for trust score runs.

Events are structlog key-value records routed through the standard
library, so pytest's caplog and any stdlib handler see them. A
propagation run binds ``run_id`` for its duration, and every engine event
emitted inside it carries that id.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor


def _renderer(format: str) -> list[Processor]:
    if format.lower() == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Configure structured logging.

    Safe to call again: the root level and renderer are replaced each time,
    including for loggers obtained before the call.

    Args:
        level: Log level name. Unknown names fall back to INFO.
        format: "json" for machine-readable job logs, "text" for a
            coloured console.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            *_renderer(format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring JSON/INFO defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def bound_context(**kwargs: object) -> Iterator[None]:
    """Bind key-value pairs to every event logged inside the block.

    Example:
        ```python
        with bound_context(run_id="3f2a9c"):
            logger.info("propagation_started")
        ```
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


def clear_context() -> None:
    """Drop every bound context variable."""
    structlog.contextvars.clear_contextvars()
