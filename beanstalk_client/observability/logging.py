"""
Structured logging for the client and the worker.

The library modules log through ``logging.getLogger(__name__)`` with
``extra=`` fields and never configure logging themselves. A process that
wants structured output (the ``beanstalk-worker`` entry point, or an
application embedding the client) calls setup_logging() once; it renders
records from the ``beanstalk_client`` logger tree, and from any handler
modules named, through structlog.

Worker context (worker id, server address, and the job being executed)
is carried in structlog context variables, so it is attached to every
record logged while it is bound, including records from handler code.
"""

import logging
import sys
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from opentelemetry import trace

from beanstalk_client.config import Settings, get_settings

PACKAGE_LOGGER = "beanstalk_client"


def add_trace_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Add the current command or job span's ids to a log record.

    Args:
        logger: The logger instance.
        method_name: The method name being called.
        event_dict: The event dictionary.

    Returns:
        The event dictionary with trace_id and span_id added when a span
        is recording.
    """
    span = trace.get_current_span()
    if span.is_recording():
        ctx = span.get_span_context()
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def _build_handler(settings: Settings) -> logging.Handler:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_trace_context,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    return handler


def setup_logging(
    settings: Settings | None = None,
    handler_modules: Iterable[str] = (),
) -> None:
    """
    Render the client's log records through structlog.

    Installs one stdout handler on the ``beanstalk_client`` logger and on
    the logger of each handler module. The root logger is left alone, so
    an embedding application keeps its own logging setup. Calling this
    again replaces the handler rather than adding a second one.

    Args:
        settings: Settings with log_level and log_format. Defaults to the
            cached settings.
        handler_modules: Module names whose records should be rendered the
            same way, typically the worker's handler modules.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = _build_handler(settings)

    for name in (PACKAGE_LOGGER, *handler_modules):
        logger = logging.getLogger(name)
        logger.handlers = [handler]
        logger.setLevel(level)
        logger.propagate = False

    # Exporter retries are noisy when no collector is listening
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all subsequent log records.

    Args:
        **kwargs: Key-value pairs to add to log context.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def job_context(job_id: int, tube: str, attempt: int) -> Iterator[None]:
    """Bind the job being executed to log records for the duration of the block."""
    with structlog.contextvars.bound_contextvars(job_id=job_id, tube=tube, attempt=attempt):
        yield
