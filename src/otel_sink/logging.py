"""Logging setup for otel-sink.

structlog events and records from stdlib loggers (Flask, werkzeug) leave
through a single stderr handler and share one rendering. stdout is left to
the console mirror.
"""

import logging
import sys

import structlog

# werkzeug logs every request at INFO
QUIET_LOGGERS = ("werkzeug",)


def _pre_chain() -> list[structlog.types.Processor]:
    """Enrichment applied to structlog events and foreign records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _stderr_handler(json_output: bool) -> logging.Handler:
    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(),
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    return handler


def configure_logging(
    service_name: str = "otel-sink",
    level: str = "INFO",
    json_output: bool | None = None,
) -> None:
    """Send all process logging to stderr, tagged with ``service_name``.

    Entries render as JSON lines unless stderr is a terminal, where the
    console renderer is used instead. ``json_output`` overrides that choice.
    Calling again replaces the previous setup.
    """
    threshold = getattr(logging, level.upper())
    if json_output is None:
        json_output = not sys.stderr.isatty()

    structlog.configure(
        processors=[
            *_pre_chain(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_stderr_handler(json_output))
    root.setLevel(threshold)

    quiet_level = logging.NOTSET if threshold <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    structlog.contextvars.bind_contextvars(service=service_name)
