# src/claimcheck/core/logging.py
"""Logging for claimcheck: structlog over stdlib, driven by LoggingSettings.

structlog events and stdlib records (the Azure SDK logs through stdlib)
are rendered by one ProcessorFormatter on stderr. stdout is left to
command output.

ClaimCheckClient wraps each operation in client_log_context(), which binds
the queue and container names into structlog contextvars. Records the SDK
emits during that operation carry the same fields as the client's own
events.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

from claimcheck.core.config import LoggingSettings

# Parents of the per-request HTTP loggers; children inherit the floor.
_SDK_LOGGERS = ("azure", "urllib3", "opentelemetry")


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderers(json_output: bool) -> list[Any]:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Route structlog and stdlib logging to stderr.

    Safe to call repeatedly: the CLI configures once from its flags and
    again after the settings file is read.
    """
    settings = settings or LoggingSettings()
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure between cases
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            processors=[ProcessorFormatter.remove_processors_meta, *_renderers(settings.json_output)],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.level)

    sdk_floor = max(logging.getLevelName(settings.level), logging.getLevelName(settings.sdk_level))
    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(sdk_floor)


@contextmanager
def client_log_context(queue: str, container: str | None = None) -> Iterator[None]:
    """Bind queue (and container, if any) to every event logged in the block."""
    fields = {"queue": queue}
    if container is not None:
        fields["container"] = container
    with structlog.contextvars.bound_contextvars(**fields):
        yield
