"""Code Mantra — Structured logging.

structlog renders through stdlib logging so that library loggers and engine
loggers share one handler set.  Every record carries:
    - timestamp (ISO-8601, wall clock)
    - level and logger name
    - file_path / trigger of the event under evaluation, when one is bound
    - vt: the scheduler's virtual time, when a replay clock is installed

Engine code only ever calls ``get_logger(__name__)`` and logs snake_case event
names with key/value context.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable

import structlog
from structlog.types import EventDict, WrappedLogger

_EVENT_KEYS = ("file_path", "trigger")

_log_clock: Callable[[], float] | None = None


# ---------------------------------------------------------------------------
# Event context
# ---------------------------------------------------------------------------


def bind_event_context(file_path: str | None = None, trigger: str | None = None) -> None:
    """Attach the event being evaluated to every record logged until cleared."""
    values = {k: v for k, v in (("file_path", file_path), ("trigger", trigger)) if v is not None}
    if values:
        structlog.contextvars.bind_contextvars(**values)


def clear_event_context() -> None:
    structlog.contextvars.unbind_contextvars(*_EVENT_KEYS)


def set_log_clock(clock: Callable[[], float] | None) -> None:
    """Stamp records with ``vt=clock()``.  ``None`` removes the stamp."""
    global _log_clock
    _log_clock = clock


def _add_virtual_time(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    if _log_clock is not None:
        event_dict.setdefault("vt", round(_log_clock(), 3))
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        _add_virtual_time,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderer(format: str) -> Any:
    if format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Route structlog through stdlib logging.

    Records go to stderr, and to *log_file* as well when given; stdout stays
    free for CLI output.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` (human-readable) or ``"json"``.
        log_file: Optional extra destination.
    """
    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(format),
        ],
    )

    destinations: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        destinations.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in destinations:
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = destinations
    root.setLevel(level.upper())
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named *name*.

    Usage::

        log = get_logger(__name__)
        log.info("reminder_fired", trigger="onSave", file_path="/src/a.ts")
    """
    return structlog.get_logger(name)
