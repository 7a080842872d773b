# src/eventgear/core/logging.py
"""Structured logging configuration for EventGear.

Every module logs through ``structlog.get_logger(__name__)`` with an event
name plus key/value context::

    logger.warning("Callback failed", callback="burst", error_type="RuntimeError")

configure_logging() hands structlog records to stdlib logging, where one
ProcessorFormatter renders both structlog and plain ``logging`` records.
Host applications embedding an engine therefore see a single format.

EventGear never calls configure_logging() itself; the CLI does, and
library users may.
"""

import logging
import logging.config
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# asyncio reports every scheduled callback at DEBUG
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio",)


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def _pre_chain() -> list[Any]:
    """Processors applied to every record before rendering."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderers(json_output: bool) -> list[Any]:
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    ]


def configure_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Route structlog and stdlib logging to one stderr handler.

    Args:
        json_output: Emit one JSON object per line instead of console text.
        level: Root level name, case-insensitive.

    Raises:
        ValueError: Unknown level name.
    """
    log_level = _resolve_level(level)
    pre_chain = _pre_chain()

    logging.config.dictConfig(
        {
            "version": 1,
            # Module loggers created at import time must keep working
            "disable_existing_loggers": False,
            "formatters": {
                "eventgear": {
                    "()": ProcessorFormatter,
                    "processors": _renderers(json_output),
                    "foreign_pre_chain": pre_chain,
                },
            },
            "handlers": {
                # stdout stays reserved for command output
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "eventgear",
                    "stream": "ext://sys.stderr",
                },
            },
            "root": {"level": log_level, "handlers": ["stderr"]},
            "loggers": {
                name: {"level": max(log_level, logging.WARNING)} for name in _NOISY_LOGGERS
            },
        }
    )

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure logging between cases
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound logger for ``name`` (usually ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
