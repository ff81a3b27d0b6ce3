"""Structured logging configuration using structlog.

Provides a single ``configure_logging()`` call that sets up:
  - structlog with timestamped, leveled, coloured console output (dev)
  - or JSON output for production / log aggregators

Stages never configure logging themselves; the engine hands each one a
``StageLogger`` already bound to the pipeline and phase it runs in.
"""

from __future__ import annotations

import logging
import sys
from typing import Literal

import structlog

StageLogger = structlog.typing.FilteringBoundLogger
"""The level-filtering bound logger produced by :func:`configure_logging`."""


def configure_logging(
    level: str = "INFO",
    fmt: Literal["console", "json"] = "console",
    include_caller: bool = False,
) -> None:
    """Configure the root logger and structlog processors.

    Parameters
    ----------
    level:
        Standard log level name, e.g. ``"DEBUG"``, ``"INFO"``, ``"WARNING"``.
    fmt:
        ``"console"`` for human-readable output (development),
        ``"json"`` for machine-readable newline-delimited JSON (production).
    include_caller:
        If True, attach ``module`` and ``lineno`` to every event.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if include_caller:
        shared_processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )

    renderers: list[structlog.types.Processor]
    if fmt == "json":
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    log_level = logging.getLevelName(level.upper())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )


def get_logger(name: str | None = None) -> StageLogger:
    """Return a structlog logger for the given module name."""
    return structlog.get_logger(name)


def get_stage_logger(pipeline: str, phase: str, stage: str | None = None) -> StageLogger:
    """Return the logger handed to a stage's lifecycle calls."""
    bound = structlog.get_logger("pipestage.stage").bind(pipeline=pipeline, phase=phase)
    if stage is not None:
        bound = bound.bind(stage=stage)
    return bound
