"""structlog configuration. Every module logs through ``get_logger(name)``."""

from __future__ import annotations

import logging

import structlog


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    # Initial values become wrap_logger kwargs; "logger" would clash with its first parameter.
    return structlog.get_logger(logger_name=name)
