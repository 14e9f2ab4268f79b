"""structlog setup for magnus-tool.

Everything is rendered to stderr; stdout carries query results only.
"""

import logging
import sys
from typing import Any

import structlog

DEFAULT_LEVEL = logging.WARNING
VERBOSE_LEVEL = logging.DEBUG


class _CurrentStderr:
    """Logger factory that looks up sys.stderr each time a logger is built.

    Test runners swap sys.stderr between invocations, so a handle captured
    at configure time goes stale.
    """

    def __call__(self, *args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False) -> None:
    """Install the console pipeline; DEBUG with verbose, WARNING otherwise."""
    level = VERBOSE_LEVEL if verbose else DEFAULT_LEVEL
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=_CurrentStderr(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Return a logger bound to the short component name.

    "magnus_tool.core.session" is logged as "session". Call it inside
    functions so the logger picks up the configuration in effect.
    """
    return structlog.get_logger().bind(logger=name.rsplit(".", 1)[-1])
