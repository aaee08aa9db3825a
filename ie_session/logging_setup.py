"""
Logging for the session hook.

stdout belongs to the host (it carries the context payload), so every log
record goes to stderr through a Rich handler.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "ie_session"


def configure_logging(debug: bool = False, console: Console | None = None) -> logging.Logger:
    """
    Attach a stderr Rich handler to the package logger.

    Safe to call more than once; the previous handler is replaced.

    Args:
        debug: Log at DEBUG when True, WARNING otherwise
        console: Console to write to (defaults to a stderr console)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_ie_session_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=debug,
        rich_tracebacks=debug,
        markup=False,
    )
    handler._ie_session_handler = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    logger.propagate = False
    return logger
