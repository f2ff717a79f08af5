"""Logging configuration for the tick command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"


class _PackageFilter(logging.Filter):
    """Pass tick's own records; let other libraries through only at ERROR."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("ticktrack"):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(level: str = "warning", verbose: bool = False) -> None:
    """
    Route log records to stderr through Rich.

    ``verbose`` forces DEBUG; otherwise ``level`` is a name such as
    ``"info"``. Safe to call more than once.
    """
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(_PackageFilter())
    root.addHandler(handler)
    root.setLevel(resolved)
    logging.getLogger("ticktrack").setLevel(resolved)
