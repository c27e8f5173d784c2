"""Console logging for Bollard.

Library modules log through ``logging.getLogger(__name__)``. The CLI installs
a handler that prints those records with click, coloured by severity.
"""

from __future__ import annotations

import logging

import click


def _style_for(levelno: int) -> dict:
    if levelno >= logging.ERROR:
        return {"fg": "red", "bold": True}
    if levelno >= logging.WARNING:
        return {"fg": "yellow"}
    if levelno < logging.INFO:
        return {"dim": True}
    return {}


class ClickHandler(logging.Handler):
    """Logging handler that writes through ``click.echo`` to stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            style = _style_for(record.levelno)
            if style:
                message = click.style(message, **style)
            click.echo(message, err=True)
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Route ``bollard`` log records to the console.

    Calling it again replaces the handler installed earlier.

    Args:
        verbose: Show debug records as well.

    Returns:
        The package logger.
    """
    logger = logging.getLogger("bollard")
    for handler in list(logger.handlers):
        if isinstance(handler, ClickHandler):
            logger.removeHandler(handler)
    handler = ClickHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger
