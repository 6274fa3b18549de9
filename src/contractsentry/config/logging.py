"""Logging setup driven by Settings."""

import json
import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from contractsentry.config.settings import Settings


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(settings: Optional[Settings] = None, console: Optional[Console] = None) -> logging.Logger:
    """Configure the package logger from settings.

    Args:
        settings: Global settings (log_level, log_format)
        console: Rich console for text output (stderr by default)

    Returns:
        The configured ``contractsentry`` logger
    """
    settings = settings or Settings()
    logger = logging.getLogger("contractsentry")

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if settings.log_format == "json":
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
    else:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )

    logger.addHandler(handler)
    logger.setLevel(settings.log_level)
    logger.propagate = False
    return logger
