"""
Logging setup for plugsmith.

Configures the ``plugsmith`` logger hierarchy with console and rotating file
handlers according to :mod:`plugsmith.config`.
"""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from plugsmith.config import Settings, settings as default_settings

STANDARD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def __init__(self, context: str) -> None:
        super().__init__()
        self.context = context

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "context": self.context,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(context: str = "app", config: Optional[Settings] = None) -> None:
    """
    Configure logging for the given run context.

    Args:
        context: Name of the entry point (e.g. "cli"); used for the log file name
        config: Settings to use (defaults to the global settings)

    Raises:
        PermissionError: If file logging is enabled and the log directory
                         cannot be created
    """
    config = config or default_settings
    logger = logging.getLogger("plugsmith")
    logger.setLevel(config.log_level.upper())

    # Re-running setup replaces previously installed handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if config.log_format == "json":
        formatter: logging.Formatter = JsonFormatter(context)
    else:
        formatter = logging.Formatter(STANDARD_FORMAT)

    if config.log_console_enabled:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if config.log_file_enabled:
        log_dir = config.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = not logger.handlers
