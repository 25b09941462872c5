"""
Logging utilities for LinesDB.

Components log through child loggers of "linesdb". Nothing here touches the
root logger; applications opt in with configure_logging().
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

ROOT_LOGGER = 'linesdb'


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per log line"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a LinesDB logger.

    Example:
        >>> logger = get_logger('mutations')
        >>> logger.name
        'linesdb.mutations'
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: int = logging.INFO, structured: bool = False) -> logging.Logger:
    """
    Attach a stderr handler to the linesdb logger.

    Args:
        level: Logging level (default: INFO)
        structured: JSON lines if True, human-readable otherwise
    """
    logger = get_logger()
    logger.setLevel(level)

    # Avoid duplicate handlers on repeated calls
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        if structured:
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
    return logger
