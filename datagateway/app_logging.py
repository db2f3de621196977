"""Structured (JSON) logging for the gateway."""

import logging
from typing import Optional, Union

from pythonjsonlogger.json import JsonFormatter

_handler: Optional[logging.StreamHandler] = None


def setup_logger(level: Union[int, str] = logging.INFO
                 ) -> logging.StreamHandler:
    """Send all log records to stderr as JSON objects."""
    global _handler
    logger = logging.getLogger()
    if _handler is None or _handler not in logger.handlers:
        _handler = logging.StreamHandler()
        _handler.setFormatter(JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        ))
        logger.addHandler(_handler)
    logger.setLevel(level)
    return _handler
