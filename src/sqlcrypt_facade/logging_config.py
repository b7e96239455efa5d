"""
Logging configuration for the SQLCrypt facade.

In DEV mode logs are human-readable; in PROD mode each record is a
single-line JSON object for log aggregators.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .config import SQLCryptConfig


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""
    
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        
        return json.dumps(payload, default=str)


def setup_logging(debug: bool | None = None) -> None:
    """
    Configure the root logger.
    
    Args:
        debug: Force human-readable DEBUG output; defaults to DEV mode
    """
    if debug is None:
        debug = SQLCryptConfig.is_dev_mode()
    
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.handlers.clear()
    
    handler = logging.StreamHandler(sys.stdout)
    if debug:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    else:
        handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    
    if not debug:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
