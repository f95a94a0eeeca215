"""Reference-check form engine and backend client."""

import json
import logging
import os
import sys
from typing import Any, Dict

__version__ = "0.4.0"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra_data`` dicts are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": "refcheck",
        }
        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, dict):
            log_obj.update(extra_data)
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, ensure_ascii=False, default=str)


def _configure_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    level = (os.environ.get("LOG_LEVEL") or "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))


_configure_logging()
