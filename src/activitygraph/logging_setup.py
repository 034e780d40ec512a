"""Console logging setup with an optional JSON format."""

import json
import logging
import sys
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)-25s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, ensure_ascii=False, default=str)


def setup_logging(
    level: str = "INFO",
    fmt: str = "text",
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the package logger. Calling it again replaces the handler."""
    root = logging.getLogger("activitygraph")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if fmt == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.propagate = False
    return root
