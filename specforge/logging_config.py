# specforge/logging_config.py
"""
Stderr-only logging configuration.

stdout is reserved for command output (e.g. `specforge hash`), so ALL
logging goes to stderr, either as human-readable lines or as JSON.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Literal

Verbosity = Literal["quiet", "normal", "verbose"]

_LEVELS: dict[str, int] = {
    "quiet": logging.WARNING,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}

HUMAN_FORMAT = "%(asctime)s  %(levelname)-7s  %(message)s"


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON line."""
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(verbosity: Verbosity = "normal", json_output: bool = False) -> None:
    """
    Install a single stderr handler on the root logger.

    Clears existing handlers so repeated calls (tests, nested CLI
    invocations) never stack output.
    """
    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(HUMAN_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_LEVELS.get(verbosity, logging.INFO))

    # httpx logs every request at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
