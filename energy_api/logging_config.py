"""
Structured JSON logging configuration for the energy report API.

Each log record is emitted as a single JSON line containing ``timestamp``,
``level``, ``logger`` and ``message``; records logged with ``exc_info``
additionally carry the formatted traceback under ``exc_info``.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
import logging
from datetime import UTC, datetime

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "influxdb_client", "sqlalchemy.engine")


class JSONFormatter(logging.Formatter):
    """Logging formatter that outputs a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        """Format *record* as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with structured JSON output.

    Removes any existing handlers on the root logger and installs a single
    ``StreamHandler`` using :class:`JSONFormatter`.

    Args:
        level: Logging level for the root logger, as a number or a level
            name such as ``"DEBUG"``.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
