"""
Centralized Logging

Architectural Intent:
- One handler on the "meridian" logger; every module logs through
  logging.getLogger(__name__) underneath it
- The scheduler logs each dispatch, READY and FAILED transition at INFO/ERROR,
  cascaded skips and provider retries at WARNING, so --verbose shows a
  readable apply trace and the default WARNING level shows only trouble
- JSON output gives one object per transition for log shippers running
  applies unattended
- Level comes from --verbose / --debug, otherwise the log_level entry of
  meridian.json (or MERIDIAN_LOG_LEVEL), given as a name or a number
"""

import json
import logging
import sys
from datetime import datetime, UTC
from typing import Union


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def parse_level(level: Union[int, str]) -> int:
    """Accept 10 / "10" / "debug" / "DEBUG"; unknown names fall back to WARNING."""
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    value = logging.getLevelName(text.upper())
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(
    level: Union[int, str] = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure logging for the Meridian application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.), as int or name.
        json_format: If True, use JSON structured output. Otherwise human-readable.
    """
    level = parse_level(level)
    root = logging.getLogger("meridian")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )

    root.addHandler(handler)
