"""Structured logging for the bucketfs package logger.

bucketfs runs inside a host application, so only the ``bucketfs`` logger is
configured; the host's root logger is left alone.
"""

import json
import logging
import sys
from datetime import datetime, timezone

PACKAGE_LOGGER = "bucketfs"

# Transfer context passed through ``extra=`` by the pipelines.
TRANSFER_FIELDS = ("operation", "container", "key", "status", "duration_ms")


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message and
    whichever transfer fields the record carries."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in TRANSFER_FIELDS:
            val = getattr(record, field, None)
            if val is not None:
                entry[field] = val
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _BucketFSHandler(logging.StreamHandler):
    """Marker type so reconfiguring replaces only our own handler."""


def configure_logging(level: str = "INFO", fmt: str = "text") -> logging.Logger:
    """Point the ``bucketfs`` logger at stderr with the given level and format.

    Calling it again replaces the handler installed by the previous call.
    Unknown level names fall back to INFO; ``fmt`` is ``"text"`` or ``"json"``.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(numeric_level)
    for handler in package_logger.handlers[:]:
        if isinstance(handler, _BucketFSHandler):
            package_logger.removeHandler(handler)

    handler = _BucketFSHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.propagate = False
    return package_logger
