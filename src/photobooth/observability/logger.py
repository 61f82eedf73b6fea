"""JSON log lines for the booth client, pipeline and service.

One record becomes one JSON object on one line::

    {"ts": "2026-07-01T12:00:00.123456+00:00", "level": "INFO",
     "logger": "photobooth.orchestrator", "message": "Upload succeeded",
     "op": "submit", "transport": "buffered", "attempts": 4}

Structured fields travel in ``extra={"extra_fields": {...}}`` and are
passed through :func:`~photobooth.utils.redact.redact` before they are
written, so a data URI or a raw byte buffer that slips into a log call
shows up as ``<data_uri:N_bytes>`` / ``<binary:N_bytes>``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from photobooth.utils.redact import redact

# Keys owned by the formatter; structured fields may not override them.
_RESERVED_KEYS = frozenset({"ts", "level", "logger", "message"})


class StructuredFormatter(logging.Formatter):
    """Render a :class:`logging.LogRecord` as a single JSON line.

    Parameters
    ----------
    redact_fields:
        Scrub image payloads out of ``extra_fields``.  On by default.
    """

    def __init__(self, *, redact_fields: bool = True) -> None:
        super().__init__()
        self.redact_fields = redact_fields

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        fields = getattr(record, "extra_fields", None)
        if fields:
            if self.redact_fields:
                fields = redact(fields)
            for key, value in fields.items():
                if key not in _RESERVED_KEYS:
                    entry[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


_configured: set[str] = set()


def get_logger(
    name: str = "photobooth",
    *,
    level: int | str = logging.DEBUG,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Return the JSON logger called *name*.

    The first call for a name attaches a :class:`StructuredFormatter`
    handler writing to *stream* (``sys.stderr`` by default) and turns
    off propagation; later calls return the same logger untouched.
    *level* may be an ``int`` or a level name in any case.
    """
    logger = logging.getLogger(name)
    if name in _configured:
        return logger

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    _configured.add(name)
    return logger
