"""Logging configuration for the sign-in service.

Two formatters, chosen by LOG_JSON:

  _ContainerFormatter: human-readable, single-line, for local dev.
  _JsonFormatter: JSON Lines for log aggregation (ELK, Datadog,
                   CloudWatch).  Request context fields become
                   top-level keys so they can be filtered on.

WHAT NEVER GETS LOGGED
------------------------
Authorization codes, state tokens, access/refresh tokens, session ids,
the client secret.  Call sites log a short hash prefix instead
(see fingerprint()).  tests/api/test_log_secrets.py enforces this.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys


def fingerprint(secret: str) -> str:
    """Short, non-reversible tag for correlating a secret across log lines."""
    return hashlib.sha256(secret.encode()).hexdigest()[:12]


class _ContainerFormatter(logging.Formatter):
    """One readable line per record for local development.

    Layout: timestamp, level, logger, message, then ``rid=<request id>``
    inside a request so the lines of one sign-in can be grepped together.
    WARNING and above also get ``[file:line]``; tracebacks follow on the
    next lines when exc_info is set.
    """

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-8s %(name)s  %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # Milliseconds go before the +0000 offset
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        head, sep, trace = line.partition("\n")
        request_id = getattr(record, "request_id", "-")
        if request_id != "-":
            head += f"  rid={request_id}"
        if record.levelno >= logging.WARNING:
            head += f"  [{record.filename}:{record.lineno}]"
        return head + sep + trace


class _JsonFormatter(logging.Formatter):
    """JSON formatter, one object per line.

    Context fields (request_id, user_id, ...) are attached to records by
    the request-context filter and the access-log call in the middleware.
    """

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "user_id",
        "status_code",
        "duration_ms",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            # "-" is the filter's placeholder outside a request
            if value is not None and value != "-":
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger for container environments.

    Args:
        level_name: Log level string (debug/info/warning/error)
        json_format: If True, emit JSON lines. If False, human-readable.
                     Controlled by LOG_JSON in Settings.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # httpx logs full request URLs at INFO; userinfo/token URLs are fine but
    # keep third-party chatter at WARNING+ regardless of our level.
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
