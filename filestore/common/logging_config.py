"""
Structured logging for storage operations.

Records are rendered as one JSON object per line so they can be shipped to a
log aggregator as-is. Everything passed through `extra=` ends up as a
top-level key; a dict passed as `extra={"extra_fields": {...}}` is merged in
flat. A correlation id set by the caller is attached to every record emitted
in the same context.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar(
    "correlation_id", default=None)

# Attributes every LogRecord has; anything else came from `extra=`.
_RESERVED_ATTRS = set(vars(logging.LogRecord(
    "", logging.INFO, "", 0, "", (), None))) | {"message", "asctime", "taskName"}

NOISY_LOGGERS = ("urllib3", "botocore", "boto3", "s3transfer")

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON document."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._base_fields(record)

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            if key == "extra_fields" and isinstance(value, dict):
                payload.update(value)
            else:
                payload[key] = value

        return json.dumps(payload, default=str)

    @staticmethod
    def _base_fields(record: logging.LogRecord) -> Dict[str, Any]:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return {
            "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }


class PerformanceTracker:
    """
    Time a block and log how it ended.

    Usage:
        with PerformanceTracker("ping_test", logger, adapter_type="s3"):
            store.ping_test()

    A DEBUG record marks the start. On exit one record carries `operation`,
    `duration_ms` and the given fields; failures are logged at ERROR with the
    exception type and text, and the exception is not suppressed.
    """

    def __init__(self, operation: str, logger: logging.Logger,
                 log_level: int = logging.INFO, **fields: Any):
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.fields = fields
        self.duration_ms: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceTracker":
        self._started = time.perf_counter()
        self.logger.debug(
            f"Starting {self.operation}",
            extra={"extra_fields": {"operation": self.operation, **self.fields}},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        summary = {"operation": self.operation, "duration_ms": self.duration_ms, **self.fields}

        if exc_type is None:
            self.logger.log(self.log_level, f"Finished {self.operation}",
                            extra={"extra_fields": summary})
            return

        summary["error"] = str(exc_val)
        summary["error_type"] = exc_type.__name__
        self.logger.error(f"{self.operation} failed", extra={"extra_fields": summary})


def setup_logging(log_level: str = "INFO", json_format: bool = True,
                  stream: Optional[TextIO] = None) -> None:
    """
    Install a single console handler on the root logger.

    Args:
        log_level: Level name, case-insensitive (DEBUG, INFO, WARNING, ...)
        json_format: Emit JSON via StructuredFormatter, else a plain text line
        stream: Output stream (defaults to stderr)
    """
    level = getattr(logging, log_level.upper())
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)

    # SDK transports log every request at DEBUG/INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Attach a correlation id to the current context, generating one if needed."""
    correlation_id = correlation_id or uuid.uuid4().hex
    correlation_id_ctx.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def clear_correlation_id() -> None:
    correlation_id_ctx.set(None)
