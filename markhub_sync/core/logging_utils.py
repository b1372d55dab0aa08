from __future__ import annotations

import datetime as dt
import json
import logging
import os
import sys
import uuid
from logging.handlers import RotatingFileHandler
from typing import Any

from loguru import logger as loguru_logger

_STANDARD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
    }
)

# Extra keys grouped under "sync" in JSON output
_SYNC_FIELDS = frozenset(
    {
        "bookmark_id",
        "remote_id",
        "folder_id",
        "folder_path",
        "action",
        "folders_created",
        "bookmarks_created",
        "bookmarks_updated",
        "skipped",
    }
)

_NOISY_LOGGERS = ("httpx", "httpcore", "httpcore.http11", "httpcore.connection")


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if not key.startswith("_") and key not in _STANDARD_FIELDS
    }


class EnhancedJsonFormatter(logging.Formatter):
    """JSON formatter for stdlib handlers, grouping sync fields separately."""

    def __init__(self, include_location: bool = True, include_process_info: bool = False):
        super().__init__()
        self.include_location = include_location
        self.include_process_info = include_process_info
        self.hostname = os.uname().nodename if hasattr(os, "uname") else "unknown"

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=dt.UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
        }

        if self.include_location:
            base.update(
                {"module": record.module, "function": record.funcName, "line": record.lineno}
            )

        if self.include_process_info:
            base.update({"process": record.process, "thread": record.thread})

        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        sync_fields: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in _extra_fields(record).items():
            if key in base:
                continue
            if key in _SYNC_FIELDS:
                sync_fields[key] = value
            else:
                extra[key] = value

        if sync_fields:
            base["sync"] = sync_fields
        if extra:
            base["extra"] = extra

        cid = getattr(record, "correlation_id", None) or getattr(record, "cid", None)
        if cid:
            base["correlation_id"] = cid

        return json.dumps(
            base, ensure_ascii=False, default=self._json_serializer, separators=(",", ":")
        )

    def _json_serializer(self, obj: Any) -> str:
        if hasattr(obj, "model_dump"):
            return json.dumps(obj.model_dump(mode="json"), ensure_ascii=False)
        return str(obj)


class InterceptHandler(logging.Handler):
    """Route stdlib log records into loguru, keeping ``extra`` as bound fields."""

    def emit(self, record: logging.LogRecord) -> None:
        level: int | str
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        loguru_logger.bind(**_extra_fields(record)).opt(depth=6, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_json_logging(
    level: str = "INFO",
    use_loguru: bool = True,
    log_file: str | None = None,
    max_file_size: str = "20 MB",
    retention: str = "14 days",
    include_location: bool = True,
) -> None:
    """Configure JSON logging for the sync engine and CLI.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_loguru: Send records through loguru sinks; otherwise plain stdlib handlers
        log_file: Optional log file path for persistent logging
        max_file_size: Rotation size for the file sink
        retention: Retention period for rotated files (loguru format)
        include_location: Include module/function/line in stdlib JSON output
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(sys.stderr, level=level.upper(), serialize=True, backtrace=True)
        if log_file:
            loguru_logger.add(
                log_file,
                level=level.upper(),
                serialize=True,
                rotation=max_file_size,
                retention=retention,
                compression="gz",
                enqueue=True,
            )
        root.addHandler(InterceptHandler())
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(EnhancedJsonFormatter(include_location=include_location))
        root.addHandler(console_handler)
        if log_file:
            file_handler = RotatingFileHandler(log_file, maxBytes=20 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(EnhancedJsonFormatter(include_location=include_location))
            root.addHandler(file_handler)

    for noisy_logger in _NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "logging_initialized",
        extra={"level": level, "use_loguru": use_loguru, "log_file": log_file},
    )


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing one sync pass across logs."""
    return uuid.uuid4().hex[:12]


def truncate_log_content(content: str | None, max_length: int = 500) -> str | None:
    """Shorten large payloads (AI replies, error bodies) before logging them."""
    if not content or len(content) <= max_length:
        return content
    return content[: max(0, max_length - 15)] + "... [truncated]"


__all__ = [
    "EnhancedJsonFormatter",
    "InterceptHandler",
    "generate_correlation_id",
    "setup_json_logging",
    "truncate_log_content",
]
