"""
Logging setup for the review pipeline.

Every record carries the request id plus whatever review fields (subject, stage,
section) are active through log_context(), so one review or batch can be
followed across modules in both text and JSON output.
"""
import logging
import sys
import json
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, TextIO

from peptalk_review.core.config import settings
from peptalk_review.core.error_handling import request_id_var

# Review fields attached to log records emitted inside log_context()
log_context_var: ContextVar[Optional[Dict[str, str]]] = ContextVar('log_context', default=None)


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, str]]:
    """
    Attach review fields to every log record emitted inside the block.

    Fields nest: an inner block adds to (or overrides) the outer block's fields
    and the outer fields are restored on exit. None values are skipped.

    Example:
        with log_context(subject=record.name, stage="fast"):
            logger.info("Screening record")
    """
    merged = dict(log_context_var.get() or {})
    merged.update({key: str(value) for key, value in fields.items() if value is not None})
    token = log_context_var.set(merged)
    try:
        yield merged
    finally:
        log_context_var.reset(token)


class ReviewContextFilter(logging.Filter):
    """
    Inject the current request_id and review fields (from ContextVars) into log records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = request_id_var.get()
        record.request_id = request_id if request_id else ""
        record.review_fields = dict(log_context_var.get() or {})
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record: timestamp, level, logger, message, request_id
    and the active review fields as top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        if settings.LOG_INCLUDE_REQUEST_ID and getattr(record, "request_id", ""):
            log_obj["request_id"] = record.request_id

        log_obj.update(getattr(record, "review_fields", None) or {})

        # Explicit extra={"extra_fields": {...}} wins over context fields
        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Plain-text formatter that appends review fields as ``[key=value ...]``."""

    def __init__(self, include_request_id: bool = True):
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if include_request_id:
            fmt += " - request_id=%(request_id)s"
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = ""
        line = super().format(record)
        fields = getattr(record, "review_fields", None)
        if fields:
            line += " [" + " ".join(f"{key}={value}" for key, value in fields.items()) + "]"
        return line


def setup_logging(log_format: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """
    Configure logging for the pipeline.
    Uses JSON logging if configured, otherwise standard text logging.

    Args:
        log_format: Override for settings.LOG_FORMAT ("text" or "json")
        stream: Output stream (defaults to stderr so stdout stays free for CLI reports)
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    fmt = (log_format or settings.LOG_FORMAT).lower()

    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter(include_request_id=settings.LOG_INCLUDE_REQUEST_ID))
    handler.addFilter(ReviewContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)

    # Remote-call chatter only at WARNING and above
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
