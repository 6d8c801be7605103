"""Logging setup with per-request correlation ids.

The webhook id of the request being served lives in a ContextVar, so any
log line emitted while handling it (dispatcher, destination, httpx hooks)
carries it without passing it around.
"""
import logging
import sys
from contextvars import ContextVar

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(webhook_id)s] %(message)s"


def get_correlation_id() -> str:
    return _correlation_id.get()


def set_correlation_id(value: str):
    """Set the id for the current context; returns a token for reset."""
    return _correlation_id.set(value)


def reset_correlation_id(token) -> None:
    _correlation_id.reset(token)


class CorrelationFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "webhook_id"):
            record.webhook_id = get_correlation_id()
        return True


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(f, CorrelationFilter) for h in root.handlers for f in h.filters):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationFilter())
    root.addHandler(handler)
