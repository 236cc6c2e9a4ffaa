from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional


# Per-request context surfaced on every log line
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
order_id_var: ContextVar[Optional[str]] = ContextVar("order_id", default=None)


class LoggingContextFilter(logging.Filter):
    """
    Inject correlation_id and order_id from contextvars into each log record.

    Placeholders are used when the values are not set, so formatters can
    reference the attributes unconditionally.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        setattr(record, "correlation_id", correlation_id_var.get() or "-")
        setattr(record, "order_id", order_id_var.get() or "-")
        return True


# PUBLIC_INTERFACE
def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging with a structured format and context filter."""
    handler = logging.StreamHandler(stream=sys.stdout)
    fmt = (
        "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | order=%(order_id)s | "
        "%(message)s"
    )
    handler.setFormatter(logging.Formatter(fmt=fmt))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(level)
