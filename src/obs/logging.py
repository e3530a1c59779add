"""Logging helpers for trace correlation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from opentelemetry import trace

if TYPE_CHECKING:

    class _TraceRecord(logging.LogRecord):
        trace_id: str | None
        span_id: str | None


TRACE_LOG_FORMAT = (
    "%(asctime)s %(levelname)s [trace_id=%(trace_id)s span_id=%(span_id)s] %(name)s: %(message)s"
)

_PACKAGE_LOGGERS = ("cpg_schema", "validation", "obs")


class TraceContextFilter(logging.Filter):
    """Attach trace/span IDs to log records when available."""

    @staticmethod
    def filter(record: logging.LogRecord) -> bool:
        """Inject trace/span IDs into the log record when available.

        Returns
        -------
        bool
            True to keep the log record.
        """
        context = trace.get_current_span().get_span_context()
        trace_record = cast("_TraceRecord", record)
        if context is None or not context.is_valid:
            trace_record.trace_id = None
            trace_record.span_id = None
            return True
        trace_record.trace_id = f"{context.trace_id:032x}"
        trace_record.span_id = f"{context.span_id:016x}"
        return True


class TraceContextFormatter(logging.Formatter):
    """Formatter that ensures trace/span IDs are present on log records."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record with ensured trace/span fields.

        Returns
        -------
        str
            Formatted log record string.
        """
        if not hasattr(record, "trace_id"):
            record.trace_id = None
        if not hasattr(record, "span_id"):
            record.span_id = None
        return super().format(record)


def configure_logging(
    level: int | str = logging.INFO,
    *,
    handler: logging.Handler | None = None,
    fmt: str | None = None,
) -> logging.Handler:
    """Attach a trace-correlating handler to the package loggers.

    Repeated calls replace the handler installed by a previous call.

    Parameters
    ----------
    level
        Level applied to the package loggers.
    handler
        Handler to install; a ``StreamHandler`` is created when omitted.
    fmt
        Log format; defaults to ``TRACE_LOG_FORMAT``.

    Returns
    -------
    logging.Handler
        The installed handler.
    """
    target = handler or logging.StreamHandler()
    target.setFormatter(TraceContextFormatter(fmt or TRACE_LOG_FORMAT))
    target.addFilter(TraceContextFilter())
    target._cpg_schema_handler = True  # type: ignore[attr-defined]
    for name in _PACKAGE_LOGGERS:
        package_logger = logging.getLogger(name)
        for existing in list(package_logger.handlers):
            if getattr(existing, "_cpg_schema_handler", False):
                package_logger.removeHandler(existing)
        package_logger.setLevel(level)
        package_logger.addHandler(target)
    return target


__all__ = [
    "TRACE_LOG_FORMAT",
    "TraceContextFilter",
    "TraceContextFormatter",
    "configure_logging",
]
