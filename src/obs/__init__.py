"""Observability helpers for schema compilation and validation."""

from obs.logging import (
    TRACE_LOG_FORMAT,
    TraceContextFilter,
    TraceContextFormatter,
    configure_logging,
)
from obs.scopes import SCOPE_COMPILER, SCOPE_DESCRIPTOR, SCOPE_VALIDATION, ScopeName
from obs.tracing import get_tracer, record_exception, stage_span

__all__ = [
    "SCOPE_COMPILER",
    "SCOPE_DESCRIPTOR",
    "SCOPE_VALIDATION",
    "TRACE_LOG_FORMAT",
    "ScopeName",
    "TraceContextFilter",
    "TraceContextFormatter",
    "configure_logging",
    "get_tracer",
    "record_exception",
    "stage_span",
]
