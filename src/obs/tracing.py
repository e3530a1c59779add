"""Tracing helpers for schema compilation and validation."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode
from opentelemetry.util.types import AttributeValue

logger = logging.getLogger(__name__)

_ATTRIBUTE_TYPES = (str, bool, int, float)


def get_tracer(scope_name: str) -> trace.Tracer:
    """Return a tracer for the given instrumentation scope.

    Returns
    -------
    opentelemetry.trace.Tracer
        Tracer bound to the requested scope.
    """
    return trace.get_tracer(scope_name)


def normalize_attributes(attrs: Mapping[str, object] | None) -> dict[str, AttributeValue]:
    """Return span attributes restricted to OpenTelemetry primitive values.

    Values outside the primitive set are stringified; ``None`` values are dropped.

    Returns
    -------
    dict[str, AttributeValue]
        Normalized attributes.
    """
    if not attrs:
        return {}
    normalized: dict[str, AttributeValue] = {}
    for key, value in attrs.items():
        if value is None:
            continue
        if isinstance(value, _ATTRIBUTE_TYPES):
            normalized[key] = value
        else:
            normalized[key] = str(value)
    return normalized


def record_exception(span: Span, exc: Exception) -> None:
    """Record an exception on a span and mark it as error."""
    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR))


@contextmanager
def stage_span(
    name: str,
    *,
    stage: str,
    scope_name: str,
    attributes: Mapping[str, object] | None = None,
) -> Iterator[Span]:
    """Start a stage span and record its duration.

    Parameters
    ----------
    name
        Span name.
    stage
        Stage name recorded as a span attribute and in debug logs.
    scope_name
        Instrumentation scope name.
    attributes
        Optional span attributes.

    Yields
    ------
    Span
        The started span.
    """
    base_attrs: dict[str, object] = {"cpg_schema.stage": stage}
    if attributes:
        base_attrs.update(attributes)
    tracer = get_tracer(scope_name)
    start = time.monotonic()
    status = "ok"
    with tracer.start_as_current_span(name, attributes=normalize_attributes(base_attrs)) as span:
        try:
            yield span
        except Exception as exc:
            status = "error"
            record_exception(span, exc)
            raise
        finally:
            duration_s = time.monotonic() - start
            span.set_attribute("duration_s", duration_s)
            span.set_attribute("status", status)
            logger.debug("Stage %s finished status=%s duration_s=%.6f", stage, status, duration_s)


__all__ = ["get_tracer", "normalize_attributes", "record_exception", "stage_span"]
