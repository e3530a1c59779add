"""Tests for trace-correlated logging and stage spans."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator

import pytest

from cpg_schema import CompiledSchema
from obs.logging import configure_logging
from obs.scopes import SCOPE_VALIDATION
from obs.tracing import normalize_attributes, stage_span
from validation import InstanceGraph, validate

_LOGGER_NAMES = ("cpg_schema", "validation", "obs")


@pytest.fixture
def stream() -> Iterator[io.StringIO]:
    buffer = io.StringIO()
    yield buffer
    for name in _LOGGER_NAMES:
        package_logger = logging.getLogger(name)
        for handler in list(package_logger.handlers):
            if getattr(handler, "_cpg_schema_handler", False):
                package_logger.removeHandler(handler)
        package_logger.setLevel(logging.NOTSET)


def test_configure_logging_replaces_handler(stream: io.StringIO) -> None:
    """Install exactly one handler across repeated calls."""
    configure_logging(handler=logging.StreamHandler(io.StringIO()))
    installed = configure_logging(handler=logging.StreamHandler(stream))
    for name in _LOGGER_NAMES:
        handlers = logging.getLogger(name).handlers
        assert handlers.count(installed) == 1
        assert sum(getattr(item, "_cpg_schema_handler", False) for item in handlers) == 1


def test_records_without_span_have_empty_trace_ids(
    stream: io.StringIO,
    sample_schema: CompiledSchema,
) -> None:
    """Log validation summaries with empty trace fields outside a span."""
    configure_logging(logging.INFO, handler=logging.StreamHandler(stream))
    validate(InstanceGraph(), sample_schema)
    output = stream.getvalue()
    assert "trace_id=None span_id=None" in output
    assert "Validated 0 nodes and 0 edges against sample" in output


def test_normalize_attributes() -> None:
    """Keep primitive attributes, stringify others and drop ``None``."""
    attributes = normalize_attributes(
        {"count": 3, "ok": True, "scope": SCOPE_VALIDATION, "missing": None, "ids": (1, 2)}
    )
    assert attributes == {
        "count": 3,
        "ok": True,
        "scope": "cpg_schema.validation",
        "ids": "(1, 2)",
    }


def test_stage_span_propagates_errors() -> None:
    """Re-raise errors raised inside a stage span."""
    with (
        pytest.raises(ValueError, match="boom"),
        stage_span("cpg_schema.test", stage="test", scope_name=SCOPE_VALIDATION),
    ):
        msg = "boom"
        raise ValueError(msg)
