"""Canonical OpenTelemetry instrumentation scopes."""

from __future__ import annotations

from enum import StrEnum


class ScopeName(StrEnum):
    """Instrumentation scope names."""

    COMPILER = "cpg_schema.compiler"
    DESCRIPTOR = "cpg_schema.descriptor"
    VALIDATION = "cpg_schema.validation"


SCOPE_COMPILER = ScopeName.COMPILER
SCOPE_DESCRIPTOR = ScopeName.DESCRIPTOR
SCOPE_VALIDATION = ScopeName.VALIDATION

__all__ = ["SCOPE_COMPILER", "SCOPE_DESCRIPTOR", "SCOPE_VALIDATION", "ScopeName"]
