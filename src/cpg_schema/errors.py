"""Schema declaration and compilation error types.

Every error raised while declaring or compiling a schema derives from
``SchemaError`` and carries a ``SchemaErrorKind`` tag. These errors are fatal:
compilation aborts and no partial schema is produced.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import ClassVar


class SchemaErrorKind(StrEnum):
    """Categorize schema errors."""

    DUPLICATE_PROPERTY = "DuplicateProperty"
    PROPERTY_CONFLICT = "PropertyConflict"
    CYCLIC_INHERITANCE = "CyclicInheritance"
    UNKNOWN_BASE_TYPE = "UnknownBaseType"
    UNKNOWN_EDGE_ENDPOINT_TYPE = "UnknownEdgeEndpointType"
    DUPLICATE_PROTO_ID = "DuplicateProtoId"
    SCHEMA_FROZEN = "SchemaFrozen"
    UNKNOWN_PROPERTY = "UnknownProperty"
    UNKNOWN_EDGE_TYPE = "UnknownEdgeType"
    DUPLICATE_NAME = "DuplicateName"
    INVALID_PRIMARY_KEY = "InvalidPrimaryKey"
    INVALID_VALUE = "InvalidValue"
    DESCRIPTOR = "Descriptor"


class SchemaError(Exception):
    """Base class for schema errors."""

    kind: ClassVar[SchemaErrorKind]

    def __init__(self, message: str, *, element: str | None = None) -> None:
        super().__init__(message)
        self.element = element


class DuplicatePropertyError(SchemaError, ValueError):
    """Raised when a property name is re-registered with a different definition."""

    kind = SchemaErrorKind.DUPLICATE_PROPERTY


class PropertyConflictError(SchemaError, ValueError):
    """Raised when one property name resolves to conflicting definitions."""

    kind = SchemaErrorKind.PROPERTY_CONFLICT


class CyclicInheritanceError(SchemaError, ValueError):
    """Raised when the ``extends`` relation contains a cycle."""

    kind = SchemaErrorKind.CYCLIC_INHERITANCE

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join(self.cycle)
        msg = f"Cyclic inheritance: {path}"
        super().__init__(msg, element=self.cycle[0] if self.cycle else None)


class UnknownBaseTypeError(SchemaError, LookupError):
    """Raised when a node type extends an undeclared or non-base type."""

    kind = SchemaErrorKind.UNKNOWN_BASE_TYPE


class UnknownEdgeEndpointTypeError(SchemaError, LookupError):
    """Raised when an edge rule references an undeclared node type."""

    kind = SchemaErrorKind.UNKNOWN_EDGE_ENDPOINT_TYPE


class DuplicateProtoIdError(SchemaError, ValueError):
    """Raised when two elements share a protocol id within its scope."""

    kind = SchemaErrorKind.DUPLICATE_PROTO_ID


class SchemaFrozenError(SchemaError, RuntimeError):
    """Raised when declarations change after compilation started."""

    kind = SchemaErrorKind.SCHEMA_FROZEN


class UnknownPropertyError(SchemaError, LookupError):
    """Raised when a node type references an unregistered property."""

    kind = SchemaErrorKind.UNKNOWN_PROPERTY


class UnknownEdgeTypeError(SchemaError, LookupError):
    """Raised when an edge rule references an undeclared edge type."""

    kind = SchemaErrorKind.UNKNOWN_EDGE_TYPE


class DuplicateNameError(SchemaError, ValueError):
    """Raised when a type, alias or constant name is declared twice."""

    kind = SchemaErrorKind.DUPLICATE_NAME


class InvalidPrimaryKeyError(SchemaError, ValueError):
    """Raised when a primary key names a property outside the effective set."""

    kind = SchemaErrorKind.INVALID_PRIMARY_KEY


class InvalidValueError(SchemaError, ValueError):
    """Raised when a default or constant value does not match its value type."""

    kind = SchemaErrorKind.INVALID_VALUE


class DescriptorError(SchemaError, ValueError):
    """Raised when a persisted schema descriptor cannot be decoded."""

    kind = SchemaErrorKind.DESCRIPTOR


__all__ = [
    "CyclicInheritanceError",
    "DescriptorError",
    "DuplicateNameError",
    "DuplicatePropertyError",
    "DuplicateProtoIdError",
    "InvalidPrimaryKeyError",
    "InvalidValueError",
    "PropertyConflictError",
    "SchemaError",
    "SchemaErrorKind",
    "SchemaFrozenError",
    "UnknownBaseTypeError",
    "UnknownEdgeEndpointTypeError",
    "UnknownEdgeTypeError",
    "UnknownPropertyError",
]
