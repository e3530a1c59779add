"""Enum definitions shared by the schema registries and the compiled schema."""

from __future__ import annotations

from enum import StrEnum


class ValueType(StrEnum):
    """Value types a property or constant may carry."""

    BOOLEAN = "boolean"
    STRING = "string"
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    CHAR = "char"


class Cardinality(StrEnum):
    """Bound on the number of values or edges at one endpoint."""

    ZERO_OR_ONE = "zero_or_one"
    ONE = "one"
    LIST = "list"

    @property
    def restrictiveness(self) -> int:
        """Return a rank where lower values are more restrictive.

        Returns
        -------
        int
            ``0`` for ``ONE``, ``1`` for ``ZERO_OR_ONE``, ``2`` for ``LIST``.
        """
        return _RESTRICTIVENESS[self]

    def admits(self, count: int) -> bool:
        """Return whether ``count`` edges satisfy this bound.

        Returns
        -------
        bool
            ``True`` when the count is within the bound.
        """
        if self is Cardinality.ONE:
            return count == 1
        if self is Cardinality.ZERO_OR_ONE:
            return count <= 1
        return True


_RESTRICTIVENESS: dict[Cardinality, int] = {
    Cardinality.ONE: 0,
    Cardinality.ZERO_OR_ONE: 1,
    Cardinality.LIST: 2,
}


class Direction(StrEnum):
    """Edge direction relative to a node."""

    OUT = "out"
    IN = "in"


class SchemaState(StrEnum):
    """Lifecycle states of a declaration session."""

    DECLARED = "declared"
    RESOLVING = "resolving"
    COMPILED = "compiled"
    FROZEN = "frozen"


class CardinalityPolicy(StrEnum):
    """Reconciliation policy for rules declared more than once for one triple."""

    MOST_RESTRICTIVE = "most_restrictive"
    LAST_DECLARED = "last_declared"


class ProtoIdScope(StrEnum):
    """Namespace in which protocol ids must be unique."""

    SCHEMA = "schema"
    KIND = "kind"


class ElementKind(StrEnum):
    """Kinds of declared schema elements."""

    PROPERTY = "property"
    NODE_TYPE = "node_type"
    EDGE_TYPE = "edge_type"
    CONSTANT = "constant"


__all__ = [
    "Cardinality",
    "CardinalityPolicy",
    "Direction",
    "ElementKind",
    "ProtoIdScope",
    "SchemaState",
    "ValueType",
]
