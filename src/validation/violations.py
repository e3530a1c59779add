"""Violation records produced when validating an instance graph."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import overload

from cpg_schema.enums import Direction

type NodeId = int | str


class ViolationType(Enum):
    """Categorize instance graph violations."""

    DUPLICATE_NODE_ID = "duplicate_node_id"
    UNKNOWN_NODE_TYPE = "unknown_node_type"
    ABSTRACT_NODE_INSTANCE = "abstract_node_instance"
    MISSING_MANDATORY_PROPERTY = "missing_mandatory_property"
    WRONG_PROPERTY_TYPE = "wrong_property_type"
    UNKNOWN_PROPERTY = "unknown_property"
    PRIMARY_KEY_COLLISION = "primary_key_collision"
    UNKNOWN_EDGE_TYPE = "unknown_edge_type"
    DANGLING_EDGE = "dangling_edge"
    DISALLOWED_EDGE_ENDPOINT = "disallowed_edge_endpoint"
    CARDINALITY_VIOLATION = "cardinality_violation"


_TYPE_ORDER: dict[ViolationType, int] = {item: index for index, item in enumerate(ViolationType)}


def _id_key(node_id: NodeId | None) -> tuple[int, int, str]:
    if node_id is None:
        return (0, 0, "")
    if isinstance(node_id, int):
        return (1, node_id, "")
    return (2, 0, node_id)


@dataclass(frozen=True)
class ValidationViolation:
    """Single instance graph violation.

    ``node_id`` is the node the violation is reported on: the node itself for
    property checks, the first colliding node for primary keys, the source of
    an edge for edge checks and the counted endpoint for cardinality checks.
    """

    violation_type: ViolationType
    node_id: NodeId | None = None
    node_type: str | None = None
    property_name: str | None = None
    edge_type: str | None = None
    direction: Direction | None = None
    neighbor_type: str | None = None
    expected: str | None = None
    actual: str | None = None
    count: int | None = None
    related_ids: tuple[NodeId, ...] = ()

    def __str__(self) -> str:
        """Return a human-readable violation string.

        Returns
        -------
        str
            Description of the violation.
        """
        formatter = _VIOLATION_FORMATTERS.get(self.violation_type, _default_violation_message)
        return formatter(self)

    def sort_key(self) -> tuple[object, ...]:
        """Return the key giving violations a total, deterministic order.

        Returns
        -------
        tuple[object, ...]
            Sort key.
        """
        return (
            _TYPE_ORDER[self.violation_type],
            _id_key(self.node_id),
            self.node_type or "",
            self.property_name or "",
            self.edge_type or "",
            "" if self.direction is None else self.direction.value,
            self.neighbor_type or "",
            self.expected or "",
            self.actual or "",
            self.count or 0,
            tuple(_id_key(item) for item in self.related_ids),
        )


def _node_label(violation: ValidationViolation) -> str:
    if violation.node_type is None:
        return f"Node {violation.node_id!r}"
    return f"{violation.node_type} node {violation.node_id!r}"


def _default_violation_message(violation: ValidationViolation) -> str:
    return f"{violation.violation_type.value} on {_node_label(violation)}"


def _format_duplicate_node_id(violation: ValidationViolation) -> str:
    return f"Node id {violation.node_id!r} is used by {violation.count} nodes"


def _format_unknown_node_type(violation: ValidationViolation) -> str:
    return f"Node {violation.node_id!r} has unknown type {violation.actual!r}"


def _format_abstract_node_instance(violation: ValidationViolation) -> str:
    return f"Node {violation.node_id!r} is an instance of base type {violation.node_type!r}"


def _format_missing_mandatory(violation: ValidationViolation) -> str:
    return f"{_node_label(violation)} is missing mandatory property {violation.property_name!r}"


def _format_wrong_type(violation: ValidationViolation) -> str:
    return (
        f"{_node_label(violation)} property {violation.property_name!r}: "
        f"expected {violation.expected}, got {violation.actual}"
    )


def _format_unknown_property(violation: ValidationViolation) -> str:
    return f"{_node_label(violation)} carries undeclared property {violation.property_name!r}"


def _format_primary_key_collision(violation: ValidationViolation) -> str:
    others = ", ".join(repr(item) for item in violation.related_ids)
    return (
        f"{_node_label(violation)} shares primary key {violation.actual} "
        f"({violation.expected}) with {others}"
    )


def _format_unknown_edge_type(violation: ValidationViolation) -> str:
    return (
        f"Edge of unknown type {violation.edge_type!r} from {violation.node_id!r} "
        f"to {_related(violation)}"
    )


def _format_dangling_edge(violation: ValidationViolation) -> str:
    return (
        f"{violation.edge_type} edge from {violation.node_id!r} to {_related(violation)} "
        f"references missing node {violation.actual}"
    )


def _format_disallowed_endpoint(violation: ValidationViolation) -> str:
    return (
        f"{violation.edge_type} edge from {_node_label(violation)} to "
        f"{violation.neighbor_type} node {_related(violation)} is not permitted"
    )


def _format_cardinality(violation: ValidationViolation) -> str:
    direction = "outgoing" if violation.direction is Direction.OUT else "incoming"
    return (
        f"{_node_label(violation)} has {violation.count} {direction} {violation.edge_type} "
        f"edge(s) with {violation.neighbor_type}; expected {violation.expected}"
    )


def _related(violation: ValidationViolation) -> str:
    if not violation.related_ids:
        return "?"
    return repr(violation.related_ids[0])


_VIOLATION_FORMATTERS: dict[ViolationType, Callable[[ValidationViolation], str]] = {
    ViolationType.DUPLICATE_NODE_ID: _format_duplicate_node_id,
    ViolationType.UNKNOWN_NODE_TYPE: _format_unknown_node_type,
    ViolationType.ABSTRACT_NODE_INSTANCE: _format_abstract_node_instance,
    ViolationType.MISSING_MANDATORY_PROPERTY: _format_missing_mandatory,
    ViolationType.WRONG_PROPERTY_TYPE: _format_wrong_type,
    ViolationType.UNKNOWN_PROPERTY: _format_unknown_property,
    ViolationType.PRIMARY_KEY_COLLISION: _format_primary_key_collision,
    ViolationType.UNKNOWN_EDGE_TYPE: _format_unknown_edge_type,
    ViolationType.DANGLING_EDGE: _format_dangling_edge,
    ViolationType.DISALLOWED_EDGE_ENDPOINT: _format_disallowed_endpoint,
    ViolationType.CARDINALITY_VIOLATION: _format_cardinality,
}


@dataclass(frozen=True)
class ViolationList(Sequence[ValidationViolation]):
    """Ordered violations of one validation run.

    ``truncated`` is set when more than ``max_violations`` violations were
    found; the list then holds the first ``max_violations`` of them and later
    checks were skipped.
    """

    violations: tuple[ValidationViolation, ...] = ()
    truncated: bool = False

    @property
    def ok(self) -> bool:
        """Return whether the graph conforms to the schema."""
        return not self.violations

    def of_type(self, violation_type: ViolationType) -> tuple[ValidationViolation, ...]:
        """Return the violations of one type.

        Returns
        -------
        tuple[ValidationViolation, ...]
            Matching violations in list order.
        """
        return tuple(item for item in self.violations if item.violation_type is violation_type)

    def counts(self) -> dict[ViolationType, int]:
        """Return the number of violations per type.

        Returns
        -------
        dict[ViolationType, int]
            Counts keyed by violation type.
        """
        return dict(Counter(item.violation_type for item in self.violations))

    @overload
    def __getitem__(self, index: int) -> ValidationViolation: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[ValidationViolation, ...]: ...

    def __getitem__(
        self, index: int | slice
    ) -> ValidationViolation | tuple[ValidationViolation, ...]:
        return self.violations[index]

    def __iter__(self) -> Iterator[ValidationViolation]:
        return iter(self.violations)

    def __len__(self) -> int:
        return len(self.violations)


__all__ = ["NodeId", "ValidationViolation", "ViolationList", "ViolationType"]
