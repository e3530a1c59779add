"""Immutable compiled schema and its record types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from cpg_schema.enums import Cardinality, Direction, ElementKind, ValueType
from cpg_schema.properties import ScalarValue
from serde_msgspec import StructBaseStrict
from utils.hashing import hash_msgpack_canonical


class PropertyInfo(StructBaseStrict):
    """Compiled property definition."""

    property_id: int
    name: str
    value_type: ValueType
    cardinality: Cardinality = Cardinality.ZERO_OR_ONE
    default: ScalarValue | None = None
    comment: str = ""
    proto_id: int | None = None

    @property
    def mandatory(self) -> bool:
        """Return whether instances must carry a value."""
        return self.cardinality is Cardinality.ONE

    @property
    def is_list(self) -> bool:
        """Return whether the property holds an ordered sequence."""
        return self.cardinality is Cardinality.LIST


class PropertySlot(StructBaseStrict):
    """Position of a property in a node type's effective property list."""

    offset: int
    name: str
    property_id: int
    declared_by: str


class NodeTypeInfo(StructBaseStrict):
    """Compiled node type with its resolved inheritance and properties."""

    type_id: int
    name: str
    is_abstract: bool = False
    comment: str = ""
    proto_id: int | None = None
    alias: str | None = None
    parents: tuple[str, ...] = ()
    ancestors: tuple[str, ...] = ()
    own_properties: tuple[str, ...] = ()
    properties: tuple[PropertySlot, ...] = ()
    primary_key: tuple[str, ...] = ()

    def slot(self, name: str) -> PropertySlot | None:
        """Return the slot holding property ``name``.

        Returns
        -------
        PropertySlot | None
            Slot, or ``None`` when the property is not in the effective set.
        """
        for slot in self.properties:
            if slot.name == name:
                return slot
        return None


class EdgeTypeInfo(StructBaseStrict):
    """Compiled edge type."""

    edge_type_id: int
    name: str
    comment: str = ""
    proto_id: int | None = None


class NeighborRule(StructBaseStrict):
    """Neighbour type with the bound on edges towards it.

    In ``AdjacencyEntry.neighbors`` the type is a permitted concrete neighbour
    and the cardinality is the tightest bound of the rules covering it. In
    ``AdjacencyEntry.bounds`` the type is the neighbour type a rule was
    declared with, possibly a base type, and the bound applies to the edges
    towards all of its concrete subtypes together.
    """

    type_id: int
    cardinality: Cardinality = Cardinality.LIST
    step_name: str | None = None
    step_name_doc: str = ""


class AdjacencyEntry(StructBaseStrict):
    """Permitted neighbours and counted bounds for one (node type, edge type, direction)."""

    type_id: int
    edge_type_id: int
    direction: Direction
    neighbors: tuple[NeighborRule, ...] = ()
    bounds: tuple[NeighborRule, ...] = ()

    def rule_for(self, neighbor_type_id: int) -> NeighborRule | None:
        """Return the rule for a neighbour type.

        Returns
        -------
        NeighborRule | None
            Rule, or ``None`` when the neighbour type is not permitted.
        """
        for rule in self.neighbors:
            if rule.type_id == neighbor_type_id:
                return rule
        return None

    def bound_for(self, declared_type_id: int) -> NeighborRule | None:
        """Return the counted bound declared against a neighbour type.

        Returns
        -------
        NeighborRule | None
            Bound, or ``None`` when edges towards that type are unbounded.
        """
        for rule in self.bounds:
            if rule.type_id == declared_type_id:
                return rule
        return None


class ConstantInfo(StructBaseStrict):
    """Compiled named constant."""

    category: str
    name: str
    value: ScalarValue
    value_type: ValueType = ValueType.STRING
    comment: str = ""
    proto_id: int | None = None


class LayerInfo(StructBaseStrict):
    """Schema layer metadata."""

    name: str
    doc_index: int = 0
    description: str = ""
    provided_by_frontend: bool = False


class ProtoIdEntry(StructBaseStrict):
    """Declared protocol id of one schema element."""

    proto_id: int
    kind: ElementKind
    name: str


type NodeTypeKey = str | int
type EdgeTypeKey = str | int
AdjacencyKey = tuple[int, int, Direction]


def _proxy[K, V](entries: dict[K, V]) -> Mapping[K, V]:
    return MappingProxyType(entries)


@dataclass(frozen=True)
class CompiledSchema:
    """Immutable result of compiling a schema declaration session.

    Records are stored sorted by id. Lookup indices and the content fingerprint
    are derived on construction, so two schemas built from the same records
    compare equal and share a fingerprint.
    """

    name: str
    version: str
    properties: tuple[PropertyInfo, ...] = ()
    node_types: tuple[NodeTypeInfo, ...] = ()
    edge_types: tuple[EdgeTypeInfo, ...] = ()
    adjacency: tuple[AdjacencyEntry, ...] = ()
    constants: tuple[ConstantInfo, ...] = ()
    layers: tuple[LayerInfo, ...] = ()
    fingerprint: str = field(init=False, compare=False)
    _properties_by_name: Mapping[str, PropertyInfo] = field(
        init=False, repr=False, compare=False
    )
    _nodes_by_id: Mapping[int, NodeTypeInfo] = field(init=False, repr=False, compare=False)
    _nodes_by_name: Mapping[str, NodeTypeInfo] = field(init=False, repr=False, compare=False)
    _edges_by_id: Mapping[int, EdgeTypeInfo] = field(init=False, repr=False, compare=False)
    _edges_by_name: Mapping[str, EdgeTypeInfo] = field(init=False, repr=False, compare=False)
    _adjacency_by_key: Mapping[AdjacencyKey, AdjacencyEntry] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        nodes_by_name: dict[str, NodeTypeInfo] = {}
        for info in self.node_types:
            nodes_by_name[info.name] = info
            if info.alias is not None:
                nodes_by_name.setdefault(info.alias, info)
        object.__setattr__(
            self,
            "_properties_by_name",
            _proxy({info.name: info for info in self.properties}),
        )
        object.__setattr__(
            self, "_nodes_by_id", _proxy({info.type_id: info for info in self.node_types})
        )
        object.__setattr__(self, "_nodes_by_name", _proxy(nodes_by_name))
        object.__setattr__(
            self, "_edges_by_id", _proxy({info.edge_type_id: info for info in self.edge_types})
        )
        object.__setattr__(
            self, "_edges_by_name", _proxy({info.name: info for info in self.edge_types})
        )
        object.__setattr__(
            self,
            "_adjacency_by_key",
            _proxy(
                {
                    (entry.type_id, entry.edge_type_id, entry.direction): entry
                    for entry in self.adjacency
                }
            ),
        )
        object.__setattr__(self, "fingerprint", hash_msgpack_canonical(self.payload()))

    def payload(self) -> dict[str, object]:
        """Return the canonical content used for fingerprinting.

        Returns
        -------
        dict[str, object]
            Schema content keyed by section.
        """
        return {
            "name": self.name,
            "version": self.version,
            "properties": self.properties,
            "node_types": self.node_types,
            "edge_types": self.edge_types,
            "adjacency": self.adjacency,
            "constants": self.constants,
            "layers": self.layers,
        }

    def find_node_type(self, key: NodeTypeKey) -> NodeTypeInfo | None:
        """Return a node type by name, alias or id, or ``None`` when unknown.

        Returns
        -------
        NodeTypeInfo | None
            Node type, or ``None``.
        """
        if isinstance(key, int):
            return self._nodes_by_id.get(key)
        return self._nodes_by_name.get(key)

    def node_type(self, key: NodeTypeKey) -> NodeTypeInfo:
        """Return a node type by name, alias or id.

        Returns
        -------
        NodeTypeInfo
            Node type.

        Raises
        ------
        KeyError
            Raised when the node type is unknown.
        """
        info = self.find_node_type(key)
        if info is None:
            msg = f"Unknown node type: {key!r}."
            raise KeyError(msg)
        return info

    def type_id(self, name: str) -> int:
        """Return the id of a node type.

        Returns
        -------
        int
            Node type id.
        """
        return self.node_type(name).type_id

    def type_name(self, type_id: int) -> str:
        """Return the name of a node type id.

        Returns
        -------
        str
            Node type name.
        """
        return self.node_type(type_id).name

    def find_edge_type(self, key: EdgeTypeKey) -> EdgeTypeInfo | None:
        """Return an edge type by name or id, or ``None`` when unknown.

        Returns
        -------
        EdgeTypeInfo | None
            Edge type, or ``None``.
        """
        if isinstance(key, int):
            return self._edges_by_id.get(key)
        return self._edges_by_name.get(key)

    def edge_type(self, key: EdgeTypeKey) -> EdgeTypeInfo:
        """Return an edge type by name or id.

        Returns
        -------
        EdgeTypeInfo
            Edge type.

        Raises
        ------
        KeyError
            Raised when the edge type is unknown.
        """
        info = self.find_edge_type(key)
        if info is None:
            msg = f"Unknown edge type: {key!r}."
            raise KeyError(msg)
        return info

    def find_property(self, name: str) -> PropertyInfo | None:
        """Return a property by name, or ``None`` when unknown.

        Returns
        -------
        PropertyInfo | None
            Property, or ``None``.
        """
        return self._properties_by_name.get(name)

    def property(self, name: str) -> PropertyInfo:
        """Return a property by name.

        Returns
        -------
        PropertyInfo
            Property.

        Raises
        ------
        KeyError
            Raised when the property is unknown.
        """
        info = self.find_property(name)
        if info is None:
            msg = f"Unknown property: {name!r}."
            raise KeyError(msg)
        return info

    def properties_of(self, key: NodeTypeKey) -> tuple[PropertyInfo, ...]:
        """Return a node type's effective properties in offset order.

        Returns
        -------
        tuple[PropertyInfo, ...]
            Property definitions.
        """
        info = self.node_type(key)
        return tuple(self._properties_by_name[slot.name] for slot in info.properties)

    def adjacency_entry(
        self,
        node_type: NodeTypeKey,
        edge_type: EdgeTypeKey,
        direction: Direction,
    ) -> AdjacencyEntry | None:
        """Return the adjacency entry for a (node type, edge type, direction).

        Returns
        -------
        AdjacencyEntry | None
            Entry, or ``None`` when no edge of that type is permitted.
        """
        node = self.find_node_type(node_type)
        edge = self.find_edge_type(edge_type)
        if node is None or edge is None:
            return None
        return self._adjacency_by_key.get((node.type_id, edge.edge_type_id, direction))

    def permitted_targets(
        self,
        source: NodeTypeKey,
        edge_type: EdgeTypeKey,
    ) -> tuple[NeighborRule, ...]:
        """Return the permitted target types of outgoing edges.

        Returns
        -------
        tuple[NeighborRule, ...]
            Target rules ordered by type id; empty when none are permitted.
        """
        entry = self.adjacency_entry(source, edge_type, Direction.OUT)
        return () if entry is None else entry.neighbors

    def proto_ids(self) -> tuple[ProtoIdEntry, ...]:
        """Return every declared protocol id.

        Returns
        -------
        tuple[ProtoIdEntry, ...]
            Entries ordered by protocol id, then kind.
        """
        entries: list[ProtoIdEntry] = []
        for prop in self.properties:
            if prop.proto_id is not None:
                entries.append(
                    ProtoIdEntry(proto_id=prop.proto_id, kind=ElementKind.PROPERTY, name=prop.name)
                )
        for node in self.node_types:
            if node.proto_id is not None:
                entries.append(
                    ProtoIdEntry(proto_id=node.proto_id, kind=ElementKind.NODE_TYPE, name=node.name)
                )
        for edge in self.edge_types:
            if edge.proto_id is not None:
                entries.append(
                    ProtoIdEntry(proto_id=edge.proto_id, kind=ElementKind.EDGE_TYPE, name=edge.name)
                )
        for constant in self.constants:
            if constant.proto_id is not None:
                entries.append(
                    ProtoIdEntry(
                        proto_id=constant.proto_id,
                        kind=ElementKind.CONSTANT,
                        name=f"{constant.category}.{constant.name}",
                    )
                )
        return tuple(sorted(entries, key=lambda item: (item.proto_id, item.kind.value, item.name)))

    def is_subtype(self, node_type: NodeTypeKey, base: NodeTypeKey) -> bool:
        """Return whether ``node_type`` is ``base`` or one of its descendants.

        Returns
        -------
        bool
            ``True`` for the reflexive-transitive subtype relation.
        """
        info = self.node_type(node_type)
        base_info = self.node_type(base)
        return info.name == base_info.name or base_info.name in info.ancestors

    def concrete_subtypes(self, base: NodeTypeKey) -> tuple[NodeTypeInfo, ...]:
        """Return the concrete node types that are ``base`` or derive from it.

        Returns
        -------
        tuple[NodeTypeInfo, ...]
            Concrete node types ordered by id.
        """
        base_info = self.node_type(base)
        return tuple(
            info
            for info in self.node_types
            if not info.is_abstract
            and (info.name == base_info.name or base_info.name in info.ancestors)
        )

    def constants_of(self, category: str) -> tuple[ConstantInfo, ...]:
        """Return the constants of one category in declaration order.

        Returns
        -------
        tuple[ConstantInfo, ...]
            Constants.
        """
        return tuple(constant for constant in self.constants if constant.category == category)


__all__ = [
    "AdjacencyEntry",
    "CompiledSchema",
    "ConstantInfo",
    "EdgeTypeInfo",
    "LayerInfo",
    "NeighborRule",
    "NodeTypeInfo",
    "NodeTypeKey",
    "PropertyInfo",
    "PropertySlot",
    "ProtoIdEntry",
]
