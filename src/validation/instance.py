"""Candidate instance graphs submitted for validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import msgspec

from serde_msgspec import StructBaseCompat, loads_json, loads_msgpack
from validation.violations import NodeId


class NodeInstance(StructBaseCompat):
    """A node of a candidate graph: id, node type name and property values."""

    id: int | str
    node_type: str
    properties: dict[str, Any] = msgspec.field(default_factory=dict)


class EdgeInstance(StructBaseCompat):
    """A directed edge of a candidate graph."""

    edge_type: str
    source: int | str
    target: int | str


class InstanceGraph(StructBaseCompat):
    """Nodes and edges of a candidate graph, in submission order."""

    nodes: tuple[NodeInstance, ...] = ()
    edges: tuple[EdgeInstance, ...] = ()


def graph_from_json(buf: bytes | str) -> InstanceGraph:
    """Decode an instance graph from JSON.

    Returns
    -------
    InstanceGraph
        Decoded graph.
    """
    return loads_json(buf, target_type=InstanceGraph)


def graph_from_msgpack(buf: bytes) -> InstanceGraph:
    """Decode an instance graph from MessagePack.

    Returns
    -------
    InstanceGraph
        Decoded graph.
    """
    return loads_msgpack(buf, target_type=InstanceGraph)


@dataclass
class InstanceGraphBuilder:
    """Accumulate nodes and edges and produce an ``InstanceGraph``.

    Node ids are assigned sequentially unless given explicitly.
    """

    _nodes: list[NodeInstance] = field(default_factory=list)
    _edges: list[EdgeInstance] = field(default_factory=list)
    _next_id: int = 0

    def add_node(
        self,
        node_type: str,
        *,
        node_id: NodeId | None = None,
        **properties: Any,
    ) -> NodeId:
        """Add a node.

        Returns
        -------
        NodeId
            Id of the added node.
        """
        if node_id is None:
            node_id = self._next_id
            self._next_id += 1
        elif isinstance(node_id, int) and node_id >= self._next_id:
            self._next_id = node_id + 1
        self._nodes.append(NodeInstance(id=node_id, node_type=node_type, properties=properties))
        return node_id

    def add_edge(self, edge_type: str, source: NodeId, target: NodeId) -> EdgeInstance:
        """Add a directed edge.

        Returns
        -------
        EdgeInstance
            The added edge.
        """
        edge = EdgeInstance(edge_type=edge_type, source=source, target=target)
        self._edges.append(edge)
        return edge

    def build(self) -> InstanceGraph:
        """Return the accumulated graph.

        Returns
        -------
        InstanceGraph
            Graph with nodes and edges in insertion order.
        """
        return InstanceGraph(nodes=tuple(self._nodes), edges=tuple(self._edges))


__all__ = [
    "EdgeInstance",
    "InstanceGraph",
    "InstanceGraphBuilder",
    "NodeInstance",
    "graph_from_json",
    "graph_from_msgpack",
]
