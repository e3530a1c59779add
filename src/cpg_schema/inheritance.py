"""Inheritance resolution over the node type ``extends`` DAG.

The relation is held in a rustworkx graph with one edge per ``extends``
declaration, pointing from the subtype to its base type. Graph queries
are then answered by rustworkx; this module only maps node indices back
to type names and applies declaration order as the tie-break.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import rustworkx as rx

from cpg_schema.errors import CyclicInheritanceError, PropertyConflictError
from cpg_schema.properties import PropertySpec


def _unit_cost(_edge: object) -> float:
    return 1.0


@dataclass(frozen=True)
class InheritanceGraph:
    """Rustworkx graph of the ``extends`` relation plus lookup indices."""

    graph: rx.PyDiGraph
    type_idx: Mapping[str, int]
    declaration_order: Mapping[str, int]

    @classmethod
    def from_parents(
        cls,
        parents: Mapping[str, Sequence[str]],
        declaration_order: Mapping[str, int] | None = None,
    ) -> InheritanceGraph:
        """Build the graph for a name-keyed parent mapping.

        Parameters
        ----------
        parents
            Mapping of type name to the names it extends. Parents missing from
            the keys are added as types without parents.
        declaration_order
            Rank of each type name; mapping order when omitted.

        Returns
        -------
        InheritanceGraph
            Graph with one node per type and one edge per ``extends``.
        """
        names = list(parents)
        for direct in parents.values():
            names.extend(parent for parent in direct if parent not in parents)
        names = list(dict.fromkeys(names))
        graph = rx.PyDiGraph(
            multigraph=False,
            check_cycle=False,
            node_count_hint=len(names),
            edge_count_hint=sum(len(direct) for direct in parents.values()),
        )
        indices = graph.add_nodes_from(names)
        type_idx = dict(zip(names, indices, strict=True))
        graph.add_edges_from_no_data(
            [
                (type_idx[child], type_idx[parent])
                for child, direct in parents.items()
                for parent in direct
            ]
        )
        if declaration_order is None:
            declaration_order = {name: rank for rank, name in enumerate(names)}
        return cls(graph=graph, type_idx=type_idx, declaration_order=declaration_order)

    def _rank(self, idx: int) -> tuple[int, str]:
        name = self.graph[idx]
        return (self.declaration_order.get(name, len(self.declaration_order)), name)

    def _names(self, indices: Iterable[int]) -> tuple[str, ...]:
        return tuple(self.graph[idx] for idx in indices)

    def find_cycle(self) -> tuple[str, ...] | None:
        """Return one ``extends`` cycle, or ``None`` for a DAG.

        The path starts and ends at the earliest declared member of the
        cycle, so the report is stable across runs. A self-loop is reported
        as ``(name, name)``.

        Returns
        -------
        tuple[str, ...] | None
            Cycle path in ``extends`` direction, or ``None``.
        """
        if rx.is_directed_acyclic_graph(self.graph):
            return None
        roots = sorted(self.graph.node_indices(), key=self._rank)
        for idx in roots:
            if self.graph.has_edge(idx, idx):
                return (self.graph[idx], self.graph[idx])
        for idx in roots:
            edges = list(rx.digraph_find_cycle(self.graph, source=idx))
            if edges:
                return self._cycle_path(edges)
        return None

    def _cycle_path(self, edges: Sequence[tuple[int, int]]) -> tuple[str, ...]:
        successor = dict(edges)
        walked: list[int] = []
        current = edges[0][0]
        while current not in walked:
            walked.append(current)
            current = successor[current]
        cycle = walked[walked.index(current) :]
        first = min(range(len(cycle)), key=lambda position: self._rank(cycle[position]))
        ordered = cycle[first:] + cycle[:first]
        return self._names([*ordered, ordered[0]])

    def ensure_acyclic(self) -> None:
        """Raise when the ``extends`` relation contains a cycle.

        Raises
        ------
        CyclicInheritanceError
            Raised for any cycle, including self-loops.
        """
        cycle = self.find_cycle()
        if cycle is not None:
            raise CyclicInheritanceError(cycle)

    def ancestors(self, name: str) -> tuple[str, ...]:
        """Return transitive ancestors, nearest first.

        Ancestors are ranked by their shortest distance from ``name``; ties are
        broken by declaration order. Assumes the relation is acyclic.

        Returns
        -------
        tuple[str, ...]
            Ancestor names, excluding ``name`` itself.
        """
        idx = self.type_idx[name]
        reachable = rx.descendants(self.graph, idx)
        depth = dict(
            rx.digraph_dijkstra_shortest_path_lengths(self.graph, idx, _unit_cost).items()
        )
        return self._names(
            sorted(reachable, key=lambda item: (depth.get(item, 0.0), self._rank(item)))
        )

    def subtypes(self, name: str) -> tuple[str, ...]:
        """Return ``name`` and all of its transitive subtypes.

        Returns
        -------
        tuple[str, ...]
            ``name`` first, then its subtypes in declaration order.
        """
        idx = self.type_idx[name]
        below = sorted(rx.ancestors(self.graph, idx), key=self._rank)
        return self._names([idx, *below])


@dataclass(frozen=True)
class EffectiveProperty:
    """A property in a type's effective set with the type that contributed it."""

    spec: PropertySpec
    declared_by: str


def resolve_effective_properties(
    name: str,
    own_properties: Mapping[str, Sequence[PropertySpec]],
    ancestors: Sequence[str],
) -> tuple[EffectiveProperty, ...]:
    """Return the deduplicated union of own and inherited properties.

    Own properties come first, followed by each ancestor's own properties in
    ancestor order. A property reached through several paths appears once.

    Returns
    -------
    tuple[EffectiveProperty, ...]
        Effective properties in resolution order.

    Raises
    ------
    PropertyConflictError
        Raised when one name resolves to different value types or cardinalities.
    """
    resolved: dict[str, EffectiveProperty] = {}
    for owner in (name, *ancestors):
        for spec in own_properties.get(owner, ()):
            known = resolved.get(spec.name)
            if known is None:
                resolved[spec.name] = EffectiveProperty(spec=spec, declared_by=owner)
                continue
            if (
                known.spec.value_type is not spec.value_type
                or known.spec.cardinality is not spec.cardinality
            ):
                msg = (
                    f"Property {spec.name!r} of {name!r} is "
                    f"{known.spec.value_type.value}/{known.spec.cardinality.value} via "
                    f"{known.declared_by!r} but {spec.value_type.value}/"
                    f"{spec.cardinality.value} via {owner!r}."
                )
                raise PropertyConflictError(msg, element=spec.name)
    return tuple(resolved.values())


__all__ = [
    "EffectiveProperty",
    "InheritanceGraph",
    "resolve_effective_properties",
]
