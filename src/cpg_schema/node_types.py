"""Node type declarations and the node type registry."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cpg_schema.enums import Cardinality
from cpg_schema.errors import DuplicateNameError
from cpg_schema.session import DeclarationSession
from utils.registry_protocol import MutableRegistry

if TYPE_CHECKING:
    from cpg_schema.edge_types import EdgeRuleDecl, EdgeTypeDecl, EdgeTypeRegistry
    from cpg_schema.properties import PropertyDecl, PropertySpec

logger = logging.getLogger(__name__)

type PropertyRef = PropertyDecl | PropertySpec | str
type NodeTypeRef = NodeTypeDecl | str


@dataclass(eq=False)
class NodeTypeDecl:
    """Mutable declaration handle for a node type or abstract base type."""

    name: str
    is_abstract: bool
    declaration_index: int
    comment: str = ""
    parents: list[NodeTypeRef] = field(default_factory=list)
    own_properties: list[PropertyRef] = field(default_factory=list)
    primary_key_refs: list[PropertyRef] = field(default_factory=list)
    alias: str | None = None
    proto_id_value: int | None = None
    _session: DeclarationSession = field(default_factory=DeclarationSession, repr=False)
    _edges: EdgeTypeRegistry | None = field(default=None, repr=False)

    def extendz(self, *parents: NodeTypeRef) -> NodeTypeDecl:
        """Add inheritance edges to one or more base types.

        Repeated calls are cumulative; a parent listed twice is recorded once.

        Returns
        -------
        NodeTypeDecl
            This handle.
        """
        self._session.ensure_mutable(f"extend node type {self.name}")
        for parent in parents:
            if not any(_same_ref(parent, known) for known in self.parents):
                self.parents.append(parent)
        return self

    def add_properties(self, *properties: PropertyRef) -> NodeTypeDecl:
        """Attach own properties.

        Returns
        -------
        NodeTypeDecl
            This handle.
        """
        self._session.ensure_mutable(f"add properties to {self.name}")
        self.own_properties.extend(properties)
        return self

    def primary_key(self, *properties: PropertyRef) -> NodeTypeDecl:
        """Record the properties whose value tuple is unique per instance.

        Returns
        -------
        NodeTypeDecl
            This handle.
        """
        self._session.ensure_mutable(f"set primary key of {self.name}")
        self.primary_key_refs = list(properties)
        return self

    def starter_name(self, alias: str) -> NodeTypeDecl:
        """Assign the alias used by consumers that address types by a short name.

        Returns
        -------
        NodeTypeDecl
            This handle.
        """
        self._session.ensure_mutable(f"set alias of {self.name}")
        self.alias = alias
        return self

    def proto_id(self, value: int) -> NodeTypeDecl:
        """Assign the protocol id.

        Returns
        -------
        NodeTypeDecl
            This handle.
        """
        self._session.ensure_mutable(f"change node type {self.name}")
        self.proto_id_value = value
        return self

    def add_out_edge(
        self,
        edge: EdgeTypeDecl | str,
        in_node: NodeTypeRef,
        *,
        cardinality_out: Cardinality = Cardinality.LIST,
        cardinality_in: Cardinality = Cardinality.LIST,
        step_name_out: str | None = None,
        step_name_out_doc: str = "",
        step_name_in: str | None = None,
        step_name_in_doc: str = "",
    ) -> NodeTypeDecl:
        """Declare that this type may link to ``in_node`` through ``edge``.

        Returns
        -------
        NodeTypeDecl
            This handle, so several rules can be chained.

        Raises
        ------
        RuntimeError
            Raised when the handle is not attached to an edge registry.
        """
        if self._edges is None:
            msg = f"Node type {self.name!r} is not attached to an edge registry."
            raise RuntimeError(msg)
        self._edges.add_out_edge(
            edge,
            self,
            in_node,
            cardinality_out=cardinality_out,
            cardinality_in=cardinality_in,
            step_name_out=step_name_out,
            step_name_out_doc=step_name_out_doc,
            step_name_in=step_name_in,
            step_name_in_doc=step_name_in_doc,
        )
        return self

    def rules(self) -> tuple[EdgeRuleDecl, ...]:
        """Return the edge rules declared with this type as source.

        Returns
        -------
        tuple[EdgeRuleDecl, ...]
            Rules in declaration order.
        """
        if self._edges is None:
            return ()
        return tuple(rule for rule in self._edges.rules if rule.source is self)


def _same_ref(left: object, right: object) -> bool:
    if isinstance(left, str) or isinstance(right, str):
        return ref_name(left) == ref_name(right)
    return left is right


def ref_name(ref: object) -> str:
    """Return the declared name behind a handle or name reference.

    Returns
    -------
    str
        Referenced name.
    """
    if isinstance(ref, str):
        return ref
    return str(getattr(ref, "name", ref))


@dataclass
class NodeTypeRegistry:
    """Registry of node types and abstract base types in declaration order."""

    session: DeclarationSession = field(default_factory=DeclarationSession)
    edges: EdgeTypeRegistry | None = None
    _entries: MutableRegistry[str, NodeTypeDecl] = field(default_factory=MutableRegistry)

    def add_base_type(self, name: str, *, comment: str = "") -> NodeTypeDecl:
        """Declare an abstract base type.

        Returns
        -------
        NodeTypeDecl
            Declaration handle.
        """
        return self._add(name, comment=comment, is_abstract=True)

    def add_node_type(self, name: str, *, comment: str = "") -> NodeTypeDecl:
        """Declare a concrete node type.

        Returns
        -------
        NodeTypeDecl
            Declaration handle.
        """
        return self._add(name, comment=comment, is_abstract=False)

    def _add(self, name: str, *, comment: str, is_abstract: bool) -> NodeTypeDecl:
        kind = "base type" if is_abstract else "node type"
        self.session.ensure_mutable(f"add {kind} {name}")
        if name in self._entries:
            msg = f"Node type {name!r} is already declared."
            raise DuplicateNameError(msg, element=name)
        decl = NodeTypeDecl(
            name=name,
            is_abstract=is_abstract,
            declaration_index=self.session.next_sequence(),
            comment=comment,
            _session=self.session,
            _edges=self.edges,
        )
        self._entries.register(name, decl)
        logger.debug("Declared %s %s", kind, name)
        return decl

    def get(self, name: str) -> NodeTypeDecl | None:
        """Return the declaration registered under ``name``.

        Returns
        -------
        NodeTypeDecl | None
            Declaration, or ``None`` when missing.
        """
        return self._entries.get(name)

    def owns(self, ref: object) -> bool:
        """Return whether a handle or name refers to a type of this registry.

        Returns
        -------
        bool
            ``True`` when the reference resolves here.
        """
        if isinstance(ref, str):
            return ref in self._entries
        return self._entries.get(ref_name(ref)) is ref

    def base_types(self) -> tuple[NodeTypeDecl, ...]:
        """Return abstract base types in declaration order.

        Returns
        -------
        tuple[NodeTypeDecl, ...]
            Base type declarations.
        """
        return tuple(decl for decl in self._entries.values() if decl.is_abstract)

    def node_types(self) -> tuple[NodeTypeDecl, ...]:
        """Return concrete node types in declaration order.

        Returns
        -------
        tuple[NodeTypeDecl, ...]
            Node type declarations.
        """
        return tuple(decl for decl in self._entries.values() if not decl.is_abstract)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[NodeTypeDecl]:
        return self._entries.values()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "NodeTypeDecl",
    "NodeTypeRef",
    "NodeTypeRegistry",
    "PropertyRef",
    "ref_name",
]
