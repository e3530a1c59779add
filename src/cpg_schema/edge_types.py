"""Edge type declarations, edge rules, and cardinality reconciliation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cpg_schema.enums import Cardinality, CardinalityPolicy
from cpg_schema.errors import DuplicateNameError
from cpg_schema.session import DeclarationSession
from utils.registry_protocol import MutableRegistry

if TYPE_CHECKING:
    from cpg_schema.node_types import NodeTypeRef

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class EdgeTypeDecl:
    """Mutable declaration handle for an edge type."""

    name: str
    declaration_index: int
    comment: str = ""
    proto_id_value: int | None = None
    _session: DeclarationSession = field(default_factory=DeclarationSession, repr=False)

    def proto_id(self, value: int) -> EdgeTypeDecl:
        """Assign the protocol id.

        Returns
        -------
        EdgeTypeDecl
            This handle.
        """
        self._session.ensure_mutable(f"change edge type {self.name}")
        self.proto_id_value = value
        return self


@dataclass(frozen=True)
class EdgeRuleDecl:
    """One declared (edge, source, target) pair with its endpoint bounds."""

    edge: EdgeTypeDecl | str
    source: NodeTypeRef
    target: NodeTypeRef
    cardinality_out: Cardinality = Cardinality.LIST
    cardinality_in: Cardinality = Cardinality.LIST
    step_name_out: str | None = None
    step_name_out_doc: str = ""
    step_name_in: str | None = None
    step_name_in_doc: str = ""
    sequence: int = 0


@dataclass(frozen=True)
class ResolvedRule:
    """Reconciled bounds for one concrete (edge, source, target) triple."""

    edge: str
    source: str
    target: str
    cardinality_out: Cardinality
    cardinality_in: Cardinality
    step_name_out: str | None = None
    step_name_out_doc: str = ""
    step_name_in: str | None = None
    step_name_in_doc: str = ""


@dataclass(frozen=True)
class RuleOccurrence:
    """A declared rule applied to one concrete triple."""

    edge: str
    source: str
    target: str
    rule: EdgeRuleDecl


def _pick(current: Cardinality, candidate: Cardinality, policy: CardinalityPolicy) -> Cardinality:
    if policy is CardinalityPolicy.LAST_DECLARED:
        return candidate
    if candidate.restrictiveness < current.restrictiveness:
        return candidate
    return current


def reconcile_rules(
    occurrences: Iterable[RuleOccurrence],
    *,
    policy: CardinalityPolicy = CardinalityPolicy.MOST_RESTRICTIVE,
) -> dict[tuple[str, str, str], ResolvedRule]:
    """Merge rule occurrences that share a concrete triple.

    Occurrences are folded in declaration order. Cardinalities are merged per
    direction according to ``policy``; step names keep the first non-empty
    declaration.

    Parameters
    ----------
    occurrences
        Rule occurrences keyed by concrete (edge, source, target) names.
    policy
        Reconciliation policy for conflicting cardinalities.

    Returns
    -------
    dict[tuple[str, str, str], ResolvedRule]
        Resolved rules keyed by (edge, source, target), in first-seen order.
    """
    resolved: dict[tuple[str, str, str], ResolvedRule] = {}
    for occurrence in sorted(occurrences, key=lambda item: item.rule.sequence):
        key = (occurrence.edge, occurrence.source, occurrence.target)
        rule = occurrence.rule
        current = resolved.get(key)
        if current is None:
            resolved[key] = ResolvedRule(
                edge=occurrence.edge,
                source=occurrence.source,
                target=occurrence.target,
                cardinality_out=rule.cardinality_out,
                cardinality_in=rule.cardinality_in,
                step_name_out=rule.step_name_out,
                step_name_out_doc=rule.step_name_out_doc,
                step_name_in=rule.step_name_in,
                step_name_in_doc=rule.step_name_in_doc,
            )
            continue
        cardinality_out = _pick(current.cardinality_out, rule.cardinality_out, policy)
        cardinality_in = _pick(current.cardinality_in, rule.cardinality_in, policy)
        if (cardinality_out, cardinality_in) != (current.cardinality_out, current.cardinality_in):
            logger.debug(
                "Reconciled %s %s->%s to out=%s in=%s (%s)",
                occurrence.edge,
                occurrence.source,
                occurrence.target,
                cardinality_out.value,
                cardinality_in.value,
                policy.value,
            )
        step_out_keep = current.step_name_out is not None
        step_in_keep = current.step_name_in is not None
        resolved[key] = ResolvedRule(
            edge=current.edge,
            source=current.source,
            target=current.target,
            cardinality_out=cardinality_out,
            cardinality_in=cardinality_in,
            step_name_out=current.step_name_out if step_out_keep else rule.step_name_out,
            step_name_out_doc=(
                current.step_name_out_doc if step_out_keep else rule.step_name_out_doc
            ),
            step_name_in=current.step_name_in if step_in_keep else rule.step_name_in,
            step_name_in_doc=current.step_name_in_doc if step_in_keep else rule.step_name_in_doc,
        )
    return resolved


@dataclass
class EdgeTypeRegistry:
    """Registry of edge types and the additive list of edge rules."""

    session: DeclarationSession = field(default_factory=DeclarationSession)
    rules: list[EdgeRuleDecl] = field(default_factory=list)
    _entries: MutableRegistry[str, EdgeTypeDecl] = field(default_factory=MutableRegistry)

    def add_edge_type(self, name: str, *, comment: str = "") -> EdgeTypeDecl:
        """Declare an edge type.

        Returns
        -------
        EdgeTypeDecl
            Declaration handle.

        Raises
        ------
        DuplicateNameError
            Raised when the edge type is already declared.
        """
        self.session.ensure_mutable(f"add edge type {name}")
        if name in self._entries:
            msg = f"Edge type {name!r} is already declared."
            raise DuplicateNameError(msg, element=name)
        decl = EdgeTypeDecl(
            name=name,
            declaration_index=self.session.next_sequence(),
            comment=comment,
            _session=self.session,
        )
        self._entries.register(name, decl)
        logger.debug("Declared edge type %s", name)
        return decl

    def add_out_edge(
        self,
        edge: EdgeTypeDecl | str,
        source: NodeTypeRef,
        target: NodeTypeRef,
        *,
        cardinality_out: Cardinality = Cardinality.LIST,
        cardinality_in: Cardinality = Cardinality.LIST,
        step_name_out: str | None = None,
        step_name_out_doc: str = "",
        step_name_in: str | None = None,
        step_name_in_doc: str = "",
    ) -> EdgeRuleDecl:
        """Declare one permitted (source, target) pair for an edge type.

        Endpoint and edge references are resolved when the schema compiles.

        Parameters
        ----------
        edge
            Edge type handle or name.
        source
            Source node type handle or name.
        target
            Target node type handle or name.
        cardinality_out
            Bound on outgoing edges of a source node towards ``target`` nodes.
        cardinality_in
            Bound on incoming edges of a target node from ``source`` nodes.
        step_name_out
            Traversal label from source to target.
        step_name_out_doc
            Documentation for ``step_name_out``.
        step_name_in
            Traversal label from target back to source.
        step_name_in_doc
            Documentation for ``step_name_in``.

        Returns
        -------
        EdgeRuleDecl
            The recorded rule.
        """
        self.session.ensure_mutable("add edge rule")
        rule = EdgeRuleDecl(
            edge=edge,
            source=source,
            target=target,
            cardinality_out=cardinality_out,
            cardinality_in=cardinality_in,
            step_name_out=step_name_out,
            step_name_out_doc=step_name_out_doc,
            step_name_in=step_name_in,
            step_name_in_doc=step_name_in_doc,
            sequence=self.session.next_sequence(),
        )
        self.rules.append(rule)
        return rule

    def get(self, name: str) -> EdgeTypeDecl | None:
        """Return the edge type registered under ``name``.

        Returns
        -------
        EdgeTypeDecl | None
            Declaration, or ``None`` when missing.
        """
        return self._entries.get(name)

    def owns(self, ref: object) -> bool:
        """Return whether a handle or name refers to an edge type of this registry.

        Returns
        -------
        bool
            ``True`` when the reference resolves here.
        """
        if isinstance(ref, str):
            return ref in self._entries
        if not isinstance(ref, EdgeTypeDecl):
            return False
        return self._entries.get(ref.name) is ref

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[EdgeTypeDecl]:
        return self._entries.values()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "EdgeRuleDecl",
    "EdgeTypeDecl",
    "EdgeTypeRegistry",
    "ResolvedRule",
    "RuleOccurrence",
    "reconcile_rules",
]
