"""Schema compiler: resolves declarations into an immutable ``CompiledSchema``.

Stages run in a fixed order (properties, node types, edge types, edge rules,
constants, identifiers) and each stage is wrapped in a tracing span. Any
declaration error aborts compilation with a ``SchemaError`` subclass.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cpg_schema.compiled import (
    AdjacencyEntry,
    CompiledSchema,
    ConstantInfo,
    EdgeTypeInfo,
    LayerInfo,
    NeighborRule,
    NodeTypeInfo,
    PropertyInfo,
    PropertySlot,
)
from cpg_schema.config import SchemaSettings
from cpg_schema.constants import ConstantEntry, ConstantRegistry
from cpg_schema.edge_types import EdgeTypeRegistry, ResolvedRule, RuleOccurrence, reconcile_rules
from cpg_schema.enums import Cardinality, Direction, ElementKind, ProtoIdScope
from cpg_schema.errors import (
    DuplicateNameError,
    DuplicateProtoIdError,
    InvalidPrimaryKeyError,
    InvalidValueError,
    PropertyConflictError,
    UnknownBaseTypeError,
    UnknownEdgeEndpointTypeError,
    UnknownEdgeTypeError,
    UnknownPropertyError,
)
from cpg_schema.inheritance import (
    EffectiveProperty,
    InheritanceGraph,
    resolve_effective_properties,
)
from cpg_schema.node_types import NodeTypeDecl, NodeTypeRegistry, ref_name
from cpg_schema.properties import (
    PropertyDecl,
    PropertyRegistry,
    PropertySpec,
    value_matches_type,
)
from obs.scopes import SCOPE_COMPILER
from obs.tracing import stage_span

if TYPE_CHECKING:
    from opentelemetry.trace import Span

logger = logging.getLogger(__name__)

_DIRECTION_ORDER: dict[Direction, int] = {Direction.OUT: 0, Direction.IN: 1}


def _stage(stage: str) -> AbstractContextManager[Span]:
    return stage_span(f"cpg_schema.compile.{stage}", stage=stage, scope_name=SCOPE_COMPILER)


@dataclass(frozen=True)
class SchemaLayer:
    """Layer metadata recorded by a builder."""

    name: str
    doc_index: int = 0
    description: str = ""
    provided_by_frontend: bool = False


@dataclass(frozen=True)
class _ResolvedNode:
    decl: NodeTypeDecl
    parents: tuple[str, ...]
    ancestors: tuple[str, ...]
    own_properties: tuple[str, ...]
    effective: tuple[EffectiveProperty, ...]
    primary_key: tuple[str, ...]


@dataclass(frozen=True)
class _RuleTables:
    """Reconciled rules: concrete pairs, and bounds keyed by the declared neighbour.

    ``out_bounds`` pair each concrete source with the declared target type,
    ``in_bounds`` each concrete target with the declared source type.
    """

    pairs: Mapping[tuple[str, str, str], ResolvedRule]
    out_bounds: Mapping[tuple[str, str, str], ResolvedRule] = field(default_factory=dict)
    in_bounds: Mapping[tuple[str, str, str], ResolvedRule] = field(default_factory=dict)


@dataclass(frozen=True)
class _ProtoIdClaim:
    kind: ElementKind
    name: str
    proto_id: int


def assign_ids(entries: Sequence[tuple[str, int | None]]) -> dict[str, int]:
    """Assign stable numeric ids within one element kind.

    Elements with a protocol id keep it; the others are numbered in declaration
    order starting after the largest protocol id of the kind.

    Returns
    -------
    dict[str, int]
        Mapping of element name to id.
    """
    explicit = [proto_id for _, proto_id in entries if proto_id is not None]
    next_id = max(explicit, default=-1) + 1
    ids: dict[str, int] = {}
    for name, proto_id in entries:
        if proto_id is not None:
            ids[name] = proto_id
            continue
        ids[name] = next_id
        next_id += 1
    return ids


def check_proto_ids(claims: Iterable[_ProtoIdClaim], scope: ProtoIdScope) -> None:
    """Raise when two elements claim the same protocol id within ``scope``.

    Raises
    ------
    DuplicateProtoIdError
        Raised on the first duplicate, in declaration order.
    """
    seen: dict[tuple[str, int], _ProtoIdClaim] = {}
    for claim in claims:
        namespace = claim.kind.value if scope is ProtoIdScope.KIND else ""
        key = (namespace, claim.proto_id)
        previous = seen.get(key)
        if previous is not None:
            msg = (
                f"Protocol id {claim.proto_id} of {claim.kind.value} {claim.name!r} is "
                f"already used by {previous.kind.value} {previous.name!r}."
            )
            raise DuplicateProtoIdError(msg, element=claim.name)
        seen[key] = claim


@dataclass
class SchemaCompiler:
    """Compile the registries of one declaration session."""

    name: str
    version: str
    properties: PropertyRegistry
    node_types: NodeTypeRegistry
    edge_types: EdgeTypeRegistry
    constants: ConstantRegistry
    layers: Sequence[SchemaLayer] = ()
    settings: SchemaSettings = field(default_factory=SchemaSettings)

    def compile(self) -> CompiledSchema:
        """Resolve all declarations and freeze them into a compiled schema.

        Returns
        -------
        CompiledSchema
            Immutable compiled schema.
        """
        attributes = {
            "cpg_schema.name": self.name,
            "cpg_schema.version": self.version,
            "cpg_schema.cardinality_policy": self.settings.cardinality_policy.value,
            "cpg_schema.proto_id_scope": self.settings.proto_id_scope.value,
        }
        with stage_span(
            "cpg_schema.compile",
            stage="compile",
            scope_name=SCOPE_COMPILER,
            attributes=attributes,
        ) as span:
            with _stage("properties"):
                property_specs = self._resolve_properties()
            with _stage("node_types"):
                nodes = self._resolve_node_types(property_specs)
            with _stage("edge_types"):
                edge_names = tuple(decl.name for decl in self.edge_types)
            with _stage("edge_rules"):
                rules = self._resolve_rules(nodes)
            with _stage("constants"):
                constant_entries = self._resolve_constants()
            with _stage("ids"):
                check_proto_ids(self._proto_id_claims(), self.settings.proto_id_scope)
                compiled = self._build(property_specs, nodes, edge_names, rules, constant_entries)
            span.set_attribute("cpg_schema.fingerprint", compiled.fingerprint)
        logger.info(
            "Compiled schema %s %s: %d properties, %d node types, %d edge types, "
            "%d adjacency entries, %d constants (fingerprint=%s)",
            compiled.name,
            compiled.version,
            len(compiled.properties),
            len(compiled.node_types),
            len(compiled.edge_types),
            len(compiled.adjacency),
            len(compiled.constants),
            compiled.fingerprint[:12],
        )
        return compiled

    def _resolve_properties(self) -> dict[str, PropertySpec]:
        specs: dict[str, PropertySpec] = {}
        for decl in self.properties:
            spec = decl.spec()
            if spec.cardinality is Cardinality.ONE and not value_matches_type(
                spec.value_type, spec.default
            ):
                msg = (
                    f"Mandatory property {spec.name!r} has no valid "
                    f"{spec.value_type.value} default."
                )
                raise InvalidValueError(msg, element=spec.name)
            specs[spec.name] = spec
        return specs

    def _property_spec(
        self,
        ref: object,
        specs: Mapping[str, PropertySpec],
        *,
        owner: str,
    ) -> PropertySpec:
        name = ref_name(ref)
        known = specs.get(name)
        if known is None:
            msg = f"Node type {owner!r} references undeclared property {name!r}."
            raise UnknownPropertyError(msg, element=name)
        if isinstance(ref, str) or ref is self.properties.get(name):
            return known
        candidate = ref.spec() if isinstance(ref, PropertyDecl) else ref
        if not isinstance(candidate, PropertySpec) or not known.same_definition(candidate):
            msg = (
                f"Node type {owner!r} attaches property {name!r} with a definition that "
                "differs from the registered one."
            )
            raise PropertyConflictError(msg, element=name)
        return known

    def _resolve_parents(self, decl: NodeTypeDecl) -> tuple[str, ...]:
        parents: list[str] = []
        for ref in decl.parents:
            name = ref_name(ref)
            if not self.node_types.owns(ref):
                msg = f"Node type {decl.name!r} extends undeclared type {name!r}."
                raise UnknownBaseTypeError(msg, element=decl.name)
            if name not in parents:
                parents.append(name)
        return tuple(parents)

    def _check_parents_abstract(self, parents: Mapping[str, Sequence[str]]) -> None:
        for name, direct in parents.items():
            for parent in direct:
                decl = self.node_types.get(parent)
                if decl is None or not decl.is_abstract:
                    msg = f"Node type {name!r} extends {parent!r}, which is not a base type."
                    raise UnknownBaseTypeError(msg, element=name)

    def _check_names(self) -> None:
        names: dict[str, str] = {decl.name: decl.name for decl in self.node_types}
        for decl in self.node_types:
            if decl.alias is None:
                continue
            owner = names.get(decl.alias)
            if owner is not None and owner != decl.name:
                msg = f"Alias {decl.alias!r} of {decl.name!r} collides with {owner!r}."
                raise DuplicateNameError(msg, element=decl.alias)
            names[decl.alias] = decl.name

    def _resolve_node_types(self, specs: Mapping[str, PropertySpec]) -> dict[str, _ResolvedNode]:
        self._check_names()
        decls = tuple(self.node_types)
        parents = {decl.name: self._resolve_parents(decl) for decl in decls}
        declaration_order = {decl.name: decl.declaration_index for decl in decls}
        hierarchy = InheritanceGraph.from_parents(parents, declaration_order)
        hierarchy.ensure_acyclic()
        self._check_parents_abstract(parents)
        own_specs: dict[str, tuple[PropertySpec, ...]] = {}
        for decl in decls:
            resolved: dict[str, PropertySpec] = {}
            for ref in decl.own_properties:
                spec = self._property_spec(ref, specs, owner=decl.name)
                resolved.setdefault(spec.name, spec)
            own_specs[decl.name] = tuple(resolved.values())
        nodes: dict[str, _ResolvedNode] = {}
        for decl in decls:
            ancestors = hierarchy.ancestors(decl.name)
            effective = resolve_effective_properties(decl.name, own_specs, ancestors)
            effective_names = {item.spec.name for item in effective}
            primary_key: list[str] = []
            for ref in decl.primary_key_refs:
                key_name = ref_name(ref)
                if key_name not in effective_names:
                    msg = (
                        f"Primary key property {key_name!r} of {decl.name!r} is not in its "
                        "effective property set."
                    )
                    raise InvalidPrimaryKeyError(msg, element=decl.name)
                if key_name not in primary_key:
                    primary_key.append(key_name)
            nodes[decl.name] = _ResolvedNode(
                decl=decl,
                parents=parents[decl.name],
                ancestors=ancestors,
                own_properties=tuple(spec.name for spec in own_specs[decl.name]),
                effective=effective,
                primary_key=tuple(primary_key),
            )
        logger.debug("Resolved %d node types", len(nodes))
        return nodes

    def _resolve_rules(self, nodes: Mapping[str, _ResolvedNode]) -> _RuleTables:
        hierarchy = InheritanceGraph.from_parents(
            {name: node.parents for name, node in nodes.items()},
            {name: node.decl.declaration_index for name, node in nodes.items()},
        )

        def concrete(name: str) -> tuple[str, ...]:
            return tuple(
                item for item in hierarchy.subtypes(name) if not nodes[item].decl.is_abstract
            )

        pairs: list[RuleOccurrence] = []
        out_bounds: list[RuleOccurrence] = []
        in_bounds: list[RuleOccurrence] = []
        for rule in self.edge_types.rules:
            edge = ref_name(rule.edge)
            if not self.edge_types.owns(rule.edge):
                msg = f"Edge rule references undeclared edge type {edge!r}."
                raise UnknownEdgeTypeError(msg, element=edge)
            endpoints: list[tuple[str, ...]] = []
            for ref in (rule.source, rule.target):
                name = ref_name(ref)
                if not self.node_types.owns(ref):
                    msg = f"Edge rule {edge!r} references undeclared node type {name!r}."
                    raise UnknownEdgeEndpointTypeError(msg, element=name)
                endpoints.append(concrete(name))
            sources, targets = endpoints
            if not sources or not targets:
                logger.debug(
                    "Edge rule %s %s->%s has no concrete endpoints",
                    edge,
                    ref_name(rule.source),
                    ref_name(rule.target),
                )
                continue
            declared_source = ref_name(rule.source)
            declared_target = ref_name(rule.target)
            pairs.extend(
                RuleOccurrence(edge=edge, source=source, target=target, rule=rule)
                for source in sources
                for target in targets
            )
            out_bounds.extend(
                RuleOccurrence(edge=edge, source=source, target=declared_target, rule=rule)
                for source in sources
            )
            in_bounds.extend(
                RuleOccurrence(edge=edge, source=declared_source, target=target, rule=rule)
                for target in targets
            )
        policy = self.settings.cardinality_policy
        return _RuleTables(
            pairs=reconcile_rules(pairs, policy=policy),
            out_bounds=reconcile_rules(out_bounds, policy=policy),
            in_bounds=reconcile_rules(in_bounds, policy=policy),
        )

    def _resolve_constants(self) -> tuple[ConstantEntry, ...]:
        entries = tuple(self.constants.entries())
        for entry in entries:
            constant = entry.constant
            if not value_matches_type(constant.value_type, constant.value):
                msg = (
                    f"Constant {entry.category}.{constant.name} value {constant.value!r} is "
                    f"not a valid {constant.value_type.value}."
                )
                raise InvalidValueError(msg, element=constant.name)
        return entries

    def _proto_id_claims(self) -> Iterable[_ProtoIdClaim]:
        for prop in self.properties:
            if prop.proto_id_value is not None:
                yield _ProtoIdClaim(ElementKind.PROPERTY, prop.name, prop.proto_id_value)
        for node in self.node_types:
            if node.proto_id_value is not None:
                yield _ProtoIdClaim(ElementKind.NODE_TYPE, node.name, node.proto_id_value)
        for edge in self.edge_types:
            if edge.proto_id_value is not None:
                yield _ProtoIdClaim(ElementKind.EDGE_TYPE, edge.name, edge.proto_id_value)
        for entry in self.constants.entries():
            if entry.constant.proto_id_value is not None:
                yield _ProtoIdClaim(
                    ElementKind.CONSTANT,
                    f"{entry.category}.{entry.constant.name}",
                    entry.constant.proto_id_value,
                )

    def _build(
        self,
        specs: Mapping[str, PropertySpec],
        nodes: Mapping[str, _ResolvedNode],
        edge_names: Sequence[str],
        rules: _RuleTables,
        constant_entries: Sequence[ConstantEntry],
    ) -> CompiledSchema:
        property_ids = assign_ids([(name, spec.proto_id) for name, spec in specs.items()])
        node_ids = assign_ids(
            [(name, node.decl.proto_id_value) for name, node in nodes.items()]
        )
        edge_ids = assign_ids(
            [(name, self._edge_proto_id(name)) for name in edge_names]
        )
        properties = sorted(
            (
                PropertyInfo(
                    property_id=property_ids[name],
                    name=name,
                    value_type=spec.value_type,
                    cardinality=spec.cardinality,
                    default=spec.default,
                    comment=spec.comment,
                    proto_id=spec.proto_id,
                )
                for name, spec in specs.items()
            ),
            key=lambda info: info.property_id,
        )
        node_types = sorted(
            (
                NodeTypeInfo(
                    type_id=node_ids[name],
                    name=name,
                    is_abstract=node.decl.is_abstract,
                    comment=node.decl.comment,
                    proto_id=node.decl.proto_id_value,
                    alias=node.decl.alias,
                    parents=node.parents,
                    ancestors=node.ancestors,
                    own_properties=node.own_properties,
                    properties=tuple(
                        PropertySlot(
                            offset=offset,
                            name=item.spec.name,
                            property_id=property_ids[item.spec.name],
                            declared_by=item.declared_by,
                        )
                        for offset, item in enumerate(node.effective)
                    ),
                    primary_key=node.primary_key,
                )
                for name, node in nodes.items()
            ),
            key=lambda info: info.type_id,
        )
        edge_types = sorted(
            (
                EdgeTypeInfo(
                    edge_type_id=edge_ids[name],
                    name=name,
                    comment=self._edge_comment(name),
                    proto_id=self._edge_proto_id(name),
                )
                for name in edge_names
            ),
            key=lambda info: info.edge_type_id,
        )
        constants = tuple(
            ConstantInfo(
                category=entry.category,
                name=entry.constant.name,
                value=entry.constant.value,
                value_type=entry.constant.value_type,
                comment=entry.constant.comment,
                proto_id=entry.constant.proto_id_value,
            )
            for entry in constant_entries
        )
        layers = tuple(
            LayerInfo(
                name=layer.name,
                doc_index=layer.doc_index,
                description=layer.description,
                provided_by_frontend=layer.provided_by_frontend,
            )
            for layer in sorted(self.layers, key=lambda item: item.doc_index)
        )
        return CompiledSchema(
            name=self.name,
            version=self.version,
            properties=tuple(properties),
            node_types=tuple(node_types),
            edge_types=tuple(edge_types),
            adjacency=build_adjacency(
                rules.pairs,
                node_ids,
                edge_ids,
                out_bounds=rules.out_bounds,
                in_bounds=rules.in_bounds,
            ),
            constants=constants,
            layers=layers,
        )

    def _edge_proto_id(self, name: str) -> int | None:
        decl = self.edge_types.get(name)
        return None if decl is None else decl.proto_id_value

    def _edge_comment(self, name: str) -> str:
        decl = self.edge_types.get(name)
        return "" if decl is None else decl.comment


def build_adjacency(
    rules: Mapping[tuple[str, str, str], ResolvedRule],
    node_ids: Mapping[str, int],
    edge_ids: Mapping[str, int],
    *,
    out_bounds: Mapping[tuple[str, str, str], ResolvedRule] | None = None,
    in_bounds: Mapping[tuple[str, str, str], ResolvedRule] | None = None,
) -> tuple[AdjacencyEntry, ...]:
    """Flatten resolved rules into per-(type, edge, direction) adjacency entries.

    Each rule contributes an outgoing entry at its source carrying
    ``cardinality_out`` and an incoming entry at its target carrying
    ``cardinality_in``. Bounded (non-``LIST``) rules from ``out_bounds`` and
    ``in_bounds`` are attached to the entry of their concrete endpoint, keyed by
    the declared neighbour type; bounds default to the concrete rules.

    Returns
    -------
    tuple[AdjacencyEntry, ...]
        Entries sorted by type id, edge type id and direction; neighbours and
        bounds sorted by type id.
    """
    grouped: dict[tuple[int, int, Direction], list[NeighborRule]] = {}
    for rule in rules.values():
        source_id = node_ids[rule.source]
        target_id = node_ids[rule.target]
        edge_id = edge_ids[rule.edge]
        grouped.setdefault((source_id, edge_id, Direction.OUT), []).append(
            NeighborRule(
                type_id=target_id,
                cardinality=rule.cardinality_out,
                step_name=rule.step_name_out,
                step_name_doc=rule.step_name_out_doc,
            )
        )
        grouped.setdefault((target_id, edge_id, Direction.IN), []).append(
            NeighborRule(
                type_id=source_id,
                cardinality=rule.cardinality_in,
                step_name=rule.step_name_in,
                step_name_doc=rule.step_name_in_doc,
            )
        )
    bounds: dict[tuple[int, int, Direction], list[NeighborRule]] = {}
    for rule in (rules if out_bounds is None else out_bounds).values():
        if rule.cardinality_out is not Cardinality.LIST:
            bounds.setdefault(
                (node_ids[rule.source], edge_ids[rule.edge], Direction.OUT), []
            ).append(
                NeighborRule(
                    type_id=node_ids[rule.target],
                    cardinality=rule.cardinality_out,
                    step_name=rule.step_name_out,
                    step_name_doc=rule.step_name_out_doc,
                )
            )
    for rule in (rules if in_bounds is None else in_bounds).values():
        if rule.cardinality_in is not Cardinality.LIST:
            bounds.setdefault(
                (node_ids[rule.target], edge_ids[rule.edge], Direction.IN), []
            ).append(
                NeighborRule(
                    type_id=node_ids[rule.source],
                    cardinality=rule.cardinality_in,
                    step_name=rule.step_name_in,
                    step_name_doc=rule.step_name_in_doc,
                )
            )
    ordered = sorted(grouped, key=lambda key: (key[0], key[1], _DIRECTION_ORDER[key[2]]))
    return tuple(
        AdjacencyEntry(
            type_id=key[0],
            edge_type_id=key[1],
            direction=key[2],
            neighbors=tuple(sorted(grouped[key], key=lambda item: item.type_id)),
            bounds=tuple(sorted(bounds.get(key, ()), key=lambda item: item.type_id)),
        )
        for key in ordered
    )


__all__ = [
    "SchemaCompiler",
    "SchemaLayer",
    "assign_ids",
    "build_adjacency",
    "check_proto_ids",
]
