"""Structural validation of instance graphs against a compiled schema.

Validation never raises for data problems; every finding becomes a
``ValidationViolation``. Checks run in phases so that partial results from
parallel partitions can be merged before the checks that need global state:

1. node ids are indexed and duplicates reported;
2. node partitions check type, properties and collect primary keys;
3. merged primary keys are checked for collisions;
4. edge partitions check edge types, endpoints and count bounded edges;
5. node partitions compare the merged counts against cardinality bounds.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from opentelemetry import context as otel_context

from cpg_schema.compiled import CompiledSchema, NeighborRule, NodeTypeInfo, PropertyInfo
from cpg_schema.enums import Cardinality, Direction
from cpg_schema.properties import value_matches_type
from obs.scopes import SCOPE_VALIDATION
from obs.tracing import stage_span
from validation.config import ValidationSettings, validation_settings_from_env
from validation.instance import EdgeInstance, InstanceGraph, NodeInstance
from validation.violations import NodeId, ValidationViolation, ViolationList, ViolationType

if TYPE_CHECKING:
    from opentelemetry.trace import Span

logger = logging.getLogger(__name__)


_MISSING = object()

# (edge type id, direction, declared neighbour type id)
type _BoundKey = tuple[int, Direction, int]
# (edge type id, direction, concrete neighbour type id)
type _NeighborKey = tuple[int, Direction, int]
type _CountKey = tuple[NodeId, int, Direction, int]
type _PrimaryKey = tuple[str, tuple[object, ...]]


def _stage(stage: str) -> AbstractContextManager[Span]:
    return stage_span(f"cpg_schema.validate.{stage}", stage=stage, scope_name=SCOPE_VALIDATION)


@dataclass(frozen=True)
class _TypePlan:
    """Per node type lookups precomputed once per validator.

    ``counted_as`` maps a concrete neighbour to every bound whose declared
    neighbour type it is a subtype of; one edge counts towards each of them.
    """

    info: NodeTypeInfo
    properties: tuple[PropertyInfo, ...]
    property_names: frozenset[str]
    bounded: Mapping[_BoundKey, NeighborRule]
    counted_as: Mapping[_NeighborKey, tuple[_BoundKey, ...]]


@dataclass(frozen=True)
class _IndexedNode:
    node: NodeInstance
    plan: _TypePlan | None


@dataclass
class _NodeResult:
    violations: list[ValidationViolation] = field(default_factory=list)
    keys: dict[_PrimaryKey, list[NodeId]] = field(default_factory=dict)


@dataclass
class _EdgeResult:
    violations: list[ValidationViolation] = field(default_factory=list)
    counts: Counter[_CountKey] = field(default_factory=Counter)


@dataclass
class _Budget:
    """Violation accumulator keeping the first ``limit`` entries.

    ``truncated`` is set only once a violation had to be dropped, so a run
    that finds exactly ``limit`` violations is complete.
    """

    limit: int | None
    items: list[ValidationViolation] = field(default_factory=list)
    truncated: bool = False

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(self.limit - len(self.items), 0)

    def extend(self, violations: Sequence[ValidationViolation]) -> None:
        remaining = self.remaining
        if remaining is None:
            self.items.extend(violations)
            return
        if len(violations) > remaining:
            self.truncated = True
        self.items.extend(violations[:remaining])

    def chunk_limit(self) -> int | None:
        """Return how many violations one partition needs to report.

        One more than still fits, so a partition that overflows the budget
        is told apart from one that fills it exactly.
        """
        remaining = self.remaining
        return None if remaining is None else remaining + 1


def _full(violations: Sequence[ValidationViolation], limit: int | None) -> bool:
    return limit is not None and len(violations) >= limit


def _describe_value(value: object) -> str:
    return type(value).__name__


def _partitions[T](items: Sequence[T], size: int) -> list[Sequence[T]]:
    if not items:
        return []
    return [items[start : start + size] for start in range(0, len(items), size)]


def _bounded_rules(
    schema: CompiledSchema,
    info: NodeTypeInfo,
) -> tuple[dict[_BoundKey, NeighborRule], dict[_NeighborKey, tuple[_BoundKey, ...]]]:
    bounded: dict[_BoundKey, NeighborRule] = {}
    counted_as: dict[_NeighborKey, list[_BoundKey]] = {}
    for edge in schema.edge_types:
        for direction in (Direction.OUT, Direction.IN):
            entry = schema.adjacency_entry(info.type_id, edge.edge_type_id, direction)
            if entry is None:
                continue
            for rule in entry.bounds:
                if rule.cardinality is Cardinality.LIST:
                    continue
                key = (edge.edge_type_id, direction, rule.type_id)
                bounded[key] = rule
                for neighbor in schema.concrete_subtypes(rule.type_id):
                    counted_as.setdefault(
                        (edge.edge_type_id, direction, neighbor.type_id), []
                    ).append(key)
    return bounded, {key: tuple(keys) for key, keys in counted_as.items()}


def materialize_properties(
    node: NodeInstance,
    schema: CompiledSchema,
    *,
    substitute_defaults: bool = True,
) -> tuple[object, ...]:
    """Return a node's property values in effective offset order.

    Omitted mandatory properties take their declared default, omitted optional
    properties are ``None`` and omitted list properties are empty.

    Parameters
    ----------
    node
        Node instance.
    schema
        Compiled schema defining the node type.
    substitute_defaults
        Whether omitted mandatory properties take their default.

    Returns
    -------
    tuple[object, ...]
        One value per effective property slot.

    Raises
    ------
    KeyError
        Raised when the node type is not defined by the schema.
    """
    values: list[object] = []
    for prop in schema.properties_of(node.node_type):
        value = node.properties.get(prop.name)
        if prop.is_list:
            values.append(() if value is None else tuple(value))
        elif value is None and prop.mandatory and substitute_defaults:
            values.append(prop.default)
        else:
            values.append(value)
    return tuple(values)


class GraphValidator:
    """Validate instance graphs against one compiled schema.

    The validator precomputes per-type lookups and may be reused for any
    number of graphs, including from several threads.
    """

    def __init__(
        self,
        schema: CompiledSchema,
        settings: ValidationSettings | None = None,
    ) -> None:
        self.schema = schema
        self.settings = settings or validation_settings_from_env()
        self._plans: dict[int, _TypePlan] = {}
        for info in schema.node_types:
            bounded, counted_as = _bounded_rules(schema, info)
            self._plans[info.type_id] = _TypePlan(
                info=info,
                properties=schema.properties_of(info.type_id),
                property_names=frozenset(slot.name for slot in info.properties),
                bounded=bounded,
                counted_as=counted_as,
            )

    def validate(self, graph: InstanceGraph) -> ViolationList:
        """Check a graph and return every violation found.

        Returns
        -------
        ViolationList
            Violations in deterministic order; ``truncated`` when violations
            beyond ``max_violations`` were dropped.
        """
        settings = self.settings
        attributes = {
            "cpg_schema.name": self.schema.name,
            "cpg_schema.fingerprint": self.schema.fingerprint,
            "cpg_schema.nodes": len(graph.nodes),
            "cpg_schema.edges": len(graph.edges),
            "cpg_schema.max_workers": settings.max_workers,
        }
        budget = _Budget(settings.max_violations)
        with stage_span(
            "cpg_schema.validate",
            stage="validate",
            scope_name=SCOPE_VALIDATION,
            attributes=attributes,
        ) as span:
            self._run_phases(graph, budget)
            span.set_attribute("cpg_schema.violations", len(budget.items))
            span.set_attribute("cpg_schema.truncated", budget.truncated)
        result = ViolationList(
            violations=tuple(sorted(budget.items, key=ValidationViolation.sort_key)),
            truncated=budget.truncated,
        )
        logger.info(
            "Validated %d nodes and %d edges against %s: %d violation(s)%s",
            len(graph.nodes),
            len(graph.edges),
            self.schema.name,
            len(result),
            " (truncated)" if result.truncated else "",
        )
        return result

    def _run_phases(self, graph: InstanceGraph, budget: _Budget) -> None:
        with _stage("index"):
            index, unique = self._index_nodes(graph.nodes, budget)
        if budget.truncated:
            return
        with _stage("nodes"):
            keys = self._node_phase(unique, budget)
        if budget.truncated:
            return
        with _stage("primary_keys"):
            budget.extend(self._key_collisions(keys, index))
        if budget.truncated:
            return
        with _stage("edges"):
            counts = self._edge_phase(graph.edges, index, budget)
        if budget.truncated:
            return
        with _stage("cardinality"):
            self._cardinality_phase(unique, counts, budget)

    def _plan_for(self, node_type: str) -> _TypePlan | None:
        info = self.schema.find_node_type(node_type)
        return None if info is None else self._plans[info.type_id]

    def _index_nodes(
        self,
        nodes: Sequence[NodeInstance],
        budget: _Budget,
    ) -> tuple[dict[NodeId, _IndexedNode], list[_IndexedNode]]:
        plans: dict[str, _TypePlan | None] = {}
        index: dict[NodeId, _IndexedNode] = {}
        occurrences: Counter[NodeId] = Counter()
        unique: list[_IndexedNode] = []
        for node in nodes:
            occurrences[node.id] += 1
            if node.id in index:
                continue
            if node.node_type not in plans:
                plans[node.node_type] = self._plan_for(node.node_type)
            indexed = _IndexedNode(node=node, plan=plans[node.node_type])
            index[node.id] = indexed
            unique.append(indexed)
        budget.extend(
            [
                ValidationViolation(
                    violation_type=ViolationType.DUPLICATE_NODE_ID,
                    node_id=node_id,
                    count=count,
                )
                for node_id, count in occurrences.items()
                if count > 1
            ]
        )
        logger.debug("Indexed %d unique node ids", len(index))
        return index, unique

    def _map_partitions[T, U](
        self,
        fn: Callable[[Sequence[T]], U],
        items: Sequence[T],
    ) -> Iterator[U]:
        chunks = _partitions(items, max(self.settings.partition_size, 1))
        if self.settings.max_workers <= 1 or len(chunks) <= 1:
            for chunk in chunks:
                yield fn(chunk)
            return
        current = otel_context.get_current()

        def _wrapped(chunk: Sequence[T]) -> U:
            token = otel_context.attach(current)
            try:
                return fn(chunk)
            finally:
                otel_context.detach(token)

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            yield from executor.map(_wrapped, chunks)

    def _node_phase(
        self,
        nodes: Sequence[_IndexedNode],
        budget: _Budget,
    ) -> dict[_PrimaryKey, list[NodeId]]:
        limit = budget.chunk_limit()
        keys: dict[_PrimaryKey, list[NodeId]] = {}
        for result in self._map_partitions(lambda chunk: self._check_nodes(chunk, limit), nodes):
            budget.extend(result.violations)
            if budget.truncated:
                break
            for key, ids in result.keys.items():
                keys.setdefault(key, []).extend(ids)
        return keys

    def _check_nodes(self, nodes: Iterable[_IndexedNode], limit: int | None) -> _NodeResult:
        result = _NodeResult()
        for indexed in nodes:
            if _full(result.violations, limit):
                break
            node = indexed.node
            plan = indexed.plan
            if plan is None:
                result.violations.append(
                    ValidationViolation(
                        violation_type=ViolationType.UNKNOWN_NODE_TYPE,
                        node_id=node.id,
                        actual=node.node_type,
                    )
                )
                continue
            if plan.info.is_abstract:
                result.violations.append(
                    ValidationViolation(
                        violation_type=ViolationType.ABSTRACT_NODE_INSTANCE,
                        node_id=node.id,
                        node_type=plan.info.name,
                    )
                )
                continue
            result.violations.extend(self._check_properties(node, plan))
            key = self._primary_key(node, plan)
            if key is not None:
                result.keys.setdefault((plan.info.name, key), []).append(node.id)
        return result

    def _check_properties(
        self,
        node: NodeInstance,
        plan: _TypePlan,
    ) -> Iterator[ValidationViolation]:
        type_name = plan.info.name
        for prop in plan.properties:
            value = node.properties.get(prop.name, _MISSING)
            if value is _MISSING or value is None:
                missing = value is None or not self.settings.substitute_defaults
                if prop.mandatory and missing:
                    yield ValidationViolation(
                        violation_type=ViolationType.MISSING_MANDATORY_PROPERTY,
                        node_id=node.id,
                        node_type=type_name,
                        property_name=prop.name,
                        expected=prop.value_type.value,
                    )
                continue
            if prop.is_list:
                valid = isinstance(value, (list, tuple)) and all(
                    value_matches_type(prop.value_type, item) for item in value
                )
                expected = f"list[{prop.value_type.value}]"
            else:
                valid = value_matches_type(prop.value_type, value)
                expected = prop.value_type.value
            if not valid:
                yield ValidationViolation(
                    violation_type=ViolationType.WRONG_PROPERTY_TYPE,
                    node_id=node.id,
                    node_type=type_name,
                    property_name=prop.name,
                    expected=expected,
                    actual=_describe_value(value),
                )
        if not self.settings.check_unknown_properties:
            return
        for name in node.properties:
            if name not in plan.property_names:
                yield ValidationViolation(
                    violation_type=ViolationType.UNKNOWN_PROPERTY,
                    node_id=node.id,
                    node_type=type_name,
                    property_name=name,
                )

    def _primary_key(self, node: NodeInstance, plan: _TypePlan) -> tuple[object, ...] | None:
        if not plan.info.primary_key:
            return None
        values: list[object] = []
        for name in plan.info.primary_key:
            prop = self.schema.property(name)
            value = node.properties.get(name)
            if value is None and prop.mandatory and self.settings.substitute_defaults:
                value = prop.default
            if value is None or prop.is_list or not value_matches_type(prop.value_type, value):
                return None
            values.append(value)
        return tuple(values)

    def _key_collisions(
        self,
        keys: Mapping[_PrimaryKey, Sequence[NodeId]],
        index: Mapping[NodeId, _IndexedNode],
    ) -> list[ValidationViolation]:
        violations: list[ValidationViolation] = []
        for (type_name, key), ids in keys.items():
            if len(ids) < 2:
                continue
            plan = index[ids[0]].plan
            key_names = () if plan is None else plan.info.primary_key
            violations.append(
                ValidationViolation(
                    violation_type=ViolationType.PRIMARY_KEY_COLLISION,
                    node_id=ids[0],
                    node_type=type_name,
                    expected=", ".join(key_names),
                    actual=repr(key),
                    count=len(ids),
                    related_ids=tuple(ids[1:]),
                )
            )
        return violations

    def _edge_phase(
        self,
        edges: Sequence[EdgeInstance],
        index: Mapping[NodeId, _IndexedNode],
        budget: _Budget,
    ) -> Counter[_CountKey]:
        limit = budget.chunk_limit()
        counts: Counter[_CountKey] = Counter()
        for result in self._map_partitions(
            lambda chunk: self._check_edges(chunk, index, limit), edges
        ):
            budget.extend(result.violations)
            if budget.truncated:
                break
            counts.update(result.counts)
        return counts

    def _check_edges(
        self,
        edges: Iterable[EdgeInstance],
        index: Mapping[NodeId, _IndexedNode],
        limit: int | None,
    ) -> _EdgeResult:
        result = _EdgeResult()
        for edge in edges:
            if _full(result.violations, limit):
                break
            edge_info = self.schema.find_edge_type(edge.edge_type)
            if edge_info is None:
                result.violations.append(
                    ValidationViolation(
                        violation_type=ViolationType.UNKNOWN_EDGE_TYPE,
                        node_id=edge.source,
                        edge_type=edge.edge_type,
                        related_ids=(edge.target,),
                    )
                )
                continue
            source = index.get(edge.source)
            target = index.get(edge.target)
            if source is None or target is None:
                missing = [
                    repr(node_id)
                    for node_id, found in ((edge.source, source), (edge.target, target))
                    if found is None
                ]
                result.violations.append(
                    ValidationViolation(
                        violation_type=ViolationType.DANGLING_EDGE,
                        node_id=edge.source,
                        edge_type=edge_info.name,
                        actual=", ".join(missing),
                        related_ids=(edge.target,),
                    )
                )
                continue
            source_plan = source.plan
            target_plan = target.plan
            if (
                source_plan is None
                or target_plan is None
                or source_plan.info.is_abstract
                or target_plan.info.is_abstract
            ):
                continue
            edge_id = edge_info.edge_type_id
            source_type = source_plan.info.type_id
            target_type = target_plan.info.type_id
            entry = self.schema.adjacency_entry(source_type, edge_id, Direction.OUT)
            if entry is None or entry.rule_for(target_type) is None:
                result.violations.append(
                    ValidationViolation(
                        violation_type=ViolationType.DISALLOWED_EDGE_ENDPOINT,
                        node_id=edge.source,
                        node_type=source_plan.info.name,
                        edge_type=edge_info.name,
                        direction=Direction.OUT,
                        neighbor_type=target_plan.info.name,
                        related_ids=(edge.target,),
                    )
                )
                continue
            for key in source_plan.counted_as.get((edge_id, Direction.OUT, target_type), ()):
                result.counts[(edge.source, *key)] += 1
            for key in target_plan.counted_as.get((edge_id, Direction.IN, source_type), ()):
                result.counts[(edge.target, *key)] += 1
        return result

    def _cardinality_phase(
        self,
        nodes: Sequence[_IndexedNode],
        counts: Mapping[_CountKey, int],
        budget: _Budget,
    ) -> None:
        limit = budget.chunk_limit()
        for result in self._map_partitions(
            lambda chunk: self._check_cardinality(chunk, counts, limit), nodes
        ):
            budget.extend(result)
            if budget.truncated:
                break

    def _check_cardinality(
        self,
        nodes: Iterable[_IndexedNode],
        counts: Mapping[_CountKey, int],
        limit: int | None,
    ) -> list[ValidationViolation]:
        violations: list[ValidationViolation] = []
        for indexed in nodes:
            plan = indexed.plan
            if plan is None or plan.info.is_abstract or not plan.bounded:
                continue
            node_id = indexed.node.id
            for (edge_id, direction, neighbor_id), rule in plan.bounded.items():
                count = counts.get((node_id, edge_id, direction, neighbor_id), 0)
                if rule.cardinality.admits(count):
                    continue
                violations.append(
                    ValidationViolation(
                        violation_type=ViolationType.CARDINALITY_VIOLATION,
                        node_id=node_id,
                        node_type=plan.info.name,
                        edge_type=self.schema.edge_type(edge_id).name,
                        direction=direction,
                        neighbor_type=self.schema.type_name(neighbor_id),
                        expected=rule.cardinality.value,
                        count=count,
                    )
                )
                if _full(violations, limit):
                    return violations
        return violations


def validate(
    graph: InstanceGraph,
    schema: CompiledSchema,
    *,
    settings: ValidationSettings | None = None,
) -> ViolationList:
    """Validate an instance graph against a compiled schema.

    Parameters
    ----------
    graph
        Candidate instance graph.
    schema
        Compiled schema to check against.
    settings
        Validation options; defaults to the ``CPG_SCHEMA_*`` environment
        overrides applied to ``ValidationSettings()``.

    Returns
    -------
    ViolationList
        Every violation found, possibly empty.
    """
    return GraphValidator(schema, settings).validate(graph)


__all__ = ["GraphValidator", "materialize_properties", "validate"]
