"""Tests for instance graph validation."""

from __future__ import annotations

import pytest

from cpg_schema import Cardinality, CompiledSchema, Direction, SchemaBuilder
from validation import (
    GraphValidator,
    InstanceGraph,
    InstanceGraphBuilder,
    ValidationSettings,
    ViolationType,
    graph_from_json,
    materialize_properties,
    validate,
)

UNKNOWN_NODES = 10
BUDGET = 3


def _block_with_locals(edges: int) -> InstanceGraph:
    graph = InstanceGraphBuilder()
    block = graph.add_node("BLOCK")
    local = graph.add_node("LOCAL", NAME="x")
    for _ in range(edges):
        graph.add_edge("AST", block, local)
    return graph.build()


def test_local_without_defining_block_violates_one(sample_schema: CompiledSchema) -> None:
    """Report a local with no incoming AST edge from a block."""
    result = validate(_block_with_locals(0), sample_schema)
    assert len(result) == 1
    violation = result[0]
    assert violation.violation_type is ViolationType.CARDINALITY_VIOLATION
    assert violation.node_id == 1
    assert violation.node_type == "LOCAL"
    assert violation.edge_type == "AST"
    assert violation.direction is Direction.IN
    assert violation.neighbor_type == "BLOCK"
    assert violation.expected == "one"
    assert violation.count == 0


def test_local_with_two_defining_edges_violates_one(sample_schema: CompiledSchema) -> None:
    """Report a local with two incoming AST edges from blocks."""
    result = validate(_block_with_locals(2), sample_schema)
    assert [item.violation_type for item in result] == [ViolationType.CARDINALITY_VIOLATION]
    assert result[0].count == 2


def test_local_with_one_defining_block_is_clean(sample_schema: CompiledSchema) -> None:
    """Accept exactly one incoming AST edge from a block."""
    result = validate(_block_with_locals(1), sample_schema)
    assert result.ok
    assert not result.truncated


def test_zero_or_one_is_counted_per_target(sample_schema: CompiledSchema) -> None:
    """Allow one control structure edge to each of two blocks."""
    graph = InstanceGraphBuilder()
    control = graph.add_node("CONTROL_STRUCTURE")
    first = graph.add_node("BLOCK")
    second = graph.add_node("BLOCK")
    graph.add_edge("AST", control, first)
    graph.add_edge("AST", control, second)
    assert validate(graph.build(), sample_schema).ok


def test_zero_or_one_rejects_repeated_edge(sample_schema: CompiledSchema) -> None:
    """Report one violation on a block reached twice from one control structure."""
    graph = InstanceGraphBuilder()
    control = graph.add_node("CONTROL_STRUCTURE")
    block = graph.add_node("BLOCK")
    graph.add_edge("AST", control, block)
    graph.add_edge("AST", control, block)
    result = validate(graph.build(), sample_schema)
    assert len(result) == 1
    assert result[0].node_id == block
    assert result[0].neighbor_type == "CONTROL_STRUCTURE"
    assert result[0].expected == "zero_or_one"


def test_distinct_primary_keys_are_clean(sample_schema: CompiledSchema) -> None:
    """Accept literals with different codes."""
    graph = InstanceGraphBuilder()
    graph.add_node("LITERAL", CODE="1")
    graph.add_node("LITERAL", CODE="2")
    assert validate(graph.build(), sample_schema).ok


def test_primary_key_collision_reported_once(sample_schema: CompiledSchema) -> None:
    """Report one collision for two literals with the same code."""
    graph = InstanceGraphBuilder()
    first = graph.add_node("LITERAL", CODE="1")
    second = graph.add_node("LITERAL", CODE="1")
    result = validate(graph.build(), sample_schema)
    assert len(result) == 1
    violation = result[0]
    assert violation.violation_type is ViolationType.PRIMARY_KEY_COLLISION
    assert violation.node_id == first
    assert violation.related_ids == (second,)
    assert violation.expected == "CODE"
    assert violation.count == 2


def test_explicit_none_for_mandatory_property(sample_schema: CompiledSchema) -> None:
    """Report a mandatory property explicitly set to None."""
    graph = InstanceGraphBuilder()
    graph.add_node("LITERAL", CODE="1", ORDER=None)
    result = validate(graph.build(), sample_schema)
    assert [(item.violation_type, item.property_name) for item in result] == [
        (ViolationType.MISSING_MANDATORY_PROPERTY, "ORDER"),
    ]


def test_omitted_mandatory_without_default_substitution(sample_schema: CompiledSchema) -> None:
    """Report omitted mandatory properties when defaults are not substituted."""
    graph = InstanceGraphBuilder()
    graph.add_node("LITERAL", CODE="1")
    settings = ValidationSettings(substitute_defaults=False)
    result = validate(graph.build(), sample_schema, settings=settings)
    assert {item.property_name for item in result} == {"ORDER"}
    assert validate(graph.build(), sample_schema).ok


@pytest.mark.parametrize(
    ("properties", "name", "expected"),
    [
        ({"ORDER": "first"}, "ORDER", "int"),
        ({"ORDER": True}, "ORDER", "int"),
        ({"LINE_NUMBER": 1.5}, "LINE_NUMBER", "int"),
        ({"TAGS": "a"}, "TAGS", "list[string]"),
        ({"TAGS": ["a", 1]}, "TAGS", "list[string]"),
    ],
)
def test_wrong_property_type(
    sample_schema: CompiledSchema,
    properties: dict[str, object],
    name: str,
    expected: str,
) -> None:
    """Report values that do not match the property value type."""
    graph = InstanceGraphBuilder()
    block = graph.add_node("BLOCK")
    local = graph.add_node("LOCAL", NAME="x", **properties)
    graph.add_edge("AST", block, local)
    result = validate(graph.build(), sample_schema)
    assert len(result) == 1
    assert result[0].violation_type is ViolationType.WRONG_PROPERTY_TYPE
    assert result[0].property_name == name
    assert result[0].expected == expected


def test_valid_list_property_is_clean(sample_schema: CompiledSchema) -> None:
    """Accept an ordered list of correctly typed values."""
    graph = InstanceGraphBuilder()
    block = graph.add_node("BLOCK")
    local = graph.add_node("LOCAL", NAME="x", TAGS=["a", "b"], LINE_NUMBER=3)
    graph.add_edge("AST", block, local)
    assert validate(graph.build(), sample_schema).ok


def test_unknown_property(sample_schema: CompiledSchema) -> None:
    """Report undeclared properties unless the check is disabled."""
    graph = InstanceGraphBuilder()
    graph.add_node("LITERAL", CODE="1", COLOR="red")
    result = validate(graph.build(), sample_schema)
    assert [(item.violation_type, item.property_name) for item in result] == [
        (ViolationType.UNKNOWN_PROPERTY, "COLOR"),
    ]
    relaxed = ValidationSettings(check_unknown_properties=False)
    assert validate(graph.build(), sample_schema, settings=relaxed).ok


def test_abstract_and_unknown_node_types(sample_schema: CompiledSchema) -> None:
    """Reject instances of base types and of undeclared types."""
    graph = InstanceGraphBuilder()
    abstract = graph.add_node("AST_NODE")
    unknown = graph.add_node("WIDGET")
    literal = graph.add_node("LITERAL", CODE="1")
    graph.add_edge("AST", abstract, literal)
    graph.add_edge("AST", unknown, literal)
    result = validate(graph.build(), sample_schema)
    assert [(item.violation_type, item.node_id) for item in result] == [
        (ViolationType.UNKNOWN_NODE_TYPE, unknown),
        (ViolationType.ABSTRACT_NODE_INSTANCE, abstract),
    ]
    assert result[0].actual == "WIDGET"


def test_edge_violations(sample_schema: CompiledSchema) -> None:
    """Report unknown edge types, missing endpoints and disallowed endpoints."""
    graph = InstanceGraphBuilder()
    literal = graph.add_node("LITERAL", CODE="1")
    block = graph.add_node("BLOCK")
    graph.add_edge("CFG", block, literal)
    graph.add_edge("AST", block, 99)
    graph.add_edge("AST", literal, block)
    result = validate(graph.build(), sample_schema)
    assert result.counts() == {
        ViolationType.UNKNOWN_EDGE_TYPE: 1,
        ViolationType.DANGLING_EDGE: 1,
        ViolationType.DISALLOWED_EDGE_ENDPOINT: 1,
    }
    (dangling,) = result.of_type(ViolationType.DANGLING_EDGE)
    assert dangling.actual == "99"
    (disallowed,) = result.of_type(ViolationType.DISALLOWED_EDGE_ENDPOINT)
    assert disallowed.node_id == literal
    assert disallowed.node_type == "LITERAL"
    assert disallowed.neighbor_type == "BLOCK"
    assert disallowed.related_ids == (block,)


def test_duplicate_node_ids(sample_schema: CompiledSchema) -> None:
    """Report node ids used by more than one node."""
    graph = InstanceGraphBuilder()
    graph.add_node("BLOCK", node_id="n1")
    graph.add_node("BLOCK", node_id="n1")
    result = validate(graph.build(), sample_schema)
    assert len(result) == 1
    assert result[0].violation_type is ViolationType.DUPLICATE_NODE_ID
    assert result[0].count == 2


def _unknown_nodes(count: int) -> InstanceGraph:
    graph = InstanceGraphBuilder()
    for _ in range(count):
        graph.add_node("WIDGET")
    return graph.build()


def test_violation_budget_truncates(sample_schema: CompiledSchema) -> None:
    """Stop once the violation budget is reached."""
    settings = ValidationSettings(max_violations=BUDGET)
    result = validate(_unknown_nodes(UNKNOWN_NODES), sample_schema, settings=settings)
    assert len(result) == BUDGET
    assert result.truncated
    assert [item.node_id for item in result] == [0, 1, 2]
    unbounded = validate(_unknown_nodes(UNKNOWN_NODES), sample_schema)
    assert len(unbounded) == UNKNOWN_NODES
    assert not unbounded.truncated


def _mixed_graph() -> InstanceGraph:
    graph = InstanceGraphBuilder()
    for index in range(12):
        block = graph.add_node("BLOCK")
        local = graph.add_node("LOCAL", NAME=f"v{index}", ORDER="bad" if index % 4 == 0 else 1)
        for _ in range(index % 3):
            graph.add_edge("AST", block, local)
        graph.add_node("LITERAL", CODE=str(index % 5))
        graph.add_node("WIDGET" if index % 6 == 0 else "BLOCK")
    graph.add_edge("AST", 0, 500)
    return graph.build()


@pytest.mark.parametrize("max_violations", [None, 1, 7, 20])
def test_parallel_matches_serial(
    sample_schema: CompiledSchema,
    max_violations: int | None,
) -> None:
    """Produce identical results with partitioned workers."""
    graph = _mixed_graph()
    serial = validate(
        graph,
        sample_schema,
        settings=ValidationSettings(max_violations=max_violations),
    )
    parallel = validate(
        graph,
        sample_schema,
        settings=ValidationSettings(
            max_violations=max_violations,
            max_workers=4,
            partition_size=5,
        ),
    )
    assert parallel == serial
    assert len(serial) > 0


def test_validator_reusable_across_graphs(sample_schema: CompiledSchema) -> None:
    """Validate several graphs with one validator."""
    validator = GraphValidator(sample_schema)
    assert validator.validate(_block_with_locals(1)).ok
    assert not validator.validate(_block_with_locals(0)).ok


def test_materialize_properties_substitutes_defaults(sample_schema: CompiledSchema) -> None:
    """Return values in offset order with defaults substituted."""
    graph = InstanceGraphBuilder()
    graph.add_node("LOCAL", NAME="x")
    node = graph.build().nodes[0]
    assert materialize_properties(node, sample_schema) == ((), -1, "<empty>", None, "x")
    assert materialize_properties(node, sample_schema, substitute_defaults=False) == (
        (),
        None,
        None,
        None,
        "x",
    )


def test_graph_decoded_from_json(sample_schema: CompiledSchema) -> None:
    """Validate a graph decoded from its JSON form."""
    payload = """
    {
      "nodes": [
        {"id": 1, "node_type": "BLOCK"},
        {"id": "l", "node_type": "LOCAL", "properties": {"NAME": "x", "TAGS": ["t"]}}
      ],
      "edges": [{"edge_type": "AST", "source": 1, "target": "l"}]
    }
    """
    graph = graph_from_json(payload)
    assert graph.nodes[1].properties == {"NAME": "x", "TAGS": ["t"]}
    assert validate(graph, sample_schema).ok


def test_violation_messages(sample_schema: CompiledSchema) -> None:
    """Describe violations in readable messages."""
    result = validate(_block_with_locals(0), sample_schema)
    message = str(result[0])
    assert "LOCAL node 1" in message
    assert "incoming AST" in message
    assert "one" in message


def test_exactly_full_budget_is_not_truncated(sample_schema: CompiledSchema) -> None:
    """Keep the truncated flag clear when the violations fit the budget exactly."""
    settings = ValidationSettings(max_violations=BUDGET)
    result = validate(_unknown_nodes(BUDGET), sample_schema, settings=settings)
    assert len(result) == BUDGET
    assert not result.truncated


def test_budget_overflow_in_later_phase_is_truncated(sample_schema: CompiledSchema) -> None:
    """Flag truncation when a later phase finds violations past a full budget."""
    graph = InstanceGraphBuilder()
    graph.add_node("WIDGET")
    graph.add_node("BLOCK")
    graph.add_node("LOCAL", NAME="x")
    settings = ValidationSettings(max_violations=1)
    result = validate(graph.build(), sample_schema, settings=settings)
    assert [item.violation_type for item in result] == [ViolationType.UNKNOWN_NODE_TYPE]
    assert result.truncated


def _source_bounded_schema() -> CompiledSchema:
    builder = SchemaBuilder()
    ast_node = builder.add_base_type("AST_NODE")
    expression = builder.add_base_type("EXPRESSION").extendz(ast_node)
    ret = builder.add_node_type("RETURN").extendz(ast_node)
    builder.add_node_type("CALL").extendz(expression)
    builder.add_node_type("LITERAL").extendz(expression)
    identifier = builder.add_node_type("IDENTIFIER").extendz(expression)
    local = builder.add_node_type("LOCAL")
    ast = builder.add_edge_type("AST")
    ref = builder.add_edge_type("REF")
    ret.add_out_edge(ast, expression, cardinality_out=Cardinality.ONE)
    identifier.add_out_edge(ref, local, cardinality_out=Cardinality.ZERO_OR_ONE)
    return builder.compile()


@pytest.mark.parametrize(("refs", "violates"), [(0, False), (1, False), (2, True)])
def test_outgoing_zero_or_one_bound(refs: int, violates: bool) -> None:
    """Count outgoing edges against a bound declared on the source side."""
    graph = InstanceGraphBuilder()
    identifier = graph.add_node("IDENTIFIER")
    for _ in range(refs):
        graph.add_edge("REF", identifier, graph.add_node("LOCAL"))
    result = validate(graph.build(), _source_bounded_schema())
    if not violates:
        assert result.ok
        return
    assert len(result) == 1
    violation = result[0]
    assert violation.violation_type is ViolationType.CARDINALITY_VIOLATION
    assert violation.node_id == identifier
    assert violation.direction is Direction.OUT
    assert violation.neighbor_type == "LOCAL"
    assert violation.expected == "zero_or_one"
    assert violation.count == refs


@pytest.mark.parametrize(
    ("children", "count"),
    [
        ((), 0),
        (("LITERAL",), None),
        (("CALL",), None),
        (("LITERAL", "CALL"), 2),
    ],
)
def test_base_type_bound_sums_concrete_subtypes(
    children: tuple[str, ...],
    count: int | None,
) -> None:
    """Count edges to every subtype of a base type against one shared bound."""
    graph = InstanceGraphBuilder()
    ret = graph.add_node("RETURN")
    for child in children:
        graph.add_edge("AST", ret, graph.add_node(child))
    result = validate(graph.build(), _source_bounded_schema())
    if count is None:
        assert result.ok
        return
    assert len(result) == 1
    violation = result[0]
    assert violation.node_id == ret
    assert violation.direction is Direction.OUT
    assert violation.neighbor_type == "EXPRESSION"
    assert violation.expected == "one"
    assert violation.count == count
