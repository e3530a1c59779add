"""Tests for the default code property graph schema."""

from __future__ import annotations

from collections import Counter

from cpg_schema import Cardinality, CompiledSchema, Direction, ElementKind
from cpg_schema.layers import DEFAULT_SCHEMA_NAME, DEFAULT_SCHEMA_VERSION
from cpg_schema.layers.ast import CONTROL_STRUCTURE_TYPES, MODIFIER_TYPES
from cpg_schema.layers.meta_data import LANGUAGES
from validation import InstanceGraphBuilder, ViolationType, validate


def test_default_schema_compiles(default_schema: CompiledSchema) -> None:
    """Compile the default layers."""
    assert default_schema.name == DEFAULT_SCHEMA_NAME
    assert default_schema.version == DEFAULT_SCHEMA_VERSION
    assert len(default_schema.fingerprint) == 64


def test_proto_ids_unique_per_kind(default_schema: CompiledSchema) -> None:
    """Keep every declared protocol id unique within its kind."""
    counts = Counter((entry.kind, entry.proto_id) for entry in default_schema.proto_ids())
    assert all(count == 1 for count in counts.values())
    kinds = {entry.kind for entry in default_schema.proto_ids()}
    assert kinds == set(ElementKind)


def test_local_properties(default_schema: CompiledSchema) -> None:
    """Give locals their declaration and syntax tree properties."""
    names = {prop.name for prop in default_schema.properties_of("LOCAL")}
    assert {"NAME", "CODE", "ORDER", "TYPE_FULL_NAME", "LINE_NUMBER"} <= names
    local = default_schema.node_type("LOCAL")
    assert local.primary_key == ("NAME",)
    assert default_schema.is_subtype("LOCAL", "DECLARATION")
    assert default_schema.is_subtype("LOCAL", "AST_NODE")


def test_return_alias(default_schema: CompiledSchema) -> None:
    """Resolve the ``ret`` alias to the RETURN node type."""
    assert default_schema.node_type("ret").name == "RETURN"


def test_expression_subtypes(default_schema: CompiledSchema) -> None:
    """Expand the expression base type to its concrete descendants."""
    names = {info.name for info in default_schema.concrete_subtypes("EXPRESSION")}
    assert {"CALL", "IDENTIFIER", "LITERAL", "BLOCK", "RETURN"} <= names
    assert "LOCAL" not in names
    assert default_schema.node_type("EXPRESSION").is_abstract


def test_constant_categories(default_schema: CompiledSchema) -> None:
    """Declare language, modifier and control structure constants."""
    languages = {constant.name for constant in default_schema.constants_of(LANGUAGES)}
    assert {"JAVA", "PYTHON", "C"} <= languages
    modifiers = {constant.name for constant in default_schema.constants_of(MODIFIER_TYPES)}
    assert {"STATIC", "PUBLIC", "LAMBDA"} <= modifiers
    kinds = {constant.value for constant in default_schema.constants_of(CONTROL_STRUCTURE_TYPES)}
    assert {"IF", "WHILE", "TRY"} <= kinds


def test_layers_ordered_by_doc_index(default_schema: CompiledSchema) -> None:
    """List layers in documentation order."""
    assert [layer.name for layer in default_schema.layers] == ["meta_data", "ast", "annotation", "base"]
    assert all(layer.provided_by_frontend for layer in default_schema.layers)


def test_local_defining_block_rule(default_schema: CompiledSchema) -> None:
    """Expose step names on the block to local rule."""
    entry = default_schema.adjacency_entry("LOCAL", "AST", Direction.IN)
    assert entry is not None
    rule = entry.rule_for(default_schema.type_id("BLOCK"))
    assert rule is not None
    assert rule.cardinality is Cardinality.LIST
    assert rule.step_name == "definingBlock"


def test_meta_data_node_is_valid(default_schema: CompiledSchema) -> None:
    """Accept a meta data node carrying its mandatory properties."""
    graph = InstanceGraphBuilder()
    graph.add_node("META_DATA", LANGUAGE="PYTHON", VERSION="1.1", OVERLAYS=["base"])
    assert validate(graph.build(), default_schema).ok


def test_identifier_refers_to_at_most_one_local(default_schema: CompiledSchema) -> None:
    """Reject an identifier referring to two locals."""
    graph = InstanceGraphBuilder()
    identifier = graph.add_node("IDENTIFIER", NAME="x")
    first = graph.add_node("LOCAL", NAME="a")
    second = graph.add_node("LOCAL", NAME="b")
    graph.add_edge("REF", identifier, first)
    assert validate(graph.build(), default_schema).ok
    graph.add_edge("REF", identifier, second)
    (violation,) = validate(graph.build(), default_schema)
    assert violation.violation_type is ViolationType.CARDINALITY_VIOLATION
    assert violation.node_id == identifier
    assert violation.direction is Direction.OUT
    assert violation.edge_type == "REF"
    assert violation.count == 2


def test_annotation_layer_types(default_schema: CompiledSchema) -> None:
    """Declare annotations as expressions with parameter assignments below them."""
    names = {info.name for info in default_schema.node_types}
    assert {
        "ANNOTATION",
        "ANNOTATION_PARAMETER_ASSIGN",
        "ANNOTATION_PARAMETER",
        "ANNOTATION_LITERAL",
        "ARRAY_INITIALIZER",
    } <= names
    assert default_schema.is_subtype("ANNOTATION", "EXPRESSION")
    assert {prop.name for prop in default_schema.properties_of("ANNOTATION")} >= {
        "NAME",
        "FULL_NAME",
    }
    targets = default_schema.permitted_targets("ANNOTATION_PARAMETER_ASSIGN", "AST")
    assert {default_schema.type_name(rule.type_id) for rule in targets} == {
        "ANNOTATION_PARAMETER",
        "ARRAY_INITIALIZER",
        "ANNOTATION_LITERAL",
        "ANNOTATION",
    }


def test_annotated_identifier_is_valid(default_schema: CompiledSchema) -> None:
    """Accept an annotation below an identifier."""
    graph = InstanceGraphBuilder()
    identifier = graph.add_node("IDENTIFIER", NAME="x")
    annotation = graph.add_node("ANNOTATION", NAME="Override", FULL_NAME="java.lang.Override")
    graph.add_edge("AST", identifier, annotation)
    assert validate(graph.build(), default_schema).ok


def test_literal_needs_one_control_structure_parent(default_schema: CompiledSchema) -> None:
    """Report a literal that hangs below no control structure."""
    graph = InstanceGraphBuilder()
    literal = graph.add_node("LITERAL", CODE="1")
    violations = [
        item
        for item in validate(graph.build(), default_schema)
        if item.neighbor_type == "CONTROL_STRUCTURE"
    ]
    assert len(violations) == 1
    violation = violations[0]
    assert violation.node_id == literal
    assert violation.direction is Direction.IN
    assert violation.expected == "one"
    assert violation.count == 0


def test_field_identifier_bound_by_call(default_schema: CompiledSchema) -> None:
    """Bound field identifiers to exactly one parent call."""
    entry = default_schema.adjacency_entry("FIELD_IDENTIFIER", "AST", Direction.IN)
    assert entry is not None
    bound = entry.bound_for(default_schema.type_id("CALL"))
    assert bound is not None
    assert bound.cardinality is Cardinality.ONE
