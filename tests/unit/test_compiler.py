"""Tests for schema compilation, identifiers and the builder lifecycle."""

from __future__ import annotations

import dataclasses

import pytest

from cpg_schema import (
    Cardinality,
    CompiledSchema,
    Constant,
    Direction,
    ElementKind,
    ProtoIdScope,
    SchemaBuilder,
    SchemaSettings,
    SchemaState,
    ValueType,
    compile_schema,
)
from cpg_schema.compiler import assign_ids
from cpg_schema.errors import (
    DuplicateNameError,
    DuplicateProtoIdError,
    InvalidPrimaryKeyError,
    InvalidValueError,
    SchemaError,
    SchemaErrorKind,
    SchemaFrozenError,
    UnknownPropertyError,
)
from tests.test_helpers.immutability import assert_frozen
from tests.test_helpers.sample_schema import build_sample, declare_sample

SAMPLE_NODE_TYPES = 6
SAMPLE_PROPERTIES = 5


def test_assign_ids_continues_after_largest_proto_id() -> None:
    """Number elements without a protocol id after the largest explicit id."""
    ids = assign_ids([("a", None), ("b", 7), ("c", None), ("d", 2)])
    assert ids == {"a": 8, "b": 7, "c": 9, "d": 2}


def test_assign_ids_without_proto_ids_uses_declaration_order() -> None:
    """Start at zero when no protocol ids were declared."""
    assert assign_ids([("x", None), ("y", None)]) == {"x": 0, "y": 1}


def test_compile_is_deterministic() -> None:
    """Produce equal content and fingerprints for identical declarations."""
    first = build_sample()
    second = build_sample()
    assert first == second
    assert first.fingerprint == second.fingerprint
    assert len(first.fingerprint) == 64


def test_fingerprint_tracks_content() -> None:
    """Change the fingerprint when the declarations change."""
    builder = declare_sample(SchemaBuilder("sample", "1.0"))
    builder.add_property("EXTRA", ValueType.BOOLEAN)
    assert builder.compile().fingerprint != build_sample().fingerprint


def test_compiled_records_sorted_by_id(sample_schema: CompiledSchema) -> None:
    """Store every record section in id order."""
    assert len(sample_schema.node_types) == SAMPLE_NODE_TYPES
    assert len(sample_schema.properties) == SAMPLE_PROPERTIES
    type_ids = [info.type_id for info in sample_schema.node_types]
    assert type_ids == sorted(type_ids)
    assert [info.name for info in sample_schema.node_types] == [
        "AST_NODE",
        "DECLARATION",
        "BLOCK",
        "LOCAL",
        "LITERAL",
        "CONTROL_STRUCTURE",
    ]


def test_builder_lifecycle_freezes_after_compile() -> None:
    """Reject declarations after a successful compile."""
    builder = declare_sample(SchemaBuilder("sample"))
    assert builder.state is SchemaState.DECLARED
    compiled = builder.compile()
    assert builder.state is SchemaState.FROZEN
    assert builder.compile() is compiled
    assert compile_schema(builder) is compiled
    with pytest.raises(SchemaFrozenError) as excinfo:
        builder.add_property("LATE", ValueType.STRING)
    assert excinfo.value.kind is SchemaErrorKind.SCHEMA_FROZEN
    block = builder.node_types.get("BLOCK")
    assert block is not None
    with pytest.raises(SchemaFrozenError):
        block.add_properties("LATE")
    with pytest.raises(SchemaFrozenError):
        builder.add_layer("late")


def test_failed_compile_leaves_builder_mutable() -> None:
    """Return to the declared state after a failed compile."""
    builder = SchemaBuilder()
    name = builder.add_property("NAME", ValueType.STRING)
    code = builder.add_property("CODE", ValueType.STRING)
    node = builder.add_node_type("N").add_properties(name).primary_key(code)
    with pytest.raises(InvalidPrimaryKeyError):
        builder.compile()
    assert builder.state is SchemaState.DECLARED
    node.primary_key(name)
    assert builder.compile().node_type("N").primary_key == ("NAME",)


def test_compiled_schema_is_immutable(sample_schema: CompiledSchema) -> None:
    """Reject attribute assignment on compiled records."""
    assert_frozen(lambda: sample_schema, "name", "other", dataclasses.FrozenInstanceError)
    assert_frozen(
        lambda: sample_schema.node_type("BLOCK"),
        "name",
        "OTHER",
        AttributeError,
    )


@pytest.mark.parametrize(
    ("scope", "fails"),
    [(ProtoIdScope.SCHEMA, True), (ProtoIdScope.KIND, False)],
)
def test_proto_id_scope(scope: ProtoIdScope, *, fails: bool) -> None:
    """Share protocol ids across element kinds only in kind scope."""
    builder = SchemaBuilder(settings=SchemaSettings(proto_id_scope=scope))
    builder.add_property("NAME", ValueType.STRING).proto_id(5)
    builder.add_node_type("N").proto_id(5)
    if fails:
        with pytest.raises(DuplicateProtoIdError) as excinfo:
            builder.compile()
        assert excinfo.value.kind is SchemaErrorKind.DUPLICATE_PROTO_ID
    else:
        assert builder.compile().node_type("N").type_id == 5


@pytest.mark.parametrize("scope", list(ProtoIdScope))
def test_duplicate_proto_id_within_kind_fails(scope: ProtoIdScope) -> None:
    """Reject two node types sharing a protocol id in every scope."""
    builder = SchemaBuilder(settings=SchemaSettings(proto_id_scope=scope))
    builder.add_node_type("A").proto_id(3)
    builder.add_node_type("B").proto_id(3)
    with pytest.raises(DuplicateProtoIdError):
        builder.compile()


def test_proto_ids_listed_for_consumers() -> None:
    """List every declared protocol id ordered by value."""
    builder = SchemaBuilder()
    builder.add_property("NAME", ValueType.STRING).proto_id(2)
    builder.add_node_type("N").proto_id(1)
    builder.add_edge_type("E").proto_id(4)
    builder.add_constants("Kinds", Constant("A", "a").proto_id(3))
    entries = builder.compile().proto_ids()
    assert [(entry.proto_id, entry.kind, entry.name) for entry in entries] == [
        (1, ElementKind.NODE_TYPE, "N"),
        (2, ElementKind.PROPERTY, "NAME"),
        (3, ElementKind.CONSTANT, "Kinds.A"),
        (4, ElementKind.EDGE_TYPE, "E"),
    ]


def test_alias_collision_fails() -> None:
    """Reject an alias equal to another type name."""
    builder = SchemaBuilder()
    builder.add_node_type("RET")
    builder.add_node_type("RETURN").starter_name("RET")
    with pytest.raises(DuplicateNameError):
        builder.compile()


def test_duplicate_node_type_fails() -> None:
    """Reject declaring a node type twice."""
    builder = SchemaBuilder()
    builder.add_base_type("AST_NODE")
    with pytest.raises(DuplicateNameError) as excinfo:
        builder.add_node_type("AST_NODE")
    assert excinfo.value.kind is SchemaErrorKind.DUPLICATE_NAME


def test_unknown_property_reference_fails() -> None:
    """Reject attaching a property that was never registered."""
    builder = SchemaBuilder()
    builder.add_node_type("N").add_properties("MISSING")
    with pytest.raises(UnknownPropertyError):
        builder.compile()


@pytest.mark.parametrize(
    ("value", "value_type"),
    [("a", ValueType.INT), (1, ValueType.STRING), (1.5, ValueType.LONG)],
)
def test_constant_value_must_match_type(value: object, value_type: ValueType) -> None:
    """Reject constants whose value does not match the value type."""
    builder = SchemaBuilder()
    builder.add_constants("Bad", Constant("X", value, value_type))  # type: ignore[arg-type]
    with pytest.raises(InvalidValueError) as excinfo:
        builder.compile()
    assert isinstance(excinfo.value, SchemaError)


def test_duplicate_constant_in_category_fails() -> None:
    """Reject a constant name repeated within one category."""
    builder = SchemaBuilder()
    builder.add_constants("Kinds", Constant("A", "a"))
    with pytest.raises(DuplicateNameError):
        builder.add_constants("Kinds", Constant("A", "b"))


def test_consumer_lookups(sample_schema: CompiledSchema) -> None:
    """Expose name, id and subtype lookups."""
    local_id = sample_schema.type_id("LOCAL")
    assert sample_schema.type_name(local_id) == "LOCAL"
    assert sample_schema.node_type(local_id) is sample_schema.node_type("LOCAL")
    assert sample_schema.find_node_type("MISSING") is None
    with pytest.raises(KeyError):
        sample_schema.node_type("MISSING")
    assert sample_schema.is_subtype("LOCAL", "AST_NODE")
    assert sample_schema.is_subtype("LOCAL", "LOCAL")
    assert not sample_schema.is_subtype("AST_NODE", "LOCAL")
    assert [info.name for info in sample_schema.concrete_subtypes("AST_NODE")] == [
        "BLOCK",
        "LOCAL",
        "LITERAL",
        "CONTROL_STRUCTURE",
    ]


def test_consumer_properties(sample_schema: CompiledSchema) -> None:
    """Expose effective properties with value type and flags."""
    props = {prop.name: prop for prop in sample_schema.properties_of("LOCAL")}
    assert list(props) == ["TAGS", "ORDER", "CODE", "LINE_NUMBER", "NAME"]
    assert props["NAME"].mandatory
    assert props["NAME"].default == "<empty>"
    assert props["TAGS"].is_list
    assert not props["LINE_NUMBER"].mandatory
    assert props["ORDER"].value_type is ValueType.INT


def test_consumer_adjacency(sample_schema: CompiledSchema) -> None:
    """Expose permitted targets and cardinality per direction."""
    targets = {
        sample_schema.type_name(rule.type_id): rule
        for rule in sample_schema.permitted_targets("BLOCK", "AST")
    }
    assert set(targets) == {"LOCAL", "LITERAL"}
    assert targets["LOCAL"].cardinality is Cardinality.LIST
    assert targets["LOCAL"].step_name == "local"
    incoming = sample_schema.adjacency_entry("LOCAL", "AST", Direction.IN)
    assert incoming is not None
    rule = incoming.rule_for(sample_schema.type_id("BLOCK"))
    assert rule is not None
    assert rule.cardinality is Cardinality.ONE
    assert rule.step_name == "definingBlock"
    assert sample_schema.permitted_targets("LOCAL", "AST") == ()


def test_layers_recorded_in_doc_order() -> None:
    """Carry layer metadata ordered by documentation index."""
    builder = SchemaBuilder()
    builder.add_layer("second", doc_index=2)
    builder.add_layer("first", doc_index=1, provided_by_frontend=True)
    with pytest.raises(DuplicateNameError):
        builder.add_layer("first")
    layers = builder.compile().layers
    assert [layer.name for layer in layers] == ["first", "second"]
    assert layers[0].provided_by_frontend
