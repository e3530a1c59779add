"""Base layer: properties and types shared by every other layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cpg_schema.builder import SchemaBuilder
from cpg_schema.edge_types import EdgeTypeDecl
from cpg_schema.enums import ValueType
from cpg_schema.layers import proto_ids
from cpg_schema.node_types import NodeTypeDecl
from cpg_schema.properties import PropertyDecl

DEFAULT_STRING: Final = "<empty>"
DEFAULT_INT: Final = -1

LAYER_NAME: Final = "base"


@dataclass(frozen=True)
class BaseLayer:
    """Handles declared by the base layer."""

    version: PropertyDecl
    hash: PropertyDecl
    code: PropertyDecl
    is_external: PropertyDecl
    index: PropertyDecl
    name: PropertyDecl
    full_name: PropertyDecl
    parser_type_name: PropertyDecl
    value: PropertyDecl
    content: PropertyDecl
    ast_parent_type: PropertyDecl
    ast_parent_full_name: PropertyDecl
    declaration: NodeTypeDecl
    ref: EdgeTypeDecl


def declare_base(builder: SchemaBuilder) -> BaseLayer:
    """Declare the base layer.

    Returns
    -------
    BaseLayer
        Declared handles.
    """
    builder.add_layer(LAYER_NAME, doc_index=2**31 - 1, provided_by_frontend=True)
    version = (
        builder.add_property(
            "VERSION",
            ValueType.STRING,
            comment="A version, given as a string. Used in META_DATA to name the schema "
            "version a graph conforms to.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.VERSION)
    )
    hash_ = builder.add_property(
        "HASH",
        ValueType.STRING,
        comment="Hash summarizing source contents or a sub graph, used by incremental pipelines.",
    ).proto_id(proto_ids.HASH)
    code = (
        builder.add_property(
            "CODE",
            ValueType.STRING,
            comment="The code snippet the node represents.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.CODE)
    )
    is_external = (
        builder.add_property(
            "IS_EXTERNAL",
            ValueType.BOOLEAN,
            comment="The construct is referenced but not defined in the analyzed code.",
        )
        .mandatory(False)
        .proto_id(proto_ids.IS_EXTERNAL)
    )
    index = (
        builder.add_property(
            "INDEX",
            ValueType.INT,
            comment="Index of a parameter or argument; 0 is reserved for the implicit receiver.",
        )
        .mandatory(DEFAULT_INT)
        .proto_id(proto_ids.INDEX)
    )
    name = (
        builder.add_property(
            "NAME",
            ValueType.STRING,
            comment='Name of the represented object, e.g. a method name such as "run".',
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.NAME)
    )
    full_name = (
        builder.add_property(
            "FULL_NAME",
            ValueType.STRING,
            comment="Language specific, human readable fully-qualified name of an entity.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.FULL_NAME)
    )
    parser_type_name = (
        builder.add_property(
            "PARSER_TYPE_NAME",
            ValueType.STRING,
            comment="AST node type name emitted by the parser.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.PARSER_TYPE_NAME)
    )
    value = (
        builder.add_property(
            "VALUE",
            ValueType.STRING,
            comment="String value of a key-value pair.",
        )
        .mandatory("")
        .proto_id(proto_ids.VALUE)
    )
    content = (
        builder.add_property(
            "CONTENT",
            ValueType.STRING,
            comment="Verbatim content of files included as-is, such as configuration files.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.CONTENT)
    )
    ast_parent_type = (
        builder.add_property(
            "AST_PARENT_TYPE",
            ValueType.STRING,
            comment="Type of the AST parent: METHOD, TYPE_DECL or NAMESPACE_BLOCK.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.AST_PARENT_TYPE)
    )
    ast_parent_full_name = (
        builder.add_property(
            "AST_PARENT_FULL_NAME",
            ValueType.STRING,
            comment="FULL_NAME of the AST parent of an entity.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.AST_PARENT_FULL_NAME)
    )
    declaration = builder.add_base_type(
        "DECLARATION",
        comment="Base type of all declarations.",
    ).add_properties(name)
    ref = builder.add_edge_type(
        "REF",
        comment="The source node is an identifier denoting access to the destination node.",
    ).proto_id(proto_ids.REF)
    return BaseLayer(
        version=version,
        hash=hash_,
        code=code,
        is_external=is_external,
        index=index,
        name=name,
        full_name=full_name,
        parser_type_name=parser_type_name,
        value=value,
        content=content,
        ast_parent_type=ast_parent_type,
        ast_parent_full_name=ast_parent_full_name,
        declaration=declaration,
        ref=ref,
    )


__all__ = ["DEFAULT_INT", "DEFAULT_STRING", "BaseLayer", "declare_base"]
