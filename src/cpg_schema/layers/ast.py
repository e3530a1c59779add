"""Abstract syntax tree layer.

All tree nodes derive from ``AST_NODE`` and link to their children through
outgoing ``AST`` edges. Expressions are typed where the frontend knows the
type, and control structures carry one of the ``ControlStructureTypes`` so that
control flow can be derived from the tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cpg_schema.builder import SchemaBuilder
from cpg_schema.constants import Constant
from cpg_schema.edge_types import EdgeTypeDecl
from cpg_schema.enums import Cardinality, ValueType
from cpg_schema.layers import proto_ids
from cpg_schema.layers.base import DEFAULT_INT, DEFAULT_STRING, BaseLayer
from cpg_schema.node_types import NodeTypeDecl
from cpg_schema.properties import PropertyDecl

LAYER_NAME: Final = "ast"
MODIFIER_TYPES: Final = "ModifierTypes"
CONTROL_STRUCTURE_TYPES: Final = "ControlStructureTypes"

_MODIFIERS: tuple[tuple[str, int, str], ...] = (
    ("STATIC", proto_ids.MOD_STATIC, "The static modifier"),
    ("PUBLIC", proto_ids.MOD_PUBLIC, "The public modifier"),
    ("PROTECTED", proto_ids.MOD_PROTECTED, "The protected modifier"),
    ("PRIVATE", proto_ids.MOD_PRIVATE, "The private modifier"),
    ("ABSTRACT", proto_ids.MOD_ABSTRACT, "The abstract modifier"),
    ("NATIVE", proto_ids.MOD_NATIVE, "The native modifier"),
    ("CONSTRUCTOR", proto_ids.MOD_CONSTRUCTOR, "The constructor modifier"),
    ("VIRTUAL", proto_ids.MOD_VIRTUAL, "The virtual modifier"),
    ("INTERNAL", proto_ids.MOD_INTERNAL, "The internal modifier"),
    ("FINAL", proto_ids.MOD_FINAL, "The final modifier"),
    ("READONLY", proto_ids.MOD_READONLY, "The readonly modifier"),
    ("MODULE", proto_ids.MOD_MODULE, "Marks a method as the module-level code"),
    ("LAMBDA", proto_ids.MOD_LAMBDA, "Marks a method as an anonymous function"),
)

_CONTROL_STRUCTURES: tuple[tuple[str, int, str], ...] = (
    ("BREAK", proto_ids.CS_BREAK, "Break statement; labeled breaks carry a JUMP_LABEL child"),
    (
        "CONTINUE",
        proto_ids.CS_CONTINUE,
        "Continue statement; labeled continues carry a JUMP_LABEL child",
    ),
    ("WHILE", proto_ids.CS_WHILE, "Represents a while statement"),
    ("DO", proto_ids.CS_DO, "Represents a do statement"),
    ("FOR", proto_ids.CS_FOR, "Represents a for statement"),
    ("GOTO", proto_ids.CS_GOTO, "Represents a goto statement"),
    ("IF", proto_ids.CS_IF, "Represents an if statement"),
    ("ELSE", proto_ids.CS_ELSE, "Represents an else statement"),
    ("SWITCH", proto_ids.CS_SWITCH, "Represents a switch statement"),
    ("TRY", proto_ids.CS_TRY, "Represents a try statement"),
    ("THROW", proto_ids.CS_THROW, "Represents a throw statement"),
    ("MATCH", proto_ids.CS_MATCH, "Represents a match expression"),
    ("YIELD", proto_ids.CS_YIELD, "Represents a yield expression"),
    ("CATCH", proto_ids.CS_CATCH, "Represents a catch clause"),
    ("FINALLY", proto_ids.CS_FINALLY, "Represents a finally clause"),
)


@dataclass(frozen=True)
class AstLayer:
    """Handles declared by the AST layer."""

    order: PropertyDecl
    type_full_name: PropertyDecl
    ast_node: NodeTypeDecl
    expression: NodeTypeDecl
    call_repr: NodeTypeDecl
    block: NodeTypeDecl
    literal: NodeTypeDecl
    local: NodeTypeDecl
    identifier: NodeTypeDecl
    field_identifier: NodeTypeDecl
    modifier: NodeTypeDecl
    jump_target: NodeTypeDecl
    jump_label: NodeTypeDecl
    method_ref: NodeTypeDecl
    type_ref: NodeTypeDecl
    ret: NodeTypeDecl
    control_structure: NodeTypeDecl
    unknown: NodeTypeDecl
    call: NodeTypeDecl
    ast: EdgeTypeDecl
    condition: EdgeTypeDecl


def _optional_int(builder: SchemaBuilder, name: str, proto_id: int, comment: str) -> PropertyDecl:
    return builder.add_property(name, ValueType.INT, comment=comment).proto_id(proto_id)


def _mandatory_string(
    builder: SchemaBuilder,
    name: str,
    proto_id: int,
    comment: str,
) -> PropertyDecl:
    return (
        builder.add_property(name, ValueType.STRING, comment=comment)
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_id)
    )


def declare_ast(builder: SchemaBuilder, base: BaseLayer) -> AstLayer:
    """Declare the AST layer.

    Returns
    -------
    AstLayer
        Declared handles.
    """
    builder.add_layer(
        LAYER_NAME,
        doc_index=7,
        description="Syntax trees for all compilation units, connected through AST edges.",
        provided_by_frontend=True,
    )
    order = (
        builder.add_property(
            "ORDER",
            ValueType.INT,
            comment="Position of the node among its AST siblings; the left-most child is 0.",
        )
        .mandatory(DEFAULT_INT)
        .proto_id(proto_ids.ORDER)
    )
    line_number = _optional_int(
        builder, "LINE_NUMBER", proto_ids.LINE_NUMBER, "Start line of the represented code."
    )
    column_number = _optional_int(
        builder, "COLUMN_NUMBER", proto_ids.COLUMN_NUMBER, "Start column of the represented code."
    )
    offset = _optional_int(
        builder, "OFFSET", proto_ids.OFFSET, "Start offset of the code in its file's CONTENT."
    )
    offset_end = _optional_int(
        builder, "OFFSET_END", proto_ids.OFFSET_END, "Exclusive end offset in the file's CONTENT."
    )
    type_full_name = _mandatory_string(
        builder,
        "TYPE_FULL_NAME",
        proto_ids.TYPE_FULL_NAME,
        "Fully-qualified name of the static type of an expression or declaration.",
    )
    canonical_name = _mandatory_string(
        builder,
        "CANONICAL_NAME",
        proto_ids.CANONICAL_NAME,
        "Canonical name of a FIELD_IDENTIFIER; equal for two identifiers iff they alias.",
    )
    modifier_type = _mandatory_string(
        builder,
        "MODIFIER_TYPE",
        proto_ids.MODIFIER_TYPE,
        "Modifier kind; see the ModifierTypes constants.",
    )
    control_structure_type = _mandatory_string(
        builder,
        "CONTROL_STRUCTURE_TYPE",
        proto_ids.CONTROL_STRUCTURE_TYPE,
        "Control structure kind; see the ControlStructureTypes constants.",
    )
    signature = _mandatory_string(
        builder,
        "SIGNATURE",
        proto_ids.SIGNATURE,
        "Method signature; its format is language specific.",
    )
    method_full_name = _mandatory_string(
        builder,
        "METHOD_FULL_NAME",
        proto_ids.METHOD_FULL_NAME,
        "FULL_NAME of a referenced or invoked method.",
    )

    ast_node = (
        builder.add_base_type(
            "AST_NODE",
            comment="Base type of all syntax tree nodes. CODE holds the verbatim code and "
            "ORDER the position among siblings.",
        )
        .add_properties(order, base.code)
        .add_properties(line_number, column_number, offset, offset_end)
    )
    expression = builder.add_base_type(
        "EXPRESSION",
        comment="Base type of all code pieces that can be evaluated.",
    ).extendz(ast_node)
    call_repr = builder.add_base_type(
        "CALL_REPR",
        comment="Base type of CALL that language implementers may safely ignore.",
    ).add_properties(base.name, signature)

    block = (
        builder.add_node_type(
            "BLOCK",
            comment="A compound statement or block expression; its value is that of its "
            "last expression.",
        )
        .proto_id(proto_ids.BLOCK)
        .add_properties(type_full_name)
    )
    literal = (
        builder.add_node_type(
            "LITERAL",
            comment="A literal such as an integer or string constant.",
        )
        .proto_id(proto_ids.LITERAL)
        .add_properties(type_full_name)
        .primary_key(base.code)
    )
    local = (
        builder.add_node_type(
            "LOCAL",
            comment="A local variable; CODE holds the declaration without initializer.",
        )
        .proto_id(proto_ids.LOCAL)
        .add_properties(type_full_name)
        .extendz(base.declaration, ast_node)
        .primary_key(base.name)
    )
    identifier = (
        builder.add_node_type(
            "IDENTIFIER",
            comment="An identifier referring to a variable by name.",
        )
        .proto_id(proto_ids.IDENTIFIER)
        .add_properties(type_full_name, base.name)
        .primary_key(base.name)
    )
    field_identifier = (
        builder.add_node_type(
            "FIELD_IDENTIFIER",
            comment="The field accessed in a field access, e.g. b in a.b.",
        )
        .proto_id(proto_ids.FIELD_IDENTIFIER)
        .add_properties(canonical_name)
    )
    builder.add_constants(
        MODIFIER_TYPES,
        *(
            Constant(name, name, ValueType.STRING, comment).proto_id(proto_id)
            for name, proto_id, comment in _MODIFIERS
        ),
    )
    modifier = (
        builder.add_node_type(
            "MODIFIER",
            comment="A language dependent modifier such as static or public. Not an expression.",
        )
        .proto_id(proto_ids.MODIFIER)
        .add_properties(modifier_type)
        .extendz(ast_node)
    )
    jump_target = (
        builder.add_node_type(
            "JUMP_TARGET",
            comment="A location marked as the target of a jump, e.g. via a label.",
        )
        .proto_id(proto_ids.JUMP_TARGET)
        .add_properties(base.name, base.parser_type_name)
        .extendz(ast_node)
    )
    jump_label = (
        builder.add_node_type(
            "JUMP_LABEL",
            comment="The label, and thus the JUMP_TARGET, of a BREAK or CONTINUE.",
        )
        .proto_id(proto_ids.JUMP_LABEL)
        .add_properties(base.name, base.parser_type_name)
        .extendz(ast_node)
    )
    method_ref = (
        builder.add_node_type(
            "METHOD_REF",
            comment="A reference to a method passed as an argument in a call.",
        )
        .proto_id(proto_ids.METHOD_REF)
        .add_properties(type_full_name, method_full_name)
    )
    type_ref = (
        builder.add_node_type("TYPE_REF", comment="Reference to a type/class")
        .proto_id(proto_ids.TYPE_REF)
        .add_properties(type_full_name)
    )
    ret = (
        builder.add_node_type(
            "RETURN",
            comment="A return instruction such as return x.",
        )
        .proto_id(proto_ids.RETURN)
        .starter_name("ret")
        .primary_key(base.code)
    )
    builder.add_constants(
        CONTROL_STRUCTURE_TYPES,
        *(
            Constant(name, name, ValueType.STRING, comment).proto_id(proto_id)
            for name, proto_id, comment in _CONTROL_STRUCTURES
        ),
    )
    control_structure = (
        builder.add_node_type(
            "CONTROL_STRUCTURE",
            comment="A control structure or jump; CONTROL_STRUCTURE_TYPE names its kind.",
        )
        .proto_id(proto_ids.CONTROL_STRUCTURE)
        .add_properties(base.parser_type_name, control_structure_type)
    )
    unknown = (
        builder.add_node_type(
            "UNKNOWN",
            comment="Any tree node the frontend keeps that has no dedicated node type.",
        )
        .proto_id(proto_ids.UNKNOWN)
        .add_properties(base.parser_type_name, type_full_name)
    )
    call = (
        builder.add_node_type(
            "CALL",
            comment="A call site. METHOD_FULL_NAME names the callee and TYPE_FULL_NAME its "
            "return type.",
        )
        .proto_id(proto_ids.CALL)
        .extendz(call_repr)
        .add_properties(type_full_name, method_full_name)
        .primary_key(base.name)
    )
    for node in (
        field_identifier,
        identifier,
        literal,
        block,
        control_structure,
        method_ref,
        type_ref,
        ret,
        unknown,
        call,
    ):
        node.extendz(expression)

    ast = builder.add_edge_type(
        "AST",
        comment="Connects a parent node to its child in the syntax tree.",
    ).proto_id(proto_ids.AST)
    condition = builder.add_edge_type(
        "CONDITION",
        comment="Connects a control structure to the expression holding its condition.",
    ).proto_id(proto_ids.CONDITION)

    for target in (identifier, literal, method_ref, type_ref, ret, block, unknown, jump_target):
        ret.add_out_edge(ast, target)
    ret.add_out_edge(ast, control_structure).add_out_edge(ast, call)

    for target in (identifier, literal, method_ref, type_ref, ret):
        block.add_out_edge(ast, target)
    block.add_out_edge(ast, block, cardinality_in=Cardinality.ONE).add_out_edge(
        ast,
        local,
        step_name_out="local",
        step_name_out_doc="Traverse to locals of this block.",
        step_name_in="definingBlock",
        step_name_in_doc="The block in which local is declared.",
    )
    for target in (unknown, jump_target, control_structure, call):
        block.add_out_edge(ast, target)

    (
        control_structure.add_out_edge(ast, literal, cardinality_in=Cardinality.ONE)
        .add_out_edge(ast, modifier)
        .add_out_edge(ast, local)
        .add_out_edge(ast, identifier, cardinality_in=Cardinality.ZERO_OR_ONE)
        .add_out_edge(ast, ret, cardinality_in=Cardinality.ZERO_OR_ONE)
        .add_out_edge(ast, block, cardinality_in=Cardinality.ZERO_OR_ONE)
        .add_out_edge(ast, jump_target)
        .add_out_edge(ast, unknown)
        .add_out_edge(ast, control_structure)
        .add_out_edge(ast, method_ref, cardinality_in=Cardinality.ONE)
        .add_out_edge(ast, type_ref)
        .add_out_edge(ast, jump_label)
        .add_out_edge(ast, call, cardinality_in=Cardinality.ONE)
    )
    for target in (
        literal,
        modifier,
        local,
        identifier,
        field_identifier,
        ret,
        block,
        jump_target,
        unknown,
        control_structure,
        call,
    ):
        unknown.add_out_edge(ast, target)
    for target in (call, identifier, literal, method_ref, type_ref, ret, block, control_structure):
        call.add_out_edge(ast, target)
    call.add_out_edge(ast, field_identifier, cardinality_in=Cardinality.ONE)
    for target in (
        literal,
        identifier,
        ret,
        block,
        method_ref,
        type_ref,
        control_structure,
        jump_target,
        unknown,
        call,
    ):
        control_structure.add_out_edge(condition, target)

    identifier.add_out_edge(
        base.ref,
        local,
        cardinality_out=Cardinality.ZERO_OR_ONE,
        step_name_in="referencingIdentifiers",
        step_name_in_doc="Places (identifier) where this local is being referenced",
    )

    return AstLayer(
        order=order,
        type_full_name=type_full_name,
        ast_node=ast_node,
        expression=expression,
        call_repr=call_repr,
        block=block,
        literal=literal,
        local=local,
        identifier=identifier,
        field_identifier=field_identifier,
        modifier=modifier,
        jump_target=jump_target,
        jump_label=jump_label,
        method_ref=method_ref,
        type_ref=type_ref,
        ret=ret,
        control_structure=control_structure,
        unknown=unknown,
        call=call,
        ast=ast,
        condition=condition,
    )


__all__ = ["CONTROL_STRUCTURE_TYPES", "MODIFIER_TYPES", "AstLayer", "declare_ast"]
