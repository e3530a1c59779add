"""Sample schema declarations shared by compiler and validator tests."""

from __future__ import annotations

from typing import Final

from cpg_schema import Cardinality, CompiledSchema, SchemaBuilder, SchemaSettings, ValueType

STRING_DEFAULT: Final = "<empty>"
INT_DEFAULT: Final = -1


def declare_sample(builder: SchemaBuilder) -> SchemaBuilder:
    """Declare a small syntax tree schema on ``builder``.

    ``BLOCK -AST-> LOCAL`` requires exactly one incoming block per local,
    ``CONTROL_STRUCTURE -AST-> BLOCK`` allows at most one incoming control
    structure per block, and literals are keyed by ``CODE``.

    Returns
    -------
    SchemaBuilder
        The same builder, ready to compile.
    """
    code = builder.add_property("CODE", ValueType.STRING, mandatory=True, default=STRING_DEFAULT)
    name = builder.add_property("NAME", ValueType.STRING, mandatory=True, default=STRING_DEFAULT)
    order = builder.add_property("ORDER", ValueType.INT, mandatory=True, default=INT_DEFAULT)
    line = builder.add_property("LINE_NUMBER", ValueType.INT)
    tags = builder.add_property("TAGS", ValueType.STRING, is_list=True)

    ast_node = builder.add_base_type("AST_NODE").add_properties(order, code, line)
    declaration = builder.add_base_type("DECLARATION").add_properties(name)

    block = builder.add_node_type("BLOCK").extendz(ast_node)
    local = builder.add_node_type("LOCAL").extendz(declaration, ast_node).add_properties(tags)
    literal = builder.add_node_type("LITERAL").extendz(ast_node).primary_key(code)
    control = builder.add_node_type("CONTROL_STRUCTURE").extendz(ast_node)

    ast = builder.add_edge_type("AST")
    block.add_out_edge(
        ast,
        local,
        cardinality_in=Cardinality.ONE,
        step_name_out="local",
        step_name_in="definingBlock",
    )
    block.add_out_edge(ast, literal)
    control.add_out_edge(ast, block, cardinality_in=Cardinality.ZERO_OR_ONE)
    return builder


def build_sample(settings: SchemaSettings | None = None) -> CompiledSchema:
    """Compile the sample schema.

    Returns
    -------
    CompiledSchema
        Compiled sample schema.
    """
    return declare_sample(SchemaBuilder("sample", "1.0", settings=settings)).compile()
