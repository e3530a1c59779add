"""Annotation layer: annotations, their parameters and argument values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cpg_schema.builder import SchemaBuilder
from cpg_schema.layers import proto_ids
from cpg_schema.layers.ast import AstLayer
from cpg_schema.layers.base import BaseLayer
from cpg_schema.node_types import NodeTypeDecl

LAYER_NAME: Final = "annotation"


@dataclass(frozen=True)
class AnnotationLayer:
    """Handles declared by the annotation layer."""

    annotation: NodeTypeDecl
    annotation_parameter_assign: NodeTypeDecl
    annotation_parameter: NodeTypeDecl
    annotation_literal: NodeTypeDecl
    array_initializer: NodeTypeDecl


def declare_annotation(builder: SchemaBuilder, base: BaseLayer, ast: AstLayer) -> AnnotationLayer:
    """Declare the annotation layer on top of the AST layer.

    Returns
    -------
    AnnotationLayer
        Declared handles.
    """
    builder.add_layer(
        LAYER_NAME,
        doc_index=20,
        description="Java annotation related CPG definitions.",
        provided_by_frontend=True,
    )
    annotation = (
        builder.add_node_type(
            "ANNOTATION",
            comment="A method annotation. FULL_NAME names the annotation class or interface "
            "itself, not the ANNOTATION node.",
        )
        .proto_id(proto_ids.ANNOTATION)
        .add_properties(base.name, base.full_name)
        .extendz(ast.expression)
    )
    annotation_parameter_assign = (
        builder.add_node_type(
            "ANNOTATION_PARAMETER_ASSIGN",
            comment="Assignment of annotation argument to annotation parameter",
        )
        .proto_id(proto_ids.ANNOTATION_PARAMETER_ASSIGN)
        .extendz(ast.ast_node)
    )
    annotation_parameter = (
        builder.add_node_type("ANNOTATION_PARAMETER", comment="Formal annotation parameter")
        .proto_id(proto_ids.ANNOTATION_PARAMETER)
        .extendz(ast.ast_node)
    )
    annotation_literal = (
        builder.add_node_type(
            "ANNOTATION_LITERAL",
            comment="A literal value assigned to an ANNOTATION_PARAMETER",
        )
        .proto_id(proto_ids.ANNOTATION_LITERAL)
        .add_properties(base.name)
        .extendz(ast.expression)
    )
    array_initializer = (
        builder.add_node_type("ARRAY_INITIALIZER", comment="Initialization construct for arrays")
        .proto_id(proto_ids.ARRAY_INITIALIZER)
        .extendz(ast.ast_node, ast.expression)
    )

    annotation.add_out_edge(ast.ast, annotation_parameter_assign)
    for target in (annotation_parameter, array_initializer, annotation_literal, annotation):
        annotation_parameter_assign.add_out_edge(ast.ast, target)
    array_initializer.add_out_edge(ast.ast, ast.literal)
    for owner in (ast.literal, ast.identifier, ast.method_ref, ast.unknown):
        owner.add_out_edge(ast.ast, annotation)

    return AnnotationLayer(
        annotation=annotation,
        annotation_parameter_assign=annotation_parameter_assign,
        annotation_parameter=annotation_parameter,
        annotation_literal=annotation_literal,
        array_initializer=array_initializer,
    )


__all__ = ["AnnotationLayer", "declare_annotation"]
