"""Default code property graph schema, declared layer by layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cpg_schema.builder import SchemaBuilder
from cpg_schema.compiled import CompiledSchema
from cpg_schema.config import SchemaSettings
from cpg_schema.layers.annotation import AnnotationLayer, declare_annotation
from cpg_schema.layers.ast import AstLayer, declare_ast
from cpg_schema.layers.base import BaseLayer, declare_base
from cpg_schema.layers.meta_data import MetaDataLayer, declare_meta_data

DEFAULT_SCHEMA_NAME: Final = "cpg"
DEFAULT_SCHEMA_VERSION: Final = "1.1"


@dataclass(frozen=True)
class DefaultSchema:
    """Handles of every default layer."""

    base: BaseLayer
    meta_data: MetaDataLayer
    ast: AstLayer
    annotation: AnnotationLayer


def declare_default_schema(builder: SchemaBuilder) -> DefaultSchema:
    """Declare the default layers on ``builder``.

    Callers may add their own declarations before compiling.

    Returns
    -------
    DefaultSchema
        Declared layer handles.
    """
    base = declare_base(builder)
    meta_data = declare_meta_data(builder, base)
    ast = declare_ast(builder, base)
    annotation = declare_annotation(builder, base, ast)
    return DefaultSchema(base=base, meta_data=meta_data, ast=ast, annotation=annotation)


def build_default_schema(settings: SchemaSettings | None = None) -> CompiledSchema:
    """Compile the default code property graph schema.

    Returns
    -------
    CompiledSchema
        Compiled default schema.
    """
    builder = SchemaBuilder(DEFAULT_SCHEMA_NAME, DEFAULT_SCHEMA_VERSION, settings=settings)
    declare_default_schema(builder)
    return builder.compile()


__all__ = [
    "DEFAULT_SCHEMA_NAME",
    "DEFAULT_SCHEMA_VERSION",
    "DefaultSchema",
    "build_default_schema",
    "declare_default_schema",
]
