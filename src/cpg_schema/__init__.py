"""Typed code property graph schema: declaration, compilation and persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING

from cpg_schema.builder import SchemaBuilder, SchemaLayer, compile_schema
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
    ProtoIdEntry,
)
from cpg_schema.config import SchemaSettings, schema_settings_from_env
from cpg_schema.constants import Constant
from cpg_schema.descriptor import (
    CompatibilityReport,
    SchemaDescriptor,
    check_compatibility,
    compiled_from_descriptor,
    decode_json,
    decode_msgpack,
    encode_json,
    encode_msgpack,
    to_descriptor,
)
from cpg_schema.enums import (
    Cardinality,
    CardinalityPolicy,
    Direction,
    ElementKind,
    ProtoIdScope,
    SchemaState,
    ValueType,
)
from cpg_schema.errors import SchemaError, SchemaErrorKind

if TYPE_CHECKING:
    from cpg_schema.layers import build_default_schema, declare_default_schema

__all__ = [
    "AdjacencyEntry",
    "Cardinality",
    "CardinalityPolicy",
    "CompatibilityReport",
    "CompiledSchema",
    "Constant",
    "ConstantInfo",
    "Direction",
    "EdgeTypeInfo",
    "ElementKind",
    "LayerInfo",
    "NeighborRule",
    "NodeTypeInfo",
    "PropertyInfo",
    "PropertySlot",
    "ProtoIdEntry",
    "ProtoIdScope",
    "SchemaBuilder",
    "SchemaDescriptor",
    "SchemaError",
    "SchemaErrorKind",
    "SchemaLayer",
    "SchemaSettings",
    "SchemaState",
    "ValueType",
    "build_default_schema",
    "check_compatibility",
    "compile_schema",
    "compiled_from_descriptor",
    "declare_default_schema",
    "decode_json",
    "decode_msgpack",
    "encode_json",
    "encode_msgpack",
    "schema_settings_from_env",
    "to_descriptor",
]


def __getattr__(name: str) -> object:
    """Lazy-load the default schema layers.

    Returns
    -------
    object
        The requested attribute.

    Raises
    ------
    AttributeError
        If the attribute is not found.
    """
    if name in {"build_default_schema", "declare_default_schema"}:
        from cpg_schema import layers

        value = getattr(layers, name)
        globals()[name] = value
        return value
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
