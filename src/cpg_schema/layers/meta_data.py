"""Meta data layer: information about how a graph was created."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cpg_schema.builder import SchemaBuilder
from cpg_schema.constants import Constant
from cpg_schema.enums import ValueType
from cpg_schema.layers import proto_ids
from cpg_schema.layers.base import DEFAULT_STRING, BaseLayer
from cpg_schema.node_types import NodeTypeDecl
from cpg_schema.properties import PropertyDecl

LAYER_NAME: Final = "meta_data"
LANGUAGES: Final = "Languages"

_LANGUAGES: tuple[tuple[str, int, str], ...] = (
    ("JAVA", proto_ids.LANG_JAVA, ""),
    ("JAVASCRIPT", proto_ids.LANG_JAVASCRIPT, ""),
    ("GOLANG", proto_ids.LANG_GOLANG, ""),
    ("CSHARP", proto_ids.LANG_CSHARP, ""),
    ("C", proto_ids.LANG_C, ""),
    ("PYTHON", proto_ids.LANG_PYTHON, ""),
    ("LLVM", proto_ids.LANG_LLVM, ""),
    ("PHP", proto_ids.LANG_PHP, ""),
    ("FUZZY_TEST_LANG", proto_ids.LANG_FUZZY_TEST_LANG, ""),
    ("GHIDRA", proto_ids.LANG_GHIDRA, "generic reverse engineering framework"),
    ("KOTLIN", proto_ids.LANG_KOTLIN, ""),
    ("NEWC", proto_ids.LANG_NEWC, "Eclipse CDT based parser for C/C++"),
    ("JAVASRC", proto_ids.LANG_JAVASRC, "Source-based front-end for Java"),
    ("PYTHONSRC", proto_ids.LANG_PYTHONSRC, "Source-based front-end for Python"),
    ("JSSRC", proto_ids.LANG_JSSRC, "Source-based JS frontend based on Babel"),
    ("RUBYSRC", proto_ids.LANG_RUBYSRC, "Source-based frontend for Ruby"),
    ("SWIFTSRC", proto_ids.LANG_SWIFTSRC, "Source-based frontend for Swift"),
    ("CSHARPSRC", proto_ids.LANG_CSHARPSRC, "Source-based frontend for C# and .NET"),
)


@dataclass(frozen=True)
class MetaDataLayer:
    """Handles declared by the meta data layer."""

    overlays: PropertyDecl
    language: PropertyDecl
    root: PropertyDecl
    meta_data: NodeTypeDecl
    languages: tuple[Constant, ...]


def declare_meta_data(builder: SchemaBuilder, base: BaseLayer) -> MetaDataLayer:
    """Declare the meta data layer.

    Exactly one ``META_DATA`` node is expected per graph; frontends create it
    and overlays record themselves in ``OVERLAYS``.

    Returns
    -------
    MetaDataLayer
        Declared handles.
    """
    builder.add_layer(
        LAYER_NAME,
        doc_index=2,
        description="Information about graph creation: the generating frontend and the "
        "overlays applied since.",
        provided_by_frontend=True,
    )
    overlays = (
        builder.add_property(
            "OVERLAYS",
            ValueType.STRING,
            comment="Names of the overlays applied to this graph, in order of application.",
        )
        .as_list()
        .proto_id(proto_ids.OVERLAYS)
    )
    language = (
        builder.add_property(
            "LANGUAGE",
            ValueType.STRING,
            comment="The frontend that generated the graph; see the Languages constants.",
        )
        .mandatory(DEFAULT_STRING)
        .proto_id(proto_ids.LANGUAGE)
    )
    root = (
        builder.add_property(
            "ROOT",
            ValueType.STRING,
            comment="Path to the root directory of the analyzed source or binary.",
        )
        .proto_id(proto_ids.ROOT)
        .mandatory(DEFAULT_STRING)
    )
    meta_data = (
        builder.add_node_type(
            "META_DATA",
            comment="Graph meta data. Exactly one node of this type exists per graph.",
        )
        .proto_id(proto_ids.META_DATA)
        .add_properties(language, base.version, overlays, base.hash, root)
    )
    languages = builder.add_constants(
        LANGUAGES,
        *(
            Constant(name, name, ValueType.STRING, comment).proto_id(proto_id)
            for name, proto_id, comment in _LANGUAGES
        ),
    )
    return MetaDataLayer(
        overlays=overlays,
        language=language,
        root=root,
        meta_data=meta_data,
        languages=languages,
    )


__all__ = ["LANGUAGES", "MetaDataLayer", "declare_meta_data"]
