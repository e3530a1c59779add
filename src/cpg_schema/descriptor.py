"""Versioned, persisted form of a compiled schema.

A ``SchemaDescriptor`` holds the compiled records ordered by id, so two
processes can exchange schemas and check whether data written under one schema
can be read under another.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Protocol

import msgspec

from cpg_schema.compiled import (
    AdjacencyEntry,
    CompiledSchema,
    ConstantInfo,
    EdgeTypeInfo,
    LayerInfo,
    NodeTypeInfo,
    PropertyInfo,
)
from cpg_schema.enums import Cardinality, Direction, ElementKind
from cpg_schema.errors import DescriptorError
from obs.scopes import SCOPE_DESCRIPTOR
from obs.tracing import stage_span
from serde_msgspec import (
    StructBaseCompat,
    StructBaseStrict,
    convert,
    dumps_json,
    dumps_msgpack,
    loads_json,
    loads_msgpack,
    to_builtins,
    validation_error_payload,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
SUPPORTED_FORMAT_VERSIONS: frozenset[int] = frozenset({FORMAT_VERSION})


class SchemaDescriptor(StructBaseCompat):
    """Persisted schema: records ordered by id plus a content fingerprint."""

    format_version: int
    schema_name: str
    schema_version: str
    fingerprint: str
    properties: tuple[PropertyInfo, ...] = ()
    node_types: tuple[NodeTypeInfo, ...] = ()
    edge_types: tuple[EdgeTypeInfo, ...] = ()
    adjacency: tuple[AdjacencyEntry, ...] = ()
    constants: tuple[ConstantInfo, ...] = ()
    layers: tuple[LayerInfo, ...] = ()


class _DescriptorHeader(StructBaseCompat):
    format_version: int


def to_descriptor(schema: CompiledSchema) -> SchemaDescriptor:
    """Return the persisted form of a compiled schema.

    Returns
    -------
    SchemaDescriptor
        Descriptor carrying the schema records and fingerprint.
    """
    return SchemaDescriptor(
        format_version=FORMAT_VERSION,
        schema_name=schema.name,
        schema_version=schema.version,
        fingerprint=schema.fingerprint,
        properties=schema.properties,
        node_types=schema.node_types,
        edge_types=schema.edge_types,
        adjacency=schema.adjacency,
        constants=schema.constants,
        layers=schema.layers,
    )


def compiled_from_descriptor(descriptor: SchemaDescriptor) -> CompiledSchema:
    """Rebuild a compiled schema from its descriptor.

    Returns
    -------
    CompiledSchema
        Compiled schema equal to the one the descriptor was taken from.

    Raises
    ------
    DescriptorError
        Raised when the rebuilt content does not match the recorded fingerprint.
    """
    schema = CompiledSchema(
        name=descriptor.schema_name,
        version=descriptor.schema_version,
        properties=descriptor.properties,
        node_types=descriptor.node_types,
        edge_types=descriptor.edge_types,
        adjacency=descriptor.adjacency,
        constants=descriptor.constants,
        layers=descriptor.layers,
    )
    if schema.fingerprint != descriptor.fingerprint:
        msg = (
            f"Descriptor fingerprint {descriptor.fingerprint!r} does not match its "
            f"content ({schema.fingerprint!r})."
        )
        raise DescriptorError(msg, element=descriptor.schema_name)
    return schema


def _check_format(version: int) -> None:
    if version not in SUPPORTED_FORMAT_VERSIONS:
        supported = ", ".join(str(item) for item in sorted(SUPPORTED_FORMAT_VERSIONS))
        msg = f"Unsupported descriptor format_version {version}; supported: {supported}."
        raise DescriptorError(msg)


def _decode_error(exc: msgspec.MsgspecError, encoding: str) -> DescriptorError:
    if isinstance(exc, msgspec.ValidationError):
        payload = validation_error_payload(exc)
        detail = payload.get("summary", "")
        if "path" in payload:
            detail = f"{detail} at {payload['path']}"
    else:
        detail = str(exc)
    msg = f"Invalid {encoding} schema descriptor: {detail}"
    return DescriptorError(msg)


def encode_json(schema: CompiledSchema | SchemaDescriptor, *, pretty: bool = False) -> bytes:
    """Encode a schema or descriptor as JSON.

    Returns
    -------
    bytes
        JSON payload.
    """
    descriptor = schema if isinstance(schema, SchemaDescriptor) else to_descriptor(schema)
    with stage_span(
        "cpg_schema.descriptor.encode",
        stage="encode",
        scope_name=SCOPE_DESCRIPTOR,
        attributes={"cpg_schema.encoding": "json"},
    ):
        return dumps_json(descriptor, pretty=pretty)


def encode_msgpack(schema: CompiledSchema | SchemaDescriptor) -> bytes:
    """Encode a schema or descriptor as MessagePack.

    Returns
    -------
    bytes
        MessagePack payload.
    """
    descriptor = schema if isinstance(schema, SchemaDescriptor) else to_descriptor(schema)
    with stage_span(
        "cpg_schema.descriptor.encode",
        stage="encode",
        scope_name=SCOPE_DESCRIPTOR,
        attributes={"cpg_schema.encoding": "msgpack"},
    ):
        return dumps_msgpack(descriptor)


def decode_json(buf: bytes | str) -> SchemaDescriptor:
    """Decode a JSON descriptor.

    Returns
    -------
    SchemaDescriptor
        Decoded descriptor.

    Raises
    ------
    DescriptorError
        Raised for malformed payloads and unsupported format versions.
    """
    with stage_span(
        "cpg_schema.descriptor.decode",
        stage="decode",
        scope_name=SCOPE_DESCRIPTOR,
        attributes={"cpg_schema.encoding": "json"},
    ):
        try:
            header = loads_json(buf, target_type=_DescriptorHeader)
            _check_format(header.format_version)
            return loads_json(buf, target_type=SchemaDescriptor)
        except msgspec.MsgspecError as exc:
            raise _decode_error(exc, "json") from exc


def decode_msgpack(buf: bytes) -> SchemaDescriptor:
    """Decode a MessagePack descriptor.

    Returns
    -------
    SchemaDescriptor
        Decoded descriptor.

    Raises
    ------
    DescriptorError
        Raised for malformed payloads and unsupported format versions.
    """
    with stage_span(
        "cpg_schema.descriptor.decode",
        stage="decode",
        scope_name=SCOPE_DESCRIPTOR,
        attributes={"cpg_schema.encoding": "msgpack"},
    ):
        try:
            header = loads_msgpack(buf, target_type=_DescriptorHeader)
            _check_format(header.format_version)
            return loads_msgpack(buf, target_type=SchemaDescriptor)
        except msgspec.MsgspecError as exc:
            raise _decode_error(exc, "msgpack") from exc


def descriptor_to_builtins(schema: CompiledSchema | SchemaDescriptor) -> dict[str, object]:
    """Return a descriptor as builtin types, ready for YAML or TOML writers.

    Returns
    -------
    dict[str, object]
        Mapping accepted by ``descriptor_from_builtins``.
    """
    descriptor = schema if isinstance(schema, SchemaDescriptor) else to_descriptor(schema)
    payload = to_builtins(descriptor)
    if not isinstance(payload, dict):
        msg = "Descriptor did not convert to a mapping."
        raise DescriptorError(msg)
    return payload


def descriptor_from_builtins(payload: Mapping[str, object]) -> SchemaDescriptor:
    """Convert a builtin mapping (for example, parsed YAML) into a descriptor.

    Returns
    -------
    SchemaDescriptor
        Converted descriptor.

    Raises
    ------
    DescriptorError
        Raised for invalid payloads and unsupported format versions.
    """
    try:
        header = convert(payload, target_type=_DescriptorHeader)
        _check_format(header.format_version)
        return convert(payload, target_type=SchemaDescriptor)
    except msgspec.MsgspecError as exc:
        raise _decode_error(exc, "builtin") from exc


class ChangeKind(StrEnum):
    """Differences between a writer and a reader schema."""

    ADDED = "added"
    REMOVED = "removed"
    RENAMED = "renamed"
    VALUE_TYPE_CHANGED = "value_type_changed"
    CARDINALITY_TIGHTENED = "cardinality_tightened"
    CARDINALITY_RELAXED = "cardinality_relaxed"
    RULE_REMOVED = "rule_removed"


_BREAKING: frozenset[ChangeKind] = frozenset(
    {
        ChangeKind.REMOVED,
        ChangeKind.RENAMED,
        ChangeKind.VALUE_TYPE_CHANGED,
        ChangeKind.CARDINALITY_TIGHTENED,
        ChangeKind.RULE_REMOVED,
    }
)


class CompatibilityIssue(StructBaseStrict):
    """One difference found by ``check_compatibility``."""

    change: ChangeKind
    element_kind: ElementKind
    name: str
    detail: str = ""

    @property
    def breaking(self) -> bool:
        """Return whether data written by the writer may be unreadable."""
        return self.change in _BREAKING


class CompatibilityReport(StructBaseStrict):
    """Result of comparing a writer schema with a reader schema."""

    writer_fingerprint: str
    reader_fingerprint: str
    issues: tuple[CompatibilityIssue, ...] = ()

    @property
    def compatible(self) -> bool:
        """Return whether no breaking change was found."""
        return not self.breaking

    @property
    def breaking(self) -> tuple[CompatibilityIssue, ...]:
        """Return the breaking issues."""
        return tuple(issue for issue in self.issues if issue.breaking)


def _match_key(name: str, proto_id: int | None) -> tuple[str, object]:
    if proto_id is not None:
        return ("proto_id", proto_id)
    return ("name", name)


class _Element(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def proto_id(self) -> int | None: ...


def _index(records: Iterable[_Element]) -> dict[tuple[str, object], _Element]:
    return {_match_key(record.name, record.proto_id): record for record in records}


def _compare_elements(
    writer: Iterable[_Element],
    reader: Iterable[_Element],
    *,
    element_kind: ElementKind,
) -> tuple[list[CompatibilityIssue], dict[str, str]]:
    """Match records by protocol id, falling back to name.

    Returns
    -------
    tuple[list[CompatibilityIssue], dict[str, str]]
        Issues found and the writer-to-reader name mapping of matched records.
    """
    writer_index = _index(writer)
    reader_index = _index(reader)
    issues: list[CompatibilityIssue] = []
    renamed: dict[str, str] = {}
    for key, record in writer_index.items():
        name = record.name
        other = reader_index.get(key)
        if other is None:
            issues.append(
                CompatibilityIssue(
                    change=ChangeKind.REMOVED,
                    element_kind=element_kind,
                    name=name,
                    detail="missing in reader",
                )
            )
            continue
        other_name = other.name
        renamed[name] = other_name
        if other_name != name:
            issues.append(
                CompatibilityIssue(
                    change=ChangeKind.RENAMED,
                    element_kind=element_kind,
                    name=name,
                    detail=f"renamed to {other_name!r}",
                )
            )
    issues.extend(
        CompatibilityIssue(
            change=ChangeKind.ADDED,
            element_kind=element_kind,
            name=record.name,
        )
        for key, record in reader_index.items()
        if key not in writer_index
    )
    return issues, renamed


def _cardinality_change(
    before: Cardinality,
    after: Cardinality,
) -> ChangeKind | None:
    if after.restrictiveness < before.restrictiveness:
        return ChangeKind.CARDINALITY_TIGHTENED
    if after.restrictiveness > before.restrictiveness:
        return ChangeKind.CARDINALITY_RELAXED
    return None


def _compare_properties(
    writer: SchemaDescriptor,
    reader: SchemaDescriptor,
) -> list[CompatibilityIssue]:
    issues, matched = _compare_elements(
        writer.properties, reader.properties, element_kind=ElementKind.PROPERTY
    )
    reader_by_name = {prop.name: prop for prop in reader.properties}
    for prop in writer.properties:
        other = reader_by_name.get(matched.get(prop.name, ""))
        if other is None:
            continue
        if other.value_type is not prop.value_type:
            issues.append(
                CompatibilityIssue(
                    change=ChangeKind.VALUE_TYPE_CHANGED,
                    element_kind=ElementKind.PROPERTY,
                    name=prop.name,
                    detail=f"{prop.value_type.value} -> {other.value_type.value}",
                )
            )
        change = _cardinality_change(prop.cardinality, other.cardinality)
        if change is not None:
            issues.append(
                CompatibilityIssue(
                    change=change,
                    element_kind=ElementKind.PROPERTY,
                    name=prop.name,
                    detail=f"{prop.cardinality.value} -> {other.cardinality.value}",
                )
            )
    return issues


type _RuleKey = tuple[str, str, Direction, str]


def _named_rules(
    descriptor: SchemaDescriptor,
    *,
    bounds: bool = False,
) -> dict[_RuleKey, Cardinality]:
    type_names = {info.type_id: info.name for info in descriptor.node_types}
    edge_names = {info.edge_type_id: info.name for info in descriptor.edge_types}
    rules: dict[_RuleKey, Cardinality] = {}
    for entry in descriptor.adjacency:
        for neighbor in entry.bounds if bounds else entry.neighbors:
            key = (
                type_names[entry.type_id],
                edge_names[entry.edge_type_id],
                entry.direction,
                type_names[neighbor.type_id],
            )
            rules[key] = neighbor.cardinality
    return rules


def _renamed_rules(
    rules: Mapping[_RuleKey, Cardinality],
    *,
    node_names: Mapping[str, str],
    edge_names: Mapping[str, str],
) -> dict[_RuleKey, tuple[_RuleKey, Cardinality]]:
    renamed: dict[_RuleKey, tuple[_RuleKey, Cardinality]] = {}
    for key, cardinality in rules.items():
        node, edge, direction, neighbor = key
        if node not in node_names or neighbor not in node_names or edge not in edge_names:
            continue
        target = (node_names[node], edge_names[edge], direction, node_names[neighbor])
        renamed[target] = (key, cardinality)
    return renamed


def _label(key: _RuleKey) -> str:
    node, edge, direction, neighbor = key
    return f"{node} {direction.value} {edge} {neighbor}"


def _compare_rules(
    writer: SchemaDescriptor,
    reader: SchemaDescriptor,
    *,
    node_names: Mapping[str, str],
    edge_names: Mapping[str, str],
) -> list[CompatibilityIssue]:
    """Report permitted neighbours of the writer that the reader no longer permits."""
    reader_rules = _named_rules(reader)
    writer_rules = _renamed_rules(
        _named_rules(writer), node_names=node_names, edge_names=edge_names
    )
    return [
        CompatibilityIssue(
            change=ChangeKind.RULE_REMOVED,
            element_kind=ElementKind.EDGE_TYPE,
            name=original[1],
            detail=_label(original),
        )
        for key, (original, _) in writer_rules.items()
        if key not in reader_rules
    ]


def _compare_bounds(
    writer: SchemaDescriptor,
    reader: SchemaDescriptor,
    *,
    node_names: Mapping[str, str],
    edge_names: Mapping[str, str],
) -> list[CompatibilityIssue]:
    """Report counted bounds that changed; a missing bound counts as ``LIST``."""
    reader_bounds = _named_rules(reader, bounds=True)
    writer_bounds = _renamed_rules(
        _named_rules(writer, bounds=True), node_names=node_names, edge_names=edge_names
    )
    issues: list[CompatibilityIssue] = []
    for key, (original, before) in writer_bounds.items():
        after = reader_bounds.get(key, Cardinality.LIST)
        change = _cardinality_change(before, after)
        if change is not None:
            issues.append(
                CompatibilityIssue(
                    change=change,
                    element_kind=ElementKind.EDGE_TYPE,
                    name=original[1],
                    detail=f"{_label(original)}: {before.value} -> {after.value}",
                )
            )
    issues.extend(
        CompatibilityIssue(
            change=ChangeKind.CARDINALITY_TIGHTENED,
            element_kind=ElementKind.EDGE_TYPE,
            name=key[1],
            detail=f"{_label(key)}: {Cardinality.LIST.value} -> {after.value}",
        )
        for key, after in reader_bounds.items()
        if key not in writer_bounds
    )
    return issues


def check_compatibility(
    writer: SchemaDescriptor | CompiledSchema,
    reader: SchemaDescriptor | CompiledSchema,
) -> CompatibilityReport:
    """Compare the schema data was written with against the schema reading it.

    Elements are matched by protocol id when they carry one and by name
    otherwise. Removed or renamed elements, changed value types, tightened
    cardinalities and removed edge rules are breaking; additions and relaxed
    cardinalities are reported but compatible.

    Parameters
    ----------
    writer
        Schema the data was produced with.
    reader
        Schema the data will be consumed with.

    Returns
    -------
    CompatibilityReport
        All differences found, in a stable order.
    """
    writer_desc = writer if isinstance(writer, SchemaDescriptor) else to_descriptor(writer)
    reader_desc = reader if isinstance(reader, SchemaDescriptor) else to_descriptor(reader)
    with stage_span(
        "cpg_schema.descriptor.compatibility",
        stage="compatibility",
        scope_name=SCOPE_DESCRIPTOR,
        attributes={
            "cpg_schema.writer": writer_desc.fingerprint,
            "cpg_schema.reader": reader_desc.fingerprint,
        },
    ):
        issues = _compare_properties(writer_desc, reader_desc)
        node_issues, node_names = _compare_elements(
            writer_desc.node_types, reader_desc.node_types, element_kind=ElementKind.NODE_TYPE
        )
        edge_issues, edge_names = _compare_elements(
            writer_desc.edge_types, reader_desc.edge_types, element_kind=ElementKind.EDGE_TYPE
        )
        issues.extend(node_issues)
        issues.extend(edge_issues)
        issues.extend(
            _compare_rules(
                writer_desc, reader_desc, node_names=node_names, edge_names=edge_names
            )
        )
        issues.extend(
            _compare_bounds(
                writer_desc, reader_desc, node_names=node_names, edge_names=edge_names
            )
        )
    report = CompatibilityReport(
        writer_fingerprint=writer_desc.fingerprint,
        reader_fingerprint=reader_desc.fingerprint,
        issues=tuple(issues),
    )
    if report.breaking:
        logger.warning(
            "Schema %s is not readable as %s: %d breaking change(s)",
            writer_desc.schema_version,
            reader_desc.schema_version,
            len(report.breaking),
        )
    return report


__all__ = [
    "FORMAT_VERSION",
    "SUPPORTED_FORMAT_VERSIONS",
    "ChangeKind",
    "CompatibilityIssue",
    "CompatibilityReport",
    "SchemaDescriptor",
    "check_compatibility",
    "compiled_from_descriptor",
    "decode_json",
    "decode_msgpack",
    "descriptor_from_builtins",
    "descriptor_to_builtins",
    "encode_json",
    "encode_msgpack",
    "to_descriptor",
]
