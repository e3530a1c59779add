"""Compiler settings and their environment overrides."""

from __future__ import annotations

from cpg_schema.enums import CardinalityPolicy, ProtoIdScope
from serde_msgspec import StructBaseStrict
from utils.env_utils import env_enum

ENV_CARDINALITY_POLICY = "CPG_SCHEMA_CARDINALITY_POLICY"
ENV_PROTO_ID_SCOPE = "CPG_SCHEMA_PROTO_ID_SCOPE"


class SchemaSettings(StructBaseStrict):
    """Options controlling schema compilation."""

    cardinality_policy: CardinalityPolicy = CardinalityPolicy.MOST_RESTRICTIVE
    proto_id_scope: ProtoIdScope = ProtoIdScope.SCHEMA


def schema_settings_from_env(base: SchemaSettings | None = None) -> SchemaSettings:
    """Return settings with ``CPG_SCHEMA_*`` environment overrides applied.

    Unset or invalid variables keep the value from ``base``.

    Returns
    -------
    SchemaSettings
        Resolved settings.
    """
    resolved = base or SchemaSettings()
    return SchemaSettings(
        cardinality_policy=env_enum(
            ENV_CARDINALITY_POLICY,
            CardinalityPolicy,
            default=resolved.cardinality_policy,
        ),
        proto_id_scope=env_enum(
            ENV_PROTO_ID_SCOPE,
            ProtoIdScope,
            default=resolved.proto_id_scope,
        ),
    )


__all__ = [
    "ENV_CARDINALITY_POLICY",
    "ENV_PROTO_ID_SCOPE",
    "SchemaSettings",
    "schema_settings_from_env",
]
