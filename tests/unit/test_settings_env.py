"""Tests for environment overrides of compiler and validation settings."""

from __future__ import annotations

import pytest

from cpg_schema import SchemaBuilder
from cpg_schema.config import (
    ENV_CARDINALITY_POLICY,
    ENV_PROTO_ID_SCOPE,
    SchemaSettings,
    schema_settings_from_env,
)
from cpg_schema.enums import CardinalityPolicy, ProtoIdScope
from validation import GraphValidator
from validation.config import (
    DEFAULT_PARTITION_SIZE,
    ENV_CHECK_UNKNOWN_PROPERTIES,
    ENV_MAX_VIOLATIONS,
    ENV_MAX_WORKERS,
    ENV_PARTITION_SIZE,
    ENV_SUBSTITUTE_DEFAULTS,
    ValidationSettings,
    validation_settings_from_env,
)

_ALL_VARS = (
    ENV_CARDINALITY_POLICY,
    ENV_PROTO_ID_SCOPE,
    ENV_CHECK_UNKNOWN_PROPERTIES,
    ENV_MAX_VIOLATIONS,
    ENV_MAX_WORKERS,
    ENV_PARTITION_SIZE,
    ENV_SUBSTITUTE_DEFAULTS,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ALL_VARS:
        monkeypatch.delenv(name, raising=False)


def test_schema_settings_defaults() -> None:
    """Use the most restrictive policy and schema-wide ids without overrides."""
    settings = schema_settings_from_env()
    assert settings == SchemaSettings()
    assert settings.cardinality_policy is CardinalityPolicy.MOST_RESTRICTIVE
    assert settings.proto_id_scope is ProtoIdScope.SCHEMA


def test_schema_settings_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Read enum overrides by value or name, ignoring case."""
    monkeypatch.setenv(ENV_CARDINALITY_POLICY, "LAST_DECLARED")
    monkeypatch.setenv(ENV_PROTO_ID_SCOPE, "kind")
    settings = schema_settings_from_env()
    assert settings.cardinality_policy is CardinalityPolicy.LAST_DECLARED
    assert settings.proto_id_scope is ProtoIdScope.KIND


def test_invalid_schema_override_keeps_base(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the base value when an override is not a known member."""
    monkeypatch.setenv(ENV_CARDINALITY_POLICY, "loosest")
    base = SchemaSettings(cardinality_policy=CardinalityPolicy.LAST_DECLARED)
    assert schema_settings_from_env(base).cardinality_policy is CardinalityPolicy.LAST_DECLARED


def test_validation_settings_defaults() -> None:
    """Validate serially and without a budget by default."""
    settings = validation_settings_from_env()
    assert settings == ValidationSettings()
    assert settings.max_violations is None
    assert settings.max_workers == 1
    assert settings.partition_size == DEFAULT_PARTITION_SIZE


def test_validation_settings_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Read numeric and boolean overrides."""
    monkeypatch.setenv(ENV_MAX_VIOLATIONS, "25")
    monkeypatch.setenv(ENV_MAX_WORKERS, "4")
    monkeypatch.setenv(ENV_PARTITION_SIZE, "500")
    monkeypatch.setenv(ENV_SUBSTITUTE_DEFAULTS, "no")
    monkeypatch.setenv(ENV_CHECK_UNKNOWN_PROPERTIES, "false")
    settings = validation_settings_from_env()
    assert settings == ValidationSettings(
        max_violations=25,
        max_workers=4,
        partition_size=500,
        substitute_defaults=False,
        check_unknown_properties=False,
    )


@pytest.mark.parametrize("raw", ["0", "-3", "many"])
def test_invalid_numeric_override_keeps_base(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    """Ignore non-positive and non-numeric overrides."""
    monkeypatch.setenv(ENV_MAX_VIOLATIONS, raw)
    monkeypatch.setenv(ENV_MAX_WORKERS, raw)
    monkeypatch.setenv(ENV_PARTITION_SIZE, raw)
    base = ValidationSettings(max_violations=10, max_workers=2, partition_size=50)
    assert validation_settings_from_env(base) == base


def test_builder_reads_environment_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    """Apply environment overrides when a builder gets no explicit settings."""
    monkeypatch.setenv(ENV_CARDINALITY_POLICY, "last_declared")
    assert SchemaBuilder().settings.cardinality_policy is CardinalityPolicy.LAST_DECLARED
    explicit = SchemaBuilder(settings=SchemaSettings())
    assert explicit.settings.cardinality_policy is CardinalityPolicy.MOST_RESTRICTIVE


def test_validator_reads_environment_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    """Apply environment overrides when a validator gets no explicit settings."""
    monkeypatch.setenv(ENV_MAX_VIOLATIONS, "2")
    schema = SchemaBuilder(settings=SchemaSettings()).compile()
    assert GraphValidator(schema).settings.max_violations == 2
    assert GraphValidator(schema, ValidationSettings()).settings.max_violations is None
