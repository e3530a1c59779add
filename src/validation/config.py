"""Validation settings and their environment overrides."""

from __future__ import annotations

from serde_msgspec import StructBaseStrict
from utils.env_utils import env_bool, env_int

ENV_MAX_VIOLATIONS = "CPG_SCHEMA_MAX_VIOLATIONS"
ENV_MAX_WORKERS = "CPG_SCHEMA_VALIDATION_WORKERS"
ENV_PARTITION_SIZE = "CPG_SCHEMA_PARTITION_SIZE"
ENV_SUBSTITUTE_DEFAULTS = "CPG_SCHEMA_SUBSTITUTE_DEFAULTS"
ENV_CHECK_UNKNOWN_PROPERTIES = "CPG_SCHEMA_CHECK_UNKNOWN_PROPERTIES"

DEFAULT_PARTITION_SIZE = 10_000


class ValidationSettings(StructBaseStrict):
    """Options controlling instance graph validation.

    Parameters
    ----------
    max_violations
        Stop once this many violations were found; ``None`` is unbounded.
    max_workers
        Worker threads used for partitioned validation; ``1`` runs serially.
    partition_size
        Nodes or edges handled per partition.
    substitute_defaults
        Treat an omitted mandatory property as carrying its declared default.
    check_unknown_properties
        Report properties outside a node type's effective set.
    """

    max_violations: int | None = None
    max_workers: int = 1
    partition_size: int = DEFAULT_PARTITION_SIZE
    substitute_defaults: bool = True
    check_unknown_properties: bool = True


def validation_settings_from_env(base: ValidationSettings | None = None) -> ValidationSettings:
    """Return settings with ``CPG_SCHEMA_*`` environment overrides applied.

    Unset or invalid variables keep the value from ``base``; non-positive
    budgets and sizes are ignored.

    Returns
    -------
    ValidationSettings
        Resolved settings.
    """
    resolved = base or ValidationSettings()
    max_violations = env_int(ENV_MAX_VIOLATIONS, default=resolved.max_violations)
    max_workers = env_int(ENV_MAX_WORKERS, default=resolved.max_workers)
    partition_size = env_int(ENV_PARTITION_SIZE, default=resolved.partition_size)
    return ValidationSettings(
        max_violations=(
            max_violations
            if max_violations is None or max_violations > 0
            else resolved.max_violations
        ),
        max_workers=(
            max_workers if max_workers is not None and max_workers > 0 else resolved.max_workers
        ),
        partition_size=(
            partition_size
            if partition_size is not None and partition_size > 0
            else resolved.partition_size
        ),
        substitute_defaults=env_bool(
            ENV_SUBSTITUTE_DEFAULTS, default=resolved.substitute_defaults
        ),
        check_unknown_properties=env_bool(
            ENV_CHECK_UNKNOWN_PROPERTIES, default=resolved.check_unknown_properties
        ),
    )


__all__ = [
    "DEFAULT_PARTITION_SIZE",
    "ENV_CHECK_UNKNOWN_PROPERTIES",
    "ENV_MAX_VIOLATIONS",
    "ENV_MAX_WORKERS",
    "ENV_PARTITION_SIZE",
    "ENV_SUBSTITUTE_DEFAULTS",
    "ValidationSettings",
    "validation_settings_from_env",
]
