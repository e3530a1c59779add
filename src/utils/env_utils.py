"""Environment variable resolution utilities."""

from __future__ import annotations

import logging
import os
from enum import Enum

_LOGGER = logging.getLogger(__name__)

_TRUE_VALUES = frozenset({"1", "true", "yes", "y"})
_FALSE_VALUES = frozenset({"0", "false", "no", "n"})


def env_value(name: str) -> str | None:
    """Return stripped env var value, or None if empty/not set.

    Returns
    -------
    str | None
        Stripped value or None.
    """
    raw = os.environ.get(name)
    if raw is None:
        return None
    stripped = raw.strip()
    return stripped if stripped else None


def env_enum[TEnum: Enum](
    name: str,
    enum_type: type[TEnum],
    *,
    default: TEnum,
) -> TEnum:
    """Parse environment variable as enum value.

    Matching is case-insensitive against member values and names.

    Returns
    -------
    TEnum
        Parsed enum value or default.
    """
    raw = env_value(name)
    if raw is None:
        return default
    value_lower = raw.lower()
    for member in enum_type:
        if member.name.lower() == value_lower:
            return member
        if isinstance(member.value, str) and member.value.lower() == value_lower:
            return member
    _LOGGER.warning("Invalid %s for %s: %r", enum_type.__name__, name, raw)
    return default


def env_bool(name: str, *, default: bool) -> bool:
    """Parse environment variable as boolean.

    Returns
    -------
    bool
        Parsed boolean or default.
    """
    raw = env_value(name)
    if raw is None:
        return default
    value = raw.lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    _LOGGER.warning("Invalid boolean for %s: %r", name, raw)
    return default


def env_int(name: str, *, default: int | None = None) -> int | None:
    """Parse environment variable as integer with error logging.

    Returns
    -------
    int | None
        Parsed integer or default/None.
    """
    raw = env_value(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        _LOGGER.warning("Invalid integer for %s: %r", name, raw)
        return default


__all__ = ["env_bool", "env_enum", "env_int", "env_value"]
